"""Retry policy configuration models.

Each content source carries its own RetryPolicy. The policy is plain data;
the retry engine reads it and never hardcodes attempt counts or delays.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from kcgallery.shared.constants import BackoffKinds, RetryDefaults
from kcgallery.shared.models import ContentSource


class BackoffPolicy(BaseModel):
    """Delay curve between attempts.

    ``exponential`` waits ``base * 2 ** (attempt - 1)``, ``linear`` waits
    ``base * attempt``. Both are capped at ``cap``.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["exponential", "linear"] = Field(
        default=BackoffKinds.EXPONENTIAL,
        description="Backoff curve (exponential, linear)",
    )
    base: float = Field(default=1.0, gt=0, description="Base delay in seconds")
    cap: float = Field(
        default=RetryDefaults.MAX_DELAY,
        gt=0,
        description="Maximum delay in seconds",
    )

    @model_validator(mode="after")
    def _check_cap(self) -> BackoffPolicy:
        if self.cap < self.base:
            msg = f"cap ({self.cap}) must be >= base ({self.base})"
            raise ValueError(msg)
        return self

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        if attempt < 1:
            msg = f"attempt must be >= 1, got {attempt}"
            raise ValueError(msg)
        if self.kind == BackoffKinds.LINEAR:
            delay = self.base * attempt
        else:
            # Bound the exponent so large attempt numbers cannot overflow
            delay = self.base * (2 ** min(attempt - 1, 32))
        return min(delay, self.cap)


class RetryPolicy(BaseModel):
    """Attempt budget plus backoff curve for one content source."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Total attempts, first one included")
    backoff: BackoffPolicy = Field(default_factory=BackoffPolicy)

    def delay_for(self, attempt: int) -> float:
        return self.backoff.delay_for(attempt)


def _primary_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=RetryDefaults.PRIMARY_MAX_ATTEMPTS,
        backoff=BackoffPolicy(
            kind=RetryDefaults.PRIMARY_BACKOFF,
            base=RetryDefaults.PRIMARY_BASE_DELAY,
            cap=RetryDefaults.MAX_DELAY,
        ),
    )


def _secondary_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=RetryDefaults.SECONDARY_MAX_ATTEMPTS,
        backoff=BackoffPolicy(
            kind=RetryDefaults.SECONDARY_BACKOFF,
            base=RetryDefaults.SECONDARY_BASE_DELAY,
            cap=RetryDefaults.MAX_DELAY,
        ),
    )


class RetrySettings(BaseModel):
    """Retry policies per content source."""

    primary: RetryPolicy = Field(default_factory=_primary_policy)
    secondary: RetryPolicy = Field(default_factory=_secondary_policy)

    def policy_for(self, source: ContentSource) -> RetryPolicy:
        """Return the policy configured for a source."""
        if source is ContentSource.SECONDARY:
            return self.secondary
        return self.primary


__all__ = ["BackoffPolicy", "RetryPolicy", "RetrySettings"]
