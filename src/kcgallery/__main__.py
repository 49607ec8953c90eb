"""
KC Gallery Package Main Entry Point

Runs the CLI when the package is executed with ``python -m kcgallery``.
"""

import logging
import sys

from kcgallery.cli.typer_app import app
from kcgallery.shared.constants import CLIDefaults

logger = logging.getLogger(__name__)


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        logger.info("Command interrupted by user")
        sys.exit(CLIDefaults.EXIT_ERROR)
