"""
CLI Configuration Constants

Command names, help texts and exit codes for the command-line interface.
"""


class CLICommands:
    """Command names."""

    CREATOR = "creator"
    POST = "post"
    POSTS = "posts"
    LINKS = "links"
    COMMENTS = "comments"
    LATEST = "latest"
    SEARCH = "search"
    CACHE = "cache"
    HISTORY = "history"


class CLIHelp:
    """Help texts."""

    APP_NAME = "kcgallery"
    APP_DESCRIPTION = "Browse the Kemono/Coomer catalogs from the terminal."
    APP_STYLE = "rich"
    VERSION_TEXT = "KC Gallery v{version}"

    CREATOR = "Show a creator profile."
    POST = "Show a single post."
    POSTS = "List a creator's posts."
    LINKS = "List the accounts linked to a creator."
    COMMENTS = "Show the comments of a post."
    LATEST = "List the most recent posts."
    SEARCH = "Search creators by ID or name."
    CACHE = "Inspect or maintain the local cache."
    HISTORY = "Show or clear the search history."


class CLIDefaults:
    """Exit codes and limits."""

    EXIT_ERROR = 1
    DEFAULT_PAGES = 1
    MAX_PAGES = 20
    TITLE_WIDTH = 60
