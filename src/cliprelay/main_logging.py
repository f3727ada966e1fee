"""Logging configuration for the cliprelay CLI."""
import logging

PACKAGE_LOGGER = "cliprelay"


def configure_logging(verbose: bool) -> None:
    """Configure logging for the sync daemon.

    The root handler prints to stderr at WARNING, so retries, failed store
    calls and unresolved conflicts always show. --verbose lowers only the
    cliprelay loggers to DEBUG and leaves other libraries at WARNING.

    Args:
        verbose: If True, log cliprelay DEBUG messages.
    """
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
        handlers=[logging.StreamHandler()],
    )
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if verbose else logging.WARNING)
