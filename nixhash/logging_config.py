"""structlog setup for the command line.

Library modules only call structlog.get_logger(); nothing is configured
until configure_logging() runs, so embedding applications keep control.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "warning") -> None:
    """Render log events to stderr, dropping those below level."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
