"""structlog configuration.

gatechat modules log through ``structlog.get_logger()`` and never configure
structlog themselves. Call ``configure_logging`` once at startup; without it
structlog's defaults print every level to stdout.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "WARNING", fmt: str = "text") -> None:
    """Configure structlog to write to stderr at ``level``.

    ``fmt`` selects JSON lines (``"json"``) or the human-readable console renderer.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
            if fmt == "json"
            else structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
