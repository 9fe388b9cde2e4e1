"""
Logging configuration.

Installs a rich console handler on the root logger. Modules log through
``logging.getLogger(__name__)``.
"""

import logging

from rich.logging import RichHandler


NOISY_LOGGERS = ("httpx", "httpcore", "openai", "uvicorn.access")


def setup_logging(level: int = logging.INFO) -> None:
    """Configure application logging."""
    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
