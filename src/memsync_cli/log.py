"""Logging setup for memsync-cli.

Library modules log through loguru's shared ``logger``; only the CLI decides
where the records go.
"""

import sys
from typing import Any, TextIO

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{line} - {message}"

_handler_id: int | None = None


def configure_logging(level: str = "WARNING", sink: TextIO | Any = sys.stderr) -> int:
    """Replace loguru's default handler with a single sink at ``level``.

    Calling it again swaps the previous sink out, so it is safe to call once
    per CLI invocation.

    Returns:
        The loguru handler id of the installed sink
    """
    global _handler_id

    if _handler_id is None:
        logger.remove()
    else:
        try:
            logger.remove(_handler_id)
        except ValueError:
            logger.remove()

    _handler_id = logger.add(sink, level=level.upper(), format=LOG_FORMAT, colorize=False)
    return _handler_id
