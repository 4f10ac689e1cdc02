"""
Rich-formatted logging for askme.

Three verbosity levels:
- Normal: warnings and errors only
- Verbose (--verbose): request summaries
- Debug (--debug): low-level DEBUG messages, unformatted, including payloads

Everything goes to stderr so stdout only carries the model's reply.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

_console: Console | None = None

NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "asyncio",
    "markdown_it",
]


def get_console() -> Console:
    """Get the shared stderr console instance."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure the root logger for one CLI run."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    if debug:
        logging.basicConfig(
            level=level,
            format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
            datefmt="%H:%M:%S",
            force=True,
        )
    else:
        logging.basicConfig(
            level=level,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(
                console=get_console(),
                show_path=False,
                show_time=verbose,
                rich_tracebacks=True,
                markup=False,
            )],
            force=True,
        )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
