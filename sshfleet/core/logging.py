"""
Rich-based logging for sshfleet
"""
import logging
from typing import Optional
from pathlib import Path

from rich.logging import RichHandler
from rich.console import Console
from rich.traceback import install as install_traceback


# Console instances shared by the CLI and the log handler; they write to
# whatever sys.stdout / sys.stderr are at print time
_stdout_console = Console()
_stderr_console = Console(stderr=True)

FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[Path] = None,
    rich_tracebacks: bool = True,
) -> None:
    """
    Setup Rich logging for the sshfleet logger tree.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path, always written at the same level
        rich_tracebacks: Render tracebacks with rich
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    if rich_tracebacks:
        install_traceback(console=_stderr_console, width=120)

    rich_handler = RichHandler(
        console=_stderr_console,
        show_time=True,
        show_path=False,
        rich_tracebacks=rich_tracebacks,
        markup=False,
        show_level=True,
    )
    rich_handler.setLevel(log_level)
    root_logger.addHandler(rich_handler)

    if log_file:
        log_file = Path(log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        root_logger.addHandler(file_handler)

    # paramiko is chatty at INFO
    logging.getLogger("paramiko").setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def get_stdout_console() -> Console:
    """Get stdout console for user-facing output"""
    return _stdout_console


def get_stderr_console() -> Console:
    """Get stderr console for errors and logs"""
    return _stderr_console
