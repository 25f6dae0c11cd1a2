"""Logging initialization utilities using loguru."""

import sys

from loguru import logger

from declutter.scanner import expand_path


def init_logging(log_dir: str | None = None, level: str = "INFO", verbose: bool = False) -> None:
    """Initialize rotating file logging under the given directory.

    With ``verbose`` a stderr sink at DEBUG is added as well.
    """
    logger.remove()

    if log_dir is not None:
        log_path = expand_path(log_dir)
        try:
            log_path.mkdir(parents=True, exist_ok=True)
            logger.add(
                str(log_path / "declutter_{time:YYYYMMDD}.log"),
                rotation="10 MB",
                retention="10 days",
                enqueue=True,
                backtrace=False,
                diagnose=False,
                level=level,
            )
        except OSError as e:
            print(f"declutter: file logging disabled ({e})", file=sys.stderr)

    if verbose:
        logger.add(sys.stderr, level="DEBUG", format="{time:HH:mm:ss} | {level: <7} | {message}")

