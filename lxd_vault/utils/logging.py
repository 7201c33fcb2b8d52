import logging

TRACE = 5

logging.addLevelName(TRACE, "TRACE")


def trace(logger: logging.Logger, message: str, *args: object) -> None:
    """Log ``message`` below DEBUG, for wire-level diagnostics."""

    if logger.isEnabledFor(TRACE):
        logger.log(TRACE, message, *args)
