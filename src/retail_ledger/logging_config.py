import logging

import colorlog

_CONFIGURED = False


def configure_logging(level: str = "INFO") -> None:
    """Attach a coloured console handler to the package logger."""

    global _CONFIGURED
    logger = logging.getLogger("retail_ledger")
    logger.setLevel(level.upper())
    if _CONFIGURED:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s[%(asctime)s] %(levelname)-8s%(reset)s %(blue)s%(name)s%(reset)s %(message)s",
            datefmt="%H:%M:%S",
            reset=True,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
            style="%",
        )
    )
    logger.addHandler(handler)
    _CONFIGURED = True
