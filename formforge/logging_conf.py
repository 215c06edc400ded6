import logging
from logging.config import dictConfig

from formforge.config import config


def configure_logging() -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "class": "logging.Formatter",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "format": "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d - %(message)s",
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "level": "DEBUG",
                    "formatter": "console",
                },
            },
            "loggers": {
                "uvicorn": {"handlers": ["default"], "level": "INFO"},
                "formforge": {
                    "handlers": ["default"],
                    "level": config.LOG_LEVEL,
                    "propagate": False,
                },
                "databases": {"handlers": ["default"], "level": "WARNING"},
            },
        }
    )
    logging.getLogger("passlib").setLevel(logging.ERROR)
