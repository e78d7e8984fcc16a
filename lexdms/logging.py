import logging.config

from lexdms.config import settings


def configure_logging() -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {"handlers": ["console"], "level": settings.log_level},
            "loggers": {
                "sqlalchemy.engine": {"level": "WARNING"},
                "botocore": {"level": "WARNING"},
            },
        }
    )
