"""
Logging setup.

Console output always; a JSON file per day under ``log_dir`` when configured.
Business context (work order, entity, station) travels in ``extra`` and ends
up as top-level keys in the JSON records.
"""

import logging
import sys
from datetime import datetime
from typing import Optional

from pythonjsonlogger import jsonlogger

from core.models import utcnow
from core.settings import Settings, get_settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ShopFloorJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        if not log_record.get("timestamp"):
            log_record["timestamp"] = utcnow().strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level, logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    if settings.log_json:
        console_handler.setFormatter(ShopFloorJsonFormatter("%(message)s"))
    else:
        console_handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(console_handler)

    if settings.log_dir is not None:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            settings.log_dir / f"shopfloor_{datetime.now().strftime('%Y%m%d')}.json.log",
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(ShopFloorJsonFormatter("%(message)s"))
        logger.addHandler(file_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logger
