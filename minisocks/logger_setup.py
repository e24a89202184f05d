from typing import *
import logging
import os
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler


FORMAT = "[{asctime}] [{levelname}] {message}"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class SessionLogger(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f'[{self.extra["conn_id"]}] {msg}', kwargs


def make_log(log_file: Union[str, Path]) -> TimedRotatingFileHandler:
    log_file = Path(log_file)
    os.makedirs(log_file.parent, exist_ok=True)

    file_handler = TimedRotatingFileHandler(
        log_file,
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8"
    )
    file_handler.setFormatter(logging.Formatter(fmt=FORMAT, datefmt=DATE_FORMAT, style="{"))
    return file_handler


def setup_logging(level: int = logging.INFO, log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    logging.basicConfig(level=level, format=FORMAT, datefmt=DATE_FORMAT, style="{")
    logger = logging.getLogger('minisocks')
    logger.setLevel(level)
    if log_file is not None:
        logger.addHandler(make_log(log_file))
    return logger
