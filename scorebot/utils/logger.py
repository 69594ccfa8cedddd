import logging
import sys
from datetime import datetime
from pathlib import Path

from scorebot.config import Config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DIR = Path('logs')


def setup_logger(name: str) -> logging.Logger:
    """Logger writing to stdout and to a daily file under logs/"""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = logging.DEBUG if Config.DEBUG else logging.INFO
    logger.setLevel(log_level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    LOG_DIR.mkdir(exist_ok=True)
    file_handler = logging.FileHandler(
        LOG_DIR / f'scorebot_{datetime.now():%Y%m%d}.log',
        encoding='utf-8'
    )
    # The file keeps debug detail even when the console does not
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
