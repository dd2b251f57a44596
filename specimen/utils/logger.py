import logging
import sys
from datetime import datetime
from pathlib import Path

from specimen.config import Config

FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _log_level() -> int:
    if Config.LOG_LEVEL:
        level = logging.getLevelName(Config.LOG_LEVEL)
        return level if isinstance(level, int) else logging.INFO
    return logging.DEBUG if Config.DEBUG else logging.INFO


def setup_logger(name: str) -> logging.Logger:
    """
    Setup a service logger: console output, plus a daily file under
    Config.LOG_DIR unless that is empty.
    """
    logger = logging.getLogger(name)
    
    if logger.handlers:
        return logger
    
    log_level = _log_level()
    logger.setLevel(log_level)
    formatter = logging.Formatter(FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    
    if Config.LOG_DIR:
        log_dir = Path(Config.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            log_dir / f'specimen_{datetime.now().strftime("%Y%m%d")}.log',
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    
    return logger
