import logging
from logging.handlers import TimedRotatingFileHandler
import os

from .config import settings

def setup_logger():
    log_dir = settings.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger("taskhub")
    logger.setLevel(settings.LOG_LEVEL)
    if logger.handlers:
        # already configured (module re-import under test runners)
        return logger

    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
    )

    # 1. file output, rotated daily, 30 days kept
    file_handler = TimedRotatingFileHandler(
        filename=os.path.join(log_dir, "taskhub.log"),
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    # 2. console output
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger

logger = setup_logger()
