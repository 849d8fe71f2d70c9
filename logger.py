import gzip
import logging
import os
import shutil
import sys
from logging.handlers import RotatingFileHandler

import config


class CompressedRotatingFileHandler(RotatingFileHandler):

    def doRollover(self):
        super().doRollover()

        old_log = self.baseFilename + ".1"
        if os.path.exists(old_log):
            with open(old_log, "rb") as f_in:
                with gzip.open(old_log + ".gz", "wb") as f_out:
                    shutil.copyfileobj(f_in, f_out)
            os.remove(old_log)


def setup_logger(name, log_file="ihost.log", level=None):
    """Console + rotating file logger, configured once per name."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    file_handler = CompressedRotatingFileHandler(
        config.LOG_DIR / log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    logger.setLevel(level or config.LOG_LEVEL)
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    return logger
