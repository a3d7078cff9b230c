import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "xploitra"
FILE_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    # name = "crawler" -> "xploitra.crawler" 로거 이름 통일
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)


def init_logger(
    verbose: bool = False,
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    중앙 로거 초기화. 핸들러는 한 번만 붙이고, 레벨은 호출마다 갱신한다.
    콘솔 로그는 stderr로 보내 stdout 보고서(JSON/CSV)와 섞이지 않게 한다.
    """
    logger = get_logger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if logger.handlers:
        return logger

    logger.addHandler(
        RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_time=True, show_level=True)
    )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        fh.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(fh)

    return logger
