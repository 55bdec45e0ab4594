"""
Logger Configuration
统一日志配置
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler
from rich.console import Console


console = Console()

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FORMAT_SIMPLE = "%(message)s"

LOG_DIR = Path(__file__).parent.parent / "logs"

ROOT_LOGGER_NAMES = ("director", "oracles", "render", "config")


def setup_logger(
    name: str = "director",
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    use_rich: bool = True,
) -> logging.Logger:
    """
    设置日志记录器

    Args:
        name: 日志记录器名称
        level: 日志级别
        log_file: 日志文件路径 (可选, 写入 logs/ 目录)
        use_rich: 是否使用 Rich 美化输出

    Returns:
        配置好的 Logger 实例
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    if use_rich:
        console_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
        )
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE))
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_DIR / log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger


def setup_project_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """Attach handlers to every top-level package logger used by the project."""
    for name in ROOT_LOGGER_NAMES:
        setup_logger(name, level=level, log_file=log_file)


def get_logger(name: str = "director") -> logging.Logger:
    """
    获取日志记录器

    如果没有配置过, 进行默认配置
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger
