"""
logging_setup.py - 日志处理模块

负责配置全局日志系统，支持控制台和文件输出，以及退出前的日志刷新。
"""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from procboot.process.exceptions import ConfigError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

ROTATE_NEVER = "never"
ROTATE_DAILY = "daily"
ROTATE_HOURLY = "hourly"

ROTATE_CHOICES = (ROTATE_NEVER, ROTATE_DAILY, ROTATE_HOURLY)


def _file_handler(log_file: Path, rotate: str) -> logging.Handler:
    """按轮转策略创建文件 handler"""
    if rotate == ROTATE_NEVER:
        return logging.FileHandler(str(log_file), encoding="utf-8", delay=True)

    if rotate == ROTATE_DAILY:
        # 每天一个日志文件，保留 30 天
        handler = logging.handlers.TimedRotatingFileHandler(
            filename=str(log_file),
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
            delay=True
        )
        handler.suffix = "%Y%m%d"
        return handler

    if rotate == ROTATE_HOURLY:
        handler = logging.handlers.TimedRotatingFileHandler(
            filename=str(log_file),
            when="H",
            interval=1,
            backupCount=24 * 7,
            encoding="utf-8",
            delay=True
        )
        handler.suffix = "%Y%m%d%H"
        return handler

    raise ConfigError(f"Unknown log rotation format {rotate!r}")


def setup_logging(
    log_level: str,
    log_dir: Optional[str] = None,
    log_name: str = "procboot.log",
    rotate: str = ROTATE_NEVER,
    console: bool = True,
) -> None:
    """
    配置日志系统

    Args:
        log_level: 日志级别
        log_dir: 日志目录 (为 None 时仅输出到控制台)
        log_name: 日志文件名
        rotate: 轮转策略 never/daily/hourly
        console: 是否输出到控制台
    """
    if rotate not in ROTATE_CHOICES:
        raise ConfigError(f"Unknown log rotation format {rotate!r}")

    handlers = []

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        handlers.append(_file_handler(log_path / log_name, rotate))

        # 错误日志单独存放
        error_handler = _file_handler(log_path / "error.log", rotate)
        error_handler.setLevel(logging.ERROR)
        handlers.append(error_handler)

    if console:
        handlers.append(logging.StreamHandler())

    # 移除所有现有的 handlers
    root = logging.getLogger()
    if root.handlers:
        for handler in list(root.handlers):
            handler.close()
            root.removeHandler(handler)

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=LOG_FORMAT,
        handlers=handlers
    )


def flush_logging() -> None:
    """刷新根 logger 上所有 handler 的待写输出"""
    for handler in list(logging.getLogger().handlers):
        try:
            handler.flush()
        except (OSError, ValueError):
            # handler 已关闭或底层流不可写
            pass
