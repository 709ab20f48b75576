"""
日志模块

进度与阶段汇总（INFO/SUCCESS）写到 stdout，警告与错误写到 stderr，
这样重定向 stdout 时不会丢失失败信息。
"""

import os
import sys

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
WARNING_LEVEL = logger.level("WARNING").no

DEBUG_ENV = "SQUIRE_DEBUG"


def _is_progress(record) -> bool:
    return record["level"].no < WARNING_LEVEL


def setup_logger(verbose: bool = False, colorize: bool = True) -> str:
    """
    配置镜像运行的日志输出

    Args:
        verbose: 输出 DEBUG 日志（也可以设置环境变量 SQUIRE_DEBUG=1）
        colorize: 是否启用颜色

    Returns:
        生效的日志级别
    """
    verbose = verbose or os.environ.get(DEBUG_ENV, "0") == "1"
    level = "DEBUG" if verbose else "INFO"

    logger.remove()
    logger.add(
        sys.stdout,
        format=LOG_FORMAT,
        level=level,
        filter=_is_progress,
        colorize=colorize,
    )
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level="WARNING",
        colorize=colorize,
        backtrace=verbose,
        diagnose=verbose,
    )

    logger.debug("调试日志已启用")
    return level


__all__ = ["logger", "setup_logger"]
