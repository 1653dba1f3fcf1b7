"""
日志配置

输出到 stderr，保持 stdout 干净（CLI 打印任务ID等结果）。
log_to_file 开启时额外写入 storage/logs/worker.log。
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .runtime_config import RuntimeConfig

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(config: RuntimeConfig, verbose: bool = False) -> None:
    """初始化 catalogforge 日志"""
    level_name = "DEBUG" if verbose else config.logging.log_level.upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger("catalogforge")
    logger.setLevel(level)

    # 重复调用时避免叠加handler
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    if config.logging.log_to_file:
        log_dir = config.storage_dir / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "worker.log", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)
