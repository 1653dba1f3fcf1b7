"""
配置层 - 加载运行期配置与日志设置

职责：
- 加载 config/runtime.yaml（并发/超时/重试/Shopify/保留期等）
- 提供环境变量覆盖机制
- 初始化日志输出
"""

from .logging_setup import setup_logging
from .runtime_config import RuntimeConfig, get_config, reload_config

__all__ = [
    "RuntimeConfig",
    "get_config",
    "reload_config",
    "setup_logging",
]
