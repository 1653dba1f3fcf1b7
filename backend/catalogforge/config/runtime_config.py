"""
运行期配置 - 读取 config/runtime.yaml

职责：
- 加载并发/超时/重试/Shopify/存储路径等运行参数
- 提供环境变量覆盖机制（CATALOGFORGE_ 前缀，嵌套用 __ 分隔）
- 类型安全的配置访问
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

DEFAULT_CONFIG_PATH = Path("config/runtime.yaml")


class ConcurrencyConfig(BaseModel):
    """并发配置"""

    image_workers: int = 5


class TimeoutConfig(BaseModel):
    """超时配置"""

    bulk_poll_interval_sec: float = 2.0
    bulk_max_wait_sec: float = 600.0
    http_timeout_sec: float = 30.0


class RetryConfig(BaseModel):
    """重试配置"""

    image_attempts: int = 3
    retry_backoff_ms: int = 500
    api_max_retries: int = 5


class ShopifyConfig(BaseModel):
    """Shopify Admin API 配置"""

    shop_domain: str = ""
    access_token: str = ""
    api_version: str = "2025-01"
    page_size: int = 250


class PDFConfig(BaseModel):
    """PDF排版配置"""

    font_path: str | None = None


class LifecycleConfig(BaseModel):
    """生命周期配置"""

    retention_days: int = 30


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = False


_SECTIONS = ("concurrency", "timeouts", "retries", "shopify", "pdf", "lifecycle", "logging")


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    # 基础路径
    storage_dir: Path = Path("storage")

    # 各子配置
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    retries: RetryConfig = Field(default_factory=RetryConfig)
    shopify: ShopifyConfig = Field(default_factory=ShopifyConfig)
    pdf: PDFConfig = Field(default_factory=PDFConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "CATALOGFORGE_",
        "env_nested_delimiter": "__",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # 环境变量优先于YAML（按字段深度合并）
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        runtime_opts = data.get("runtime_options", {})

        # 以dict传入，便于与环境变量逐字段合并
        kwargs: dict[str, Any] = {
            section: cls._extract(runtime_opts, section)
            for section in _SECTIONS
        }
        storage_dir = runtime_opts.get("storage_dir")
        if storage_dir:
            kwargs["storage_dir"] = Path(storage_dir)

        config = cls(**kwargs)
        config._resolve_paths(base_dir=path.parent)
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置"""
        section = data.get(key) or {}
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path) -> None:
        """解析相对路径配置为绝对路径（基于配置文件所在目录）"""
        if self.pdf.font_path:
            font_path = Path(self.pdf.font_path)
            if not font_path.is_absolute():
                self.pdf.font_path = str((base_dir / font_path).resolve())


# 全局配置实例
_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        _config = RuntimeConfig.from_yaml(DEFAULT_CONFIG_PATH)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    _config = RuntimeConfig.from_yaml(yaml_path or DEFAULT_CONFIG_PATH)
    return _config
