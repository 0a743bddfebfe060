"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。

模型（Azure OpenAI / Claude）的连接信息不放在这里，而是由
``models_file`` 指向的配置文档提供，见 ``xat_core.config.model_catalog``。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("XAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 模型相关配置 ----
    models_file: str = Field(
        default="config/models.yaml",
        description="模型配置文档路径（YAML 或 JSON，含 AzureOpenAi / ClaudeAi 两段）",
    )
    default_model: Optional[str] = Field(
        default=None,
        description="默认模型 ID；为空时取配置文档中的第一个模型",
    )

    # ---- 网络 / 流式 ----
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")
    stream_timeout: float = Field(
        default=120.0,
        ge=1.0,
        description="一次流式回答的硬上限（秒），超时后用兜底文案强制结束",
    )
    stream_fallback_message: str = Field(
        default="The response took too long and was stopped. Please try again.",
        description="流式回答超时后发给调用方的兜底文案",
    )

    # ---- 工具执行 ----
    tool_max_retries: int = Field(default=3, ge=0, le=10, description="单个工具失败后的最大重试次数")
    tool_retry_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="重试退避的基本单位（秒），第 n 次重试前等待 n * delay",
    )

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_prefix="XAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("stream_fallback_message")
    @classmethod
    def validate_fallback(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("stream_fallback_message must not be blank")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
