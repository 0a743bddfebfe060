"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口与公共 HTTP 实现 (base)。
- 行式流解码 (stream_decoder)。
- 各厂商的具体实现 (azure_client、claude_client)。
- 对调用方暴露的统一门面 (ai_client)。
"""

from typing import Optional

import httpx

from xat_core.config.settings import settings
from xat_core.domain.exceptions import ConfigError
from xat_core.domain.models import ModelConfiguration
from xat_core.providers.base import ProviderClient
from xat_core.providers.azure_client import AzureOpenAIClient
from xat_core.providers.claude_client import ClaudeClient


_ADAPTERS = {
    "azure": AzureOpenAIClient,
    "claude": ClaudeClient,
}


def create_provider(
    config: ModelConfiguration,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderClient:
    """根据 ModelConfiguration.kind 创建对应的 Provider 实例。"""

    adapter_cls = _ADAPTERS.get(config.kind)
    if adapter_cls is None:
        raise ConfigError(code="UNKNOWN_PROVIDER", message=f"Unsupported provider kind: {config.kind!r}")
    return adapter_cls(config, settings, transport=transport)


__all__ = ["AzureOpenAIClient", "ClaudeClient", "ProviderClient", "create_provider"]
