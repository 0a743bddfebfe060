"""Azure OpenAI Provider 适配器（TypeA）。

- URL: {api_url}/openai/deployments/{model_name}/chat/completions?api-version={api_version}
- 认证: api-key: <api_key>

请求体只使用公共字段：messages/max_tokens/temperature/presence_penalty/
frequency_penalty/top_p/stream。模型由部署名决定，请求体里不带 model。
"""

from typing import Any, Dict, List, Optional

from xat_core.domain.models import ChatResult, ChatUsage, Message
from xat_core.providers.base import HttpProviderClient, ProviderRequest
from xat_core.providers.stream_decoder import AzureStreamDecoder, StreamDecoder


class AzureOpenAIClient(HttpProviderClient):
    """Azure OpenAI 客户端实现。"""

    name = "azure"
    display_name = "Azure OpenAI"

    def build_request(
        self, messages: List[Message], system: Optional[str], stream: bool
    ) -> ProviderRequest:
        cfg = self.config
        msgs = [m.to_payload() for m in messages]
        if system:
            msgs.insert(0, {"role": "system", "content": system})
        body = {
            "messages": msgs,
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "presence_penalty": cfg.presence_penalty,
            "frequency_penalty": cfg.frequency_penalty,
            "top_p": cfg.top_p,
            "stream": stream,
        }
        base = cfg.api_url.rstrip("/")
        return ProviderRequest(
            url=(
                f"{base}/openai/deployments/{cfg.model_name}/chat/completions"
                f"?api-version={cfg.resolved_api_version}"
            ),
            headers={"Content-Type": "application/json", "api-key": cfg.api_key},
            body=body,
        )

    def make_decoder(self) -> StreamDecoder:
        return AzureStreamDecoder()

    def parse_response(self, data: Dict[str, Any]) -> ChatResult:
        choices = data.get("choices") or [{}]
        message = (choices[0] or {}).get("message") or {}
        usage_raw = data.get("usage") or {}
        return ChatResult(
            content=message.get("content") or "",
            role=message.get("role") or "assistant",
            model=data.get("model"),
            usage=ChatUsage(
                prompt_tokens=usage_raw.get("prompt_tokens"),
                completion_tokens=usage_raw.get("completion_tokens"),
                total_tokens=usage_raw.get("total_tokens"),
            ),
            raw=data,
        )
