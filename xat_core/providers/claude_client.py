"""Claude Provider 适配器（TypeB）。

本模块负责：

1. 把统一的会话输入转换为 Anthropic Messages API 的请求格式。
   Messages API 不接受 role=system 的消息，系统提示必须放在顶层 ``system`` 字段，
   因此会话里的 system 消息会被合并进 ``system``。
2. 流式响应按事件类型解码（见 ClaudeStreamDecoder）。
3. 非流式响应取第一个文本块，并把 input/output token 统计映射为统一的 ChatUsage。
"""

from typing import Any, Dict, List, Optional

from xat_core.domain.models import CLAUDE_DEFAULT_API_URL, ChatResult, ChatUsage, Message
from xat_core.providers.base import HttpProviderClient, ProviderRequest
from xat_core.providers.stream_decoder import ClaudeStreamDecoder, StreamDecoder


class ClaudeClient(HttpProviderClient):
    """Claude 客户端实现。"""

    name = "claude"
    display_name = "Claude"

    def build_request(
        self, messages: List[Message], system: Optional[str], stream: bool
    ) -> ProviderRequest:
        cfg = self.config
        system_parts = [system] if system else []
        msgs: List[Dict[str, str]] = []
        for m in messages:
            if m.role == "system":
                # Messages API 只认顶层 system 字段
                if m.content:
                    system_parts.append(m.content)
                continue
            msgs.append(m.to_payload())

        body: Dict[str, Any] = {
            "model": cfg.model_name,
            "messages": msgs,
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "stream": stream,
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)

        base = (cfg.api_url or CLAUDE_DEFAULT_API_URL).rstrip("/")
        return ProviderRequest(
            url=f"{base}/v1/messages",
            headers={
                "Content-Type": "application/json",
                "x-api-key": cfg.api_key,
                "anthropic-version": cfg.resolved_api_version,
            },
            body=body,
        )

    def make_decoder(self) -> StreamDecoder:
        return ClaudeStreamDecoder()

    def parse_response(self, data: Dict[str, Any]) -> ChatResult:
        text = ""
        for block in data.get("content") or []:
            if isinstance(block, dict) and "text" in block:
                text = block.get("text") or ""
                break
        usage_raw = data.get("usage") or {}
        prompt = usage_raw.get("input_tokens")
        completion = usage_raw.get("output_tokens")
        total = None
        if prompt is not None and completion is not None:
            total = prompt + completion
        return ChatResult(
            content=text,
            role="assistant",
            model=data.get("model"),
            usage=ChatUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total),
            raw=data,
        )
