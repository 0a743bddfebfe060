"""Provider 抽象接口与公共 HTTP 实现。

上层 AIClient 不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（AzureOpenAIClient / ClaudeClient）。
- 负责：把统一的会话输入转成具体 API 请求体、为流式响应提供对应的
  StreamDecoder、把非流式响应 JSON 解析为 ChatResult。

发送请求、读取流、错误映射这些与厂商无关的部分集中在 HttpProviderClient 中。
"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

import httpx

from xat_core.config.settings import settings as default_settings
from xat_core.domain.exceptions import ApiError, NetworkError, RateLimitError, TransportError
from xat_core.domain.models import (
    ChatResult,
    ConversationInput,
    Message,
    ModelConfiguration,
    StreamEvent,
    normalize_messages,
)
from xat_core.infrastructure.logging.logger import logger
from xat_core.providers.stream_decoder import StreamDecoder


StreamSink = Callable[[StreamEvent], Union[None, Awaitable[None]]]


@dataclass
class ProviderRequest:
    """一次待发送的 HTTP 请求。"""

    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    - name: Provider 名称，用于日志。
    - build_request: 构造请求（URL、头、请求体）。
    - make_decoder: 为一条流创建新的解码器实例。
    - parse_response: 解析非流式响应。
    - send: 执行一次调用；传入 on_stream 时走流式。
    """

    name: str

    def build_request(
        self, messages: List[Message], system: Optional[str], stream: bool
    ) -> ProviderRequest:
        ...

    def make_decoder(self) -> StreamDecoder:
        ...

    def parse_response(self, data: Dict[str, Any]) -> ChatResult:
        ...

    async def send(
        self,
        conversation: ConversationInput,
        on_stream: Optional[StreamSink] = None,
        system: Optional[str] = None,
    ) -> ChatResult:
        ...


async def deliver(sink: StreamSink, event: StreamEvent) -> None:
    """调用方的 sink 既可以是普通函数也可以是协程函数。"""

    result = sink(event)
    if inspect.isawaitable(result):
        await result


class HttpProviderClient:
    """基于 httpx.AsyncClient 的公共实现，子类只负责厂商相关的格式转换。"""

    name = "generic"
    display_name = "Provider"

    def __init__(
        self,
        config: ModelConfiguration,
        cfg=default_settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._settings = cfg
        self._transport = transport

    # ---- 子类实现 ----

    def build_request(
        self, messages: List[Message], system: Optional[str], stream: bool
    ) -> ProviderRequest:
        raise NotImplementedError

    def make_decoder(self) -> StreamDecoder:
        raise NotImplementedError

    def parse_response(self, data: Dict[str, Any]) -> ChatResult:
        raise NotImplementedError

    # ---- 对外入口 ----

    async def send(
        self,
        conversation: ConversationInput,
        on_stream: Optional[StreamSink] = None,
        system: Optional[str] = None,
    ) -> ChatResult:
        messages = normalize_messages(conversation)
        request = self.build_request(messages, system, stream=on_stream is not None)
        logger.info(
            f"{self.name}.request",
            extra={
                "extra": {
                    "url": request.url,
                    "model": self.config.model_name,
                    "message_count": len(messages),
                    "streaming": on_stream is not None,
                    "has_system": bool(system),
                }
            },
        )
        if on_stream is not None:
            return await self._stream(request, on_stream)
        return await self._post(request)

    # ---- 非流式 ----

    async def _post(self, request: ProviderRequest) -> ChatResult:
        try:
            async with self._client() as client:
                resp = await client.post(request.url, json=request.body, headers=request.headers)
        except httpx.RequestError as e:
            raise NetworkError(
                code="NETWORK_ERROR",
                message=f"Failed to get response from {self.display_name}: {e}",
                provider=self.name,
            ) from e
        self._raise_for_status(resp)
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(
                code="API_ERROR",
                message=f"{self.display_name} returned a non-JSON response",
                http_status=resp.status_code,
                provider=self.name,
            ) from e
        return self.parse_response(data)

    # ---- 流式 ----

    async def _stream(self, request: ProviderRequest, on_stream: StreamSink) -> ChatResult:
        decoder = self.make_decoder()
        parts: List[str] = []
        state = {"role": "assistant", "done": False}

        async def forward(event: StreamEvent) -> None:
            if event.kind == "delta":
                parts.append(event.content)
                state["role"] = event.role
            elif event.kind == "done":
                state["done"] = True
            await deliver(on_stream, event)

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", request.url, json=request.body, headers=request.headers
                ) as resp:
                    if resp.status_code >= 400:
                        await resp.aread()
                        self._raise_for_status(resp)
                    logger.info(f"{self.name}.stream_started")
                    async for chunk in resp.aiter_bytes():
                        for event in decoder.feed(chunk):
                            await forward(event)
                        if decoder.finished:
                            break
            for event in decoder.close():
                await forward(event)
        except TransportError as e:
            await forward(StreamEvent.error(e.message))
            raise
        except httpx.RequestError as e:
            err = NetworkError(
                code="NETWORK_ERROR",
                message=f"Failed to stream from {self.display_name}: {e}",
                provider=self.name,
            )
            await forward(StreamEvent.error(err.message))
            raise err from e
        finally:
            if not state["done"]:
                # 流被取消或中断时同样要给调用方一个结束信号
                await forward(StreamEvent.done())

        logger.info(
            f"{self.name}.stream_finished",
            extra={"extra": {"chunks": decoder.events_emitted}},
        )
        return ChatResult(content="".join(parts), role=state["role"], model=self.config.model_name)

    # ---- 辅助方法 ----

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.http_timeout,
            trust_env=False,
            transport=self._transport,
        )

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        message = self._error_message(resp)
        logger.warning(
            f"{self.name}.api_error",
            extra={"extra": {"status": resp.status_code, "error": message}},
        )
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message=message, http_status=429, provider=self.name)
        raise ApiError(code="API_ERROR", message=message, http_status=resp.status_code, provider=self.name)

    def _error_message(self, resp: httpx.Response) -> str:
        fallback = f"{self.display_name} API error: {resp.status_code}"
        try:
            data = resp.json()
        except ValueError:
            return fallback
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        return fallback
