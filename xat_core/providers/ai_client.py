"""AIClient 门面。

调用方只和 AIClient 打交道：构造时按 ModelConfiguration.kind 选定一次适配器，
之后所有 send_message 调用都走同一个适配器，其他组件不再做 Provider 分支判断。
"""

import asyncio
from typing import Optional

import httpx

from xat_core.config.model_catalog import ModelCatalog
from xat_core.config.settings import settings
from xat_core.domain.models import ChatResult, ConversationInput, ModelConfiguration, StreamEvent
from xat_core.infrastructure.logging.logger import logger
from xat_core.providers import create_provider
from xat_core.providers.base import ProviderClient, StreamSink, deliver


class AIClient:
    """统一的 AI 调用入口。"""

    def __init__(
        self,
        config: ModelConfiguration,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._provider: ProviderClient = create_provider(config, transport=transport)

    @classmethod
    def from_model_id(
        cls,
        model_id: Optional[str],
        catalog: ModelCatalog,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AIClient":
        return cls(catalog.get(model_id), transport=transport)

    @property
    def provider(self) -> ProviderClient:
        return self._provider

    async def send_message(
        self,
        message: ConversationInput,
        on_stream: Optional[StreamSink] = None,
        system: Optional[str] = None,
    ) -> ChatResult:
        """发送一条消息或一段会话。

        Args:
            message: 用户文本，或 Message / {"role", "content"} 组成的会话。
            on_stream: 提供时走流式，按到达顺序收到 delta / error / done 事件，
                done 恰好一次。
            system: 可选的系统提示。
        """

        return await self._provider.send(message, on_stream=on_stream, system=system)


async def send_with_deadline(
    client: AIClient,
    message: ConversationInput,
    on_stream: StreamSink,
    *,
    system: Optional[str] = None,
    timeout: Optional[float] = None,
    fallback_message: Optional[str] = None,
) -> ChatResult:
    """在 send_message 之上加一个硬超时。

    超时前没有收到 done 时取消底层请求，把兜底文案作为最后一个 delta 发给 sink，
    再发 done。返回结果中的 content 为已收到的内容加兜底文案。
    """

    limit = timeout if timeout is not None else settings.stream_timeout
    fallback = fallback_message or settings.stream_fallback_message
    received: list[str] = []

    async def guarded(event: StreamEvent) -> None:
        # done 由本函数统一发出，保证兜底文案排在 done 之前
        if event.kind == "done":
            return
        if event.kind == "delta":
            received.append(event.content)
        await deliver(on_stream, event)

    try:
        return await asyncio.wait_for(
            client.send_message(message, on_stream=guarded, system=system), timeout=limit
        )
    except asyncio.TimeoutError:
        logger.warning(
            "ai_client.stream_timeout",
            extra={"extra": {"model": client.config.model_id, "timeout": limit}},
        )
        await deliver(on_stream, StreamEvent.delta(fallback))
        return ChatResult(content="".join(received) + fallback, model=client.config.model_name)
    finally:
        await deliver(on_stream, StreamEvent.done())
