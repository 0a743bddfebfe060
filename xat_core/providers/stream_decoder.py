"""流式响应解码器。

网络读取的分块边界与逻辑事件边界并不对齐：一行 ``data: {...}`` 可能被拆到
两次读取里，一个多字节 UTF-8 字符也可能被拆开。StreamDecoder 负责：

1. 增量解码字节，把文本追加到内部缓冲区。
2. 按换行切分，保留最后一段（可能不完整的）文本等待下一次 feed。
3. 只解析完整的、以 ``data: `` 开头的行，产出 StreamEvent。

两个 Provider 的差异只在“从 JSON 信封里取增量文本”这一步，
由子类实现 ``_decode_payload``。
"""

import codecs
import json
from typing import Any, Dict, List, Optional, Union

from xat_core.domain.exceptions import ProtocolParseError
from xat_core.domain.models import StreamEvent
from xat_core.infrastructure.logging.logger import logger


DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class StreamDecoder:
    """行式流解码器基类。

    - feed(chunk): 追加一块原始数据，返回本次新产出的完整事件。
    - close(): 流结束时调用，解析残留的最后一行，并在尚未结束时补发 done。

    一旦产出 done，解码器进入 finished 状态，之后的 feed/close 都返回空列表。
    """

    provider = "generic"

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._finished = False
        self.events_emitted = 0

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: Union[bytes, str]) -> List[StreamEvent]:
        if self._finished:
            return []
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._parse_lines(lines)

    def close(self) -> List[StreamEvent]:
        if self._finished:
            return []
        tail = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        events = self._parse_lines([tail]) if tail else []
        if not self._finished:
            logger.info(
                "stream_decoder.synthesized_done",
                extra={"extra": {"provider": self.provider, "events": self.events_emitted}},
            )
            events.append(self._finish())
        return events

    # ---- 内部实现 ----

    def _parse_lines(self, lines: List[str]) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        for raw in lines:
            event = self._parse_line(raw.rstrip("\r"))
            if event is None:
                continue
            if event.is_terminal:
                events.append(self._finish())
                break
            self.events_emitted += 1
            events.append(event)
        return events

    def _parse_line(self, line: str) -> Optional[StreamEvent]:
        if not line.strip() or not line.startswith(DATA_PREFIX):
            return None
        data = line[len(DATA_PREFIX):]
        if data == DONE_SENTINEL:
            return StreamEvent.done()
        try:
            payload = self._load_json(data)
        except ProtocolParseError as exc:
            logger.warning(
                "stream_decoder.parse_error",
                extra={"extra": {"provider": self.provider, "error": exc.message}},
            )
            return StreamEvent.error(f"Error parsing stream data: {exc.message}")
        return self._decode_payload(payload)

    @staticmethod
    def _load_json(data: str) -> Dict[str, Any]:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ProtocolParseError(code="STREAM_PARSE_ERROR", message=str(exc)) from exc
        if not isinstance(payload, dict):
            raise ProtocolParseError(
                code="STREAM_PARSE_ERROR",
                message=f"expected a JSON object, got {type(payload).__name__}",
            )
        return payload

    def _finish(self) -> StreamEvent:
        self._finished = True
        return StreamEvent.done()

    def _decode_payload(self, payload: Dict[str, Any]) -> Optional[StreamEvent]:
        raise NotImplementedError


class AzureStreamDecoder(StreamDecoder):
    """Azure OpenAI 信封：``choices[0].delta.content`` / ``choices[0].delta.role``。"""

    provider = "azure"

    def _decode_payload(self, payload: Dict[str, Any]) -> Optional[StreamEvent]:
        choices = payload.get("choices") or []
        if not choices:
            return None
        delta = (choices[0] or {}).get("delta") or {}
        content = delta.get("content") or ""
        if not content:
            return None
        return StreamEvent.delta(content, delta.get("role") or "assistant")


class ClaudeStreamDecoder(StreamDecoder):
    """Anthropic 信封：按 ``type`` 区分事件种类。

    - message_start: 仅记录日志。
    - content_block_delta: 取 ``delta.text`` 作为增量。
    - message_delta: 视为结束。
    其他事件（ping、content_block_start/stop、message_stop）忽略。
    """

    provider = "claude"

    def _decode_payload(self, payload: Dict[str, Any]) -> Optional[StreamEvent]:
        kind = payload.get("type")
        if kind == "content_block_delta":
            text = (payload.get("delta") or {}).get("text") or ""
            return StreamEvent.delta(text) if text else None
        if kind == "message_delta":
            return StreamEvent.done()
        if kind == "message_start":
            message = payload.get("message") or {}
            logger.info("stream_decoder.claude_message_start", extra={"extra": {"id": message.get("id")}})
        return None
