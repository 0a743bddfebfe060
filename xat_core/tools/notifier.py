"""工具执行生命周期事件的分发。

每种事件有一个具名槽位，最多挂一个处理函数。分发是“发出即忘”的：
处理函数抛出的异常只记录日志，不会中断正在进行的工具执行。
"""

from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Optional

from xat_core.infrastructure.logging.logger import logger
from xat_core.tools.definitions import ToolDef


@dataclass
class ToolStartEvent:
    execution_id: str
    tool: ToolDef
    args: Dict[str, Any]
    message: str


@dataclass
class ToolProgressEvent:
    execution_id: str
    tool: ToolDef
    progress: Dict[str, Any]
    message: str


@dataclass
class ToolCompleteEvent:
    execution_id: str
    tool: ToolDef
    result: Any
    message: str
    duration: float


@dataclass
class ToolErrorEvent:
    execution_id: str
    tool: ToolDef
    error: BaseException
    message: str
    can_retry: bool


@dataclass
class ChainStartEvent:
    chain_id: str
    tool_count: int
    tools: List[str]


@dataclass
class ChainCompleteEvent:
    chain_id: str
    results: List[Any]
    success: bool


@dataclass
class UICallbacks:
    on_tool_start: Optional[Callable[[ToolStartEvent], None]] = None
    on_tool_progress: Optional[Callable[[ToolProgressEvent], None]] = None
    on_tool_complete: Optional[Callable[[ToolCompleteEvent], None]] = None
    on_tool_error: Optional[Callable[[ToolErrorEvent], None]] = None
    on_execution_start: Optional[Callable[[ChainStartEvent], None]] = None
    on_execution_complete: Optional[Callable[[ChainCompleteEvent], None]] = None


SLOT_NAMES = tuple(f.name for f in fields(UICallbacks))


class EventNotifier:
    def __init__(self, callbacks: Optional[UICallbacks] = None):
        self.callbacks = callbacks or UICallbacks()

    def set_callbacks(self, **handlers: Optional[Callable[[Any], None]]) -> None:
        """合并设置处理函数，例如 ``set_callbacks(on_tool_start=fn)``；传 None 表示清空该槽位。"""

        unknown = set(handlers) - set(SLOT_NAMES)
        if unknown:
            raise ValueError(f"Unknown callback slot(s): {', '.join(sorted(unknown))}")
        for name, handler in handlers.items():
            setattr(self.callbacks, name, handler)

    def tool_start(self, event: ToolStartEvent) -> None:
        self._dispatch("on_tool_start", self.callbacks.on_tool_start, event)

    def tool_progress(self, event: ToolProgressEvent) -> None:
        self._dispatch("on_tool_progress", self.callbacks.on_tool_progress, event)

    def tool_complete(self, event: ToolCompleteEvent) -> None:
        self._dispatch("on_tool_complete", self.callbacks.on_tool_complete, event)

    def tool_error(self, event: ToolErrorEvent) -> None:
        self._dispatch("on_tool_error", self.callbacks.on_tool_error, event)

    def execution_start(self, event: ChainStartEvent) -> None:
        self._dispatch("on_execution_start", self.callbacks.on_execution_start, event)

    def execution_complete(self, event: ChainCompleteEvent) -> None:
        self._dispatch("on_execution_complete", self.callbacks.on_execution_complete, event)

    @staticmethod
    def _dispatch(slot: str, handler: Optional[Callable[[Any], None]], event: Any) -> None:
        if handler is None:
            return
        try:
            handler(event)
        except Exception:
            logger.exception("notifier.callback_failed", extra={"extra": {"slot": slot}})
