"""一次工具执行及工具链的运行期数据结构。

Execution 的状态只允许向前推进::

    pending -> running -> completed
                       -> error
    pending -> error            (参数校验失败，从未进入 running)

ExecutionContext 是每次调用各自持有的上下文对象，编排器本身不保存“当前执行”。
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional
from uuid import uuid4

from xat_core.domain.exceptions import ChainAbort
from xat_core.tools.definitions import ToolCall, ToolDef


ExecutionStatus = Literal["pending", "running", "completed", "error"]

_TRANSITIONS: Dict[str, set] = {
    "pending": {"running", "error"},
    "running": {"completed", "error"},
    "completed": set(),
    "error": set(),
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def new_execution_id() -> str:
    return f"exec_{_now_ms()}_{uuid4().hex[:9]}"


@dataclass
class Execution:
    """单个工具的一次调用记录。"""

    tool_name: str
    args: Dict[str, Any]
    id: str = field(default_factory=new_execution_id)
    status: ExecutionStatus = "pending"
    retry_count: int = 0
    result: Any = None
    error: Optional[BaseException] = None
    started_at: float = field(default_factory=time.time)
    ended_at: Optional[float] = None

    def _move(self, target: ExecutionStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise RuntimeError(f"Illegal execution transition {self.status} -> {target}")
        self.status = target

    def mark_running(self) -> None:
        self._move("running")

    def mark_completed(self, result: Any) -> None:
        self._move("completed")
        self.result = result
        self.ended_at = time.time()

    def mark_error(self, error: BaseException) -> None:
        self._move("error")
        self.error = error
        self.ended_at = time.time()

    @property
    def duration(self) -> Optional[float]:
        """耗时（秒）；未结束时为 None。"""

        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at


@dataclass
class ExecutionContext:
    """调用方传给一次执行的上下文。

    Attributes:
        attempt: 当前是第几次尝试（从 1 开始）。
        previous_errors: 之前失败尝试的记录 ``{"attempt", "error", "timestamp"}``，
            工具实现可据此调整行为。
        chain_id / step_index / total_steps: 工具链信息，单独调用时为空。
        previous_results: 工具链中前面各步的结果。
        extra: 调用方自定义的其他字段。
    """

    attempt: int = 1
    previous_errors: List[Dict[str, Any]] = field(default_factory=list)
    chain_id: Optional[str] = None
    step_index: Optional[int] = None
    total_steps: Optional[int] = None
    previous_results: List["ChainStepResult"] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def record_error(self, attempt: int, error: BaseException) -> None:
        self.previous_errors.append(
            {
                "attempt": attempt,
                "error": getattr(error, "message", None) or str(error),
                "timestamp": _now_ms(),
            }
        )


@dataclass
class ToolInvocation:
    """传给工具实现的第二个参数。"""

    execution_id: str
    tool: ToolDef
    context: ExecutionContext
    on_progress: Callable[[Dict[str, Any]], None]


@dataclass
class ChainStepResult:
    """工具链中一步的结果。"""

    tool: str
    args: Dict[str, Any]
    step_index: int
    success: bool
    result: Any = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "tool": self.tool,
            "args": self.args,
            "success": self.success,
            "step_index": self.step_index,
        }
        if self.success:
            data["result"] = self.result
        else:
            data["error"] = self.error
        return data


@dataclass
class ExecutionChain:
    """一条工具链：计划的调用列表 + 已执行各步的结果。"""

    calls: List[ToolCall]
    id: str = field(default_factory=lambda: f"chain_{_now_ms()}")
    results: List[ChainStepResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def aborted(self) -> bool:
        return any(not r.success for r in self.results)

    def raise_for_status(self) -> None:
        for step in self.results:
            if not step.success:
                raise ChainAbort(
                    code="CHAIN_ABORTED",
                    message=f"Step {step.step_index} ({step.tool}) failed: {step.error}",
                    chain_id=self.id,
                    step_index=step.step_index,
                    completed_steps=len(self.results) - 1,
                )
