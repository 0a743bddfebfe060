"""工具执行编排器。

负责：
1. 参数校验（必填参数、基本类型）。
2. 执行单个工具，并通过 EventNotifier 实时发出 start/progress/complete/error 事件。
3. 失败后按线性退避重试（第 n 次重试前等待 n * retry_delay 秒）。
4. 按顺序执行工具链，遇到重试耗尽仍失败的一步即停止。

每次执行的 Execution / ExecutionContext 都是调用方各自持有的局部对象，
编排器只保存注册表、通知器与只增不减的执行历史。
"""

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from xat_core.config.settings import settings
from xat_core.domain.exceptions import (
    BusinessError,
    ToolExecutionError,
    ToolNotFoundError,
    ValidationError,
)
from xat_core.infrastructure.logging.logger import logger
from xat_core.tools.definitions import ToolCall, ToolDef
from xat_core.tools.execution import (
    ChainStepResult,
    Execution,
    ExecutionChain,
    ExecutionContext,
    ToolInvocation,
)
from xat_core.tools.notifier import (
    ChainCompleteEvent,
    ChainStartEvent,
    EventNotifier,
    ToolCompleteEvent,
    ToolErrorEvent,
    ToolProgressEvent,
    ToolStartEvent,
)
from xat_core.tools.registry import ToolRegistry
from xat_core.tools.templates import format_message


# 不重试的错误：参数不变时重试也不可能成功
NON_RETRYABLE = (ValidationError, ToolNotFoundError)


def _matches_type(expected: str, value: Any) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, (list, tuple))
    if expected == "object":
        return isinstance(value, dict)
    if expected == "null":
        return value is None
    return True


def validate_arguments(tool: ToolDef, args: Mapping[str, Any]) -> None:
    """校验参数；失败抛出 ValidationError。"""

    for name in tool.required_params:
        if name not in args:
            raise ValidationError(
                code="MISSING_PARAMETER",
                message=f"Missing required parameter: {name}",
                tool_name=tool.name,
                parameter=name,
            )
    for key, value in args.items():
        param = tool.params.get(key)
        if param is None or not param.type:
            continue
        if not _matches_type(param.type, value):
            raise ValidationError(
                code="INVALID_PARAMETER_TYPE",
                message=f"Parameter {key} must be a {param.type}",
                tool_name=tool.name,
                parameter=key,
            )


class ToolOrchestrator:
    def __init__(
        self,
        registry: ToolRegistry,
        notifier: Optional[EventNotifier] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.registry = registry
        self.notifier = notifier or EventNotifier()
        self.max_retries = settings.tool_max_retries if max_retries is None else max_retries
        self.retry_delay = settings.tool_retry_delay if retry_delay is None else retry_delay
        self._sleep = sleep
        self._history: List[Execution] = []

    # ---- 注册表代理 ----

    def register_tool(self, tool: ToolDef) -> None:
        self.registry.register(tool)

    def get_tool(self, name: str) -> Optional[ToolDef]:
        return self.registry.get(name)

    def get_all_tools(self) -> List[ToolDef]:
        return self.registry.all()

    def get_execution_history(self) -> List[Execution]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history = []

    # ---- 单次执行 ----

    async def execute_tool(
        self,
        name: str,
        args: Optional[Dict[str, Any]] = None,
        context: Optional[ExecutionContext] = None,
    ) -> Any:
        """执行一个工具并返回其结果；失败时记录历史后重新抛出。"""

        tool = self.registry.resolve(name)
        args = dict(args or {})
        context = context or ExecutionContext()
        execution = Execution(tool_name=tool.name, args=args, retry_count=max(context.attempt - 1, 0))

        self.notifier.tool_start(
            ToolStartEvent(
                execution_id=execution.id,
                tool=tool,
                args=args,
                message=format_message(tool.is_currently, args),
            )
        )
        logger.info(
            "orchestrator.tool_start",
            extra={"extra": {"execution_id": execution.id, "tool": tool.name, "attempt": context.attempt}},
        )

        try:
            validate_arguments(tool, args)
            execution.mark_running()
            result = await self._invoke(tool, args, execution, context)
        except BusinessError as exc:
            self._fail(execution, tool, exc)
            raise
        except Exception as exc:
            wrapped = ToolExecutionError(
                code="TOOL_EXECUTION_ERROR",
                message=f"Tool {tool.name} failed: {exc}",
                tool_name=tool.name,
            )
            self._fail(execution, tool, wrapped)
            raise wrapped from exc

        execution.mark_completed(result)
        self._history.append(execution)
        self.notifier.tool_complete(
            ToolCompleteEvent(
                execution_id=execution.id,
                tool=tool,
                result=result,
                message=format_message(tool.has_already, args),
                duration=execution.duration or 0.0,
            )
        )
        logger.info(
            "orchestrator.tool_complete",
            extra={"extra": {"execution_id": execution.id, "tool": tool.name, "duration": execution.duration}},
        )
        return result

    async def _invoke(
        self,
        tool: ToolDef,
        args: Dict[str, Any],
        execution: Execution,
        context: ExecutionContext,
    ) -> Any:
        def on_progress(progress: Dict[str, Any]) -> None:
            self.notifier.tool_progress(
                ToolProgressEvent(
                    execution_id=execution.id,
                    tool=tool,
                    progress=progress,
                    message=progress.get("message") or format_message(tool.is_currently, args),
                )
            )

        invocation = ToolInvocation(
            execution_id=execution.id,
            tool=tool,
            context=context,
            on_progress=on_progress,
        )
        result = tool.implementation(args, invocation)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _fail(self, execution: Execution, tool: ToolDef, error: BusinessError) -> None:
        execution.mark_error(error)
        self._history.append(execution)
        can_retry = not isinstance(error, NON_RETRYABLE) and execution.retry_count < self.max_retries
        self.notifier.tool_error(
            ToolErrorEvent(
                execution_id=execution.id,
                tool=tool,
                error=error,
                message=f"Error: {error.message}",
                can_retry=can_retry,
            )
        )
        logger.warning(
            "orchestrator.tool_error",
            extra={
                "extra": {
                    "execution_id": execution.id,
                    "tool": tool.name,
                    "code": error.code,
                    "error": error.message,
                }
            },
        )

    # ---- 重试 ----

    async def execute_tool_with_retry(
        self,
        name: str,
        args: Optional[Dict[str, Any]] = None,
        context: Optional[ExecutionContext] = None,
    ) -> Any:
        """最多尝试 max_retries + 1 次；每次失败的错误按顺序记入 context.previous_errors。"""

        context = context or ExecutionContext()
        total = self.max_retries + 1
        for attempt in range(1, total + 1):
            context.attempt = attempt
            try:
                return await self.execute_tool(name, args, context)
            except NON_RETRYABLE:
                raise
            except BusinessError as exc:
                context.record_error(attempt, exc)
                if attempt >= total:
                    logger.error(
                        "orchestrator.retries_exhausted",
                        extra={"extra": {"tool": name, "attempts": total}},
                    )
                    raise
                delay = self.retry_delay * attempt
                logger.info(
                    "orchestrator.retry",
                    extra={"extra": {"tool": name, "attempt": attempt, "delay": delay}},
                )
                await self._sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover

    # ---- 工具链 ----

    async def execute_tool_chain(
        self,
        calls: Sequence[Union[ToolCall, Mapping[str, Any]]],
        context: Optional[ExecutionContext] = None,
    ) -> ExecutionChain:
        """严格按顺序执行；某一步最终失败时记录错误并停止，后续步骤不再尝试。"""

        base = context or ExecutionContext()
        chain = ExecutionChain(calls=[ToolCall.coerce(c) for c in calls])
        self.notifier.execution_start(
            ChainStartEvent(
                chain_id=chain.id,
                tool_count=len(chain.calls),
                tools=[c.tool for c in chain.calls],
            )
        )
        logger.info("orchestrator.chain_start", extra={"extra": {"chain_id": chain.id, "steps": len(chain.calls)}})

        for index, call in enumerate(chain.calls):
            step_context = ExecutionContext(
                chain_id=chain.id,
                step_index=index,
                total_steps=len(chain.calls),
                previous_results=list(chain.results),
                extra=dict(base.extra),
            )
            started = time.time()
            try:
                result = await self.execute_tool_with_retry(call.tool, call.args, step_context)
            except BusinessError as exc:
                chain.results.append(
                    ChainStepResult(
                        tool=call.tool,
                        args=call.args,
                        step_index=index,
                        success=False,
                        error=exc.message,
                    )
                )
                logger.warning(
                    "orchestrator.chain_halted",
                    extra={"extra": {"chain_id": chain.id, "step": index, "tool": call.tool}},
                )
                break
            chain.results.append(
                ChainStepResult(tool=call.tool, args=call.args, step_index=index, success=True, result=result)
            )
            logger.info(
                "orchestrator.chain_step",
                extra={"extra": {"chain_id": chain.id, "step": index, "elapsed": time.time() - started}},
            )

        self.notifier.execution_complete(
            ChainCompleteEvent(chain_id=chain.id, results=list(chain.results), success=chain.success)
        )
        logger.info(
            "orchestrator.chain_complete",
            extra={"extra": {"chain_id": chain.id, "success": chain.success, "steps_run": len(chain.results)}},
        )
        return chain
