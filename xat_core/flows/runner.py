"""High-level entry point for the browser agent graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from xat_core.flows.graph import build_graph
from xat_core.flows.state import AgentState
from xat_core.providers.ai_client import AIClient
from xat_core.tools.orchestrator import ToolOrchestrator


@dataclass
class AgentOutcome:
    success: bool
    response: str
    execution_results: List[Dict[str, Any]] = field(default_factory=list)
    tools_generated: int = 0
    explanation: str = ""


async def run_agent(query: str, *, client: AIClient, orchestrator: ToolOrchestrator) -> AgentOutcome:
    """Plan the query, run the resulting tool chain and answer from its results.

    Args:
        query: 用户输入
        client: 用于规划与最终回答的 AIClient
        orchestrator: 执行工具链的编排器（其注册表需包含计划中用到的工具）
    """

    state: AgentState = {"query": query}
    result = await build_graph(client, orchestrator).ainvoke(state)
    chain = result.get("chain")
    return AgentOutcome(
        success=chain.success if chain else True,
        response=result.get("response") or "",
        execution_results=[r.to_dict() for r in chain.results] if chain else [],
        tools_generated=result.get("tools_generated") or 0,
        explanation=result.get("explanation") or "",
    )
