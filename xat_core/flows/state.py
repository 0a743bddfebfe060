"""State definition for the browser agent graph."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict

from xat_core.tools.execution import ExecutionChain


class AgentState(TypedDict, total=False):
    """State shared across LangGraph nodes."""

    query: str
    plan: List[Dict[str, Any]]
    tools_to_generate: List[Dict[str, Any]]
    tools_generated: int
    explanation: str
    chain: Optional[ExecutionChain]
    response: Optional[str]
