"""LangGraph construction and node implementations."""

from __future__ import annotations

import ast
import json
import re
from typing import Any, Dict, List

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from xat_core.domain.exceptions import BusinessError
from xat_core.flows.state import AgentState
from xat_core.infrastructure.logging.logger import logger
from xat_core.providers.ai_client import AIClient
from xat_core.tools.orchestrator import ToolOrchestrator

SYSTEM_PROMPT = (
    "You are a browser automation assistant. Always answer with exactly what was asked for, "
    "and when JSON is requested respond with a single JSON object and nothing else."
)

ANALYSIS_PROMPT = """Analyze this user query and create a complete execution plan: "{query}"

Available tools:
{tools}

Return a JSON object with:
{{
    "needsNewTools": boolean,
    "toolsToGenerate": [
        {{"description": "tool description", "priority": 1}}
    ],
    "executionPlan": [
        {{"tool": "toolName", "args": {{}}, "description": "what this step does"}}
    ],
    "expectedOutcome": "what the user should expect"
}}

Be specific about tool generation needs and create a detailed step-by-step plan."""

RESPONSE_PROMPT = """Based on the execution results, provide a comprehensive response to the user query: "{query}"

Execution Results:
{results}

Provide a well-structured, informative response that directly answers the user's question."""

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _fallback_analysis(query: str) -> Dict[str, Any]:
    return {
        "needsNewTools": False,
        "toolsToGenerate": [],
        "executionPlan": [
            {"tool": "search_web", "args": {"query": query}, "description": "Search for information"}
        ],
        "expectedOutcome": "Search results",
    }


def parse_analysis(text: str, query: str) -> Dict[str, Any]:
    """Parse the planner output, falling back to a single web search."""

    cleaned = _FENCE.sub("", (text or "").strip())
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        try:
            payload = ast.literal_eval(cleaned)
        except (ValueError, SyntaxError):
            logger.warning("agent_graph.analysis_unparseable", extra={"extra": {"preview": cleaned[:120]}})
            return _fallback_analysis(query)
    if not isinstance(payload, dict):
        return _fallback_analysis(query)
    plan = [step for step in payload.get("executionPlan") or [] if isinstance(step, dict) and step.get("tool")]
    payload["executionPlan"] = plan
    payload["toolsToGenerate"] = [t for t in payload.get("toolsToGenerate") or [] if isinstance(t, dict)]
    return payload


async def _call_llm(client: AIClient, prompt: str) -> str:
    result = await client.send_message(prompt, system=SYSTEM_PROMPT)
    return result.content


async def analyze_node(state: AgentState, client: AIClient, orchestrator: ToolOrchestrator) -> Dict[str, Any]:
    query = state["query"]
    tools = "\n".join(f"- {t.name}: {t.description}" for t in orchestrator.get_all_tools())
    logger.info("analyze_node.start", extra={"extra": {"model": client.config.model_id}})
    analysis = parse_analysis(await _call_llm(client, ANALYSIS_PROMPT.format(query=query, tools=tools)), query)
    wants_tools = bool(analysis.get("needsNewTools"))
    logger.info(
        "analyze_node.end",
        extra={"extra": {"steps": len(analysis["executionPlan"]), "needs_new_tools": wants_tools}},
    )
    return {
        "plan": analysis["executionPlan"],
        "tools_to_generate": analysis["toolsToGenerate"] if wants_tools else [],
        "tools_generated": 0,
        "explanation": str(analysis.get("expectedOutcome") or ""),
    }


async def generate_tools_node(state: AgentState, orchestrator: ToolOrchestrator) -> Dict[str, Any]:
    generated = 0
    for spec in state.get("tools_to_generate") or []:
        description = str(spec.get("description") or "").strip()
        if not description:
            continue
        try:
            await orchestrator.execute_tool("generate_tool", {"description": description})
            generated += 1
        except BusinessError as exc:
            logger.warning("generate_tools_node.failed", extra={"extra": {"error": exc.message}})
    return {"tools_generated": generated}


async def execute_node(state: AgentState, orchestrator: ToolOrchestrator) -> Dict[str, Any]:
    chain = await orchestrator.execute_tool_chain(state.get("plan") or [])
    return {"chain": chain}


async def respond_node(state: AgentState, client: AIClient) -> Dict[str, Any]:
    chain = state.get("chain")
    results: List[Dict[str, Any]] = [r.to_dict() for r in chain.results] if chain else []
    prompt = RESPONSE_PROMPT.format(
        query=state["query"],
        results=json.dumps(results, ensure_ascii=False, indent=2, default=str),
    )
    return {"response": await _call_llm(client, prompt)}


def analysis_router(state: AgentState) -> str:
    if state.get("tools_to_generate"):
        return "generate_tools"
    return "execute"


def build_graph(client: AIClient, orchestrator: ToolOrchestrator) -> CompiledStateGraph:
    async def analyze(s: AgentState) -> Dict[str, Any]:
        return await analyze_node(s, client, orchestrator)

    async def generate_tools(s: AgentState) -> Dict[str, Any]:
        return await generate_tools_node(s, orchestrator)

    async def execute(s: AgentState) -> Dict[str, Any]:
        return await execute_node(s, orchestrator)

    async def respond(s: AgentState) -> Dict[str, Any]:
        return await respond_node(s, client)

    graph = StateGraph(AgentState)
    graph.add_node("analyze", analyze)
    graph.add_node("generate_tools", generate_tools)
    graph.add_node("execute", execute)
    graph.add_node("respond", respond)
    graph.set_entry_point("analyze")
    graph.add_conditional_edges(
        "analyze", analysis_router, {"generate_tools": "generate_tools", "execute": "execute"}
    )
    graph.add_edge("generate_tools", "execute")
    graph.add_edge("execute", "respond")
    graph.add_edge("respond", END)
    return graph.compile()
