"""内置工具。

浏览器侧的副作用（打开标签页、搜索、导航、页面操作、截图等）由宿主环境通过
BrowserCapabilities 注入，这里只负责参数整理、进度上报与结果格式。
"""

import time
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote_plus

from xat_core.tools.definitions import ToolDef, ToolParam
from xat_core.tools.execution import ToolInvocation
from xat_core.tools.registry import ToolRegistry


SEARCH_URL = "https://www.google.com/search?q={query}"


class BrowserCapabilities(Protocol):
    """宿主环境提供的浏览器操作。每个方法返回宿主的原始响应 dict。"""

    async def search_web(self, query: str, tab_id: Optional[int] = None) -> Dict[str, Any]:
        ...

    async def open_tab(self, url: str) -> Dict[str, Any]:
        ...

    async def get_page_html(self, tab_id: Optional[int] = None) -> Dict[str, Any]:
        ...

    async def navigate(self, url: str) -> Dict[str, Any]:
        ...

    async def act(self, action: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        ...

    async def extract(self) -> Dict[str, Any]:
        ...

    async def observe(self, instruction: str) -> Dict[str, Any]:
        ...

    async def screenshot(self) -> Dict[str, Any]:
        ...


class ToolGenerator(Protocol):
    """根据描述合成一个新的 ToolDef。"""

    async def generate(self, description: str, name: Optional[str] = None) -> ToolDef:
        ...


def _timestamp() -> int:
    return int(time.time() * 1000)


class PlaceholderToolGenerator:
    """默认生成器：生成一个无参数、只返回成功标记的工具。"""

    async def generate(self, description: str, name: Optional[str] = None) -> ToolDef:
        tool_name = name or f"generated_{_timestamp()}"

        async def _run(args: Dict[str, Any], invocation: ToolInvocation) -> Dict[str, Any]:
            return {"success": True, "message": "Generated tool executed"}

        return ToolDef(
            name=tool_name,
            description=description,
            params={},
            implementation=_run,
            display_title=f"Generated: {description}",
            would_like_to=f"execute {description}",
            is_currently=f"executing {description}",
            has_already=f"completed {description}",
            group="generated",
        )


def _make_search_web(browser: BrowserCapabilities):
    async def _run(args: Dict[str, Any], invocation: ToolInvocation) -> Dict[str, Any]:
        query = args["query"]
        invocation.on_progress({"message": f"Searching for: {query}"})
        response = await browser.search_web(query, args.get("tab_id"))
        return {
            "success": True,
            "query": query,
            "tab_id": (response or {}).get("tabId"),
            "url": SEARCH_URL.format(query=quote_plus(query)),
            "timestamp": _timestamp(),
        }

    return _run


def _make_open_new_tab(browser: BrowserCapabilities):
    async def _run(args: Dict[str, Any], invocation: ToolInvocation) -> Dict[str, Any]:
        url = args["url"]
        invocation.on_progress({"message": f"Opening: {url}"})
        response = await browser.open_tab(url)
        return {
            "success": True,
            "url": url,
            "tab_id": (response or {}).get("tabId"),
            "timestamp": _timestamp(),
        }

    return _run


def _make_get_page_content(browser: BrowserCapabilities):
    async def _run(args: Dict[str, Any], invocation: ToolInvocation) -> Dict[str, Any]:
        invocation.on_progress({"message": "Extracting page content..."})
        response = await browser.get_page_html(args.get("tab_id"))
        html = (response or {}).get("html") or ""
        return {
            "success": True,
            "html": html,
            "length": len(html),
            "timestamp": _timestamp(),
        }

    return _run


def _make_navigate(browser: BrowserCapabilities):
    async def _run(args: Dict[str, Any], invocation: ToolInvocation) -> Dict[str, Any]:
        url = args["url"]
        invocation.on_progress({"message": f"Navigating to: {url}"})
        response = await browser.navigate(url) or {}
        return {"success": True, "url": url, "tab_id": response.get("tabId"), "timestamp": _timestamp()}

    return _run


def _make_act(browser: BrowserCapabilities):
    async def _run(args: Dict[str, Any], invocation: ToolInvocation) -> Dict[str, Any]:
        action = args["action"]
        variables = args.get("variables")
        invocation.on_progress({"message": f"Performing: {action}"})
        response = await browser.act(action, variables) or {}
        return {
            "success": True,
            "action": action,
            "variables": variables,
            "result": response.get("result"),
            "timestamp": _timestamp(),
        }

    return _run


def _make_extract(browser: BrowserCapabilities):
    async def _run(args: Dict[str, Any], invocation: ToolInvocation) -> Dict[str, Any]:
        invocation.on_progress({"message": "Extracting page content..."})
        response = await browser.extract() or {}
        return {
            "success": True,
            "content": response.get("content"),
            "length": response.get("length"),
            "timestamp": _timestamp(),
        }

    return _run


def _make_observe(browser: BrowserCapabilities):
    async def _run(args: Dict[str, Any], invocation: ToolInvocation) -> Dict[str, Any]:
        instruction = args["instruction"]
        invocation.on_progress({"message": f"Observing: {instruction}"})
        response = await browser.observe(instruction) or {}
        return {
            "success": True,
            "instruction": instruction,
            "observations": response.get("observations"),
            "count": response.get("count"),
            "timestamp": _timestamp(),
        }

    return _run


def _make_screenshot(browser: BrowserCapabilities):
    async def _run(args: Dict[str, Any], invocation: ToolInvocation) -> Dict[str, Any]:
        invocation.on_progress({"message": "Taking screenshot..."})
        response = await browser.screenshot() or {}
        return {
            "success": True,
            "filename": response.get("filename"),
            "data_url": response.get("dataUrl"),
            "base64": response.get("base64"),
            "timestamp": _timestamp(),
        }

    return _run


def _make_generate_tool(registry: ToolRegistry, generator: ToolGenerator):
    async def _run(args: Dict[str, Any], invocation: ToolInvocation) -> Dict[str, Any]:
        description = args["description"]
        invocation.on_progress({"message": f"Generating tool: {description}"})
        tool = await generator.generate(description, args.get("name"))
        registry.register(tool)
        return {
            "success": True,
            "tool_name": tool.name,
            "description": tool.description,
            "timestamp": _timestamp(),
        }

    return _run


def default_tool_defs(
    browser: BrowserCapabilities,
    registry: ToolRegistry,
    generator: Optional[ToolGenerator] = None,
) -> List[ToolDef]:
    generator = generator or PlaceholderToolGenerator()
    tab_id = ToolParam(
        name="tab_id",
        description="Optional tab ID",
        required=False,
        schema={"type": "number"},
    )
    return [
        ToolDef(
            name="search_web",
            description="Search the web for information",
            params={
                "query": ToolParam(
                    name="query",
                    description="The search query",
                    required=True,
                    schema={"type": "string"},
                ),
                "tab_id": tab_id,
            },
            implementation=_make_search_web(browser),
            display_title="Search Web",
            would_like_to="search for {{{ query }}}",
            is_currently="searching for {{{ query }}}",
            has_already="found search results for {{{ query }}}",
            group="web",
        ),
        ToolDef(
            name="open_new_tab",
            description="Open a new browser tab",
            params={
                "url": ToolParam(
                    name="url",
                    description="The URL to open",
                    required=True,
                    schema={"type": "string"},
                )
            },
            implementation=_make_open_new_tab(browser),
            display_title="Open New Tab",
            would_like_to="open a new tab with {{{ url }}}",
            is_currently="opening new tab with {{{ url }}}",
            has_already="opened new tab with {{{ url }}}",
            group="navigation",
            is_instant=True,
        ),
        ToolDef(
            name="get_page_content",
            description="Extract content from the current page",
            params={"tab_id": tab_id},
            implementation=_make_get_page_content(browser),
            display_title="Get Page Content",
            would_like_to="analyze the current page content",
            is_currently="extracting page content",
            has_already="extracted page content",
            group="analysis",
            readonly=True,
            is_instant=True,
        ),
        ToolDef(
            name="generate_tool",
            description="Generate a specialized tool based on description",
            params={
                "description": ToolParam(
                    name="description",
                    description="Description of what the tool should do",
                    required=True,
                    schema={"type": "string"},
                ),
                "name": ToolParam(
                    name="name",
                    description="Optional name for the tool",
                    required=False,
                    schema={"type": "string"},
                ),
            },
            implementation=_make_generate_tool(registry, generator),
            display_title="Generate Tool",
            would_like_to="create a specialized tool for {{{ description }}}",
            is_currently="generating tool for {{{ description }}}",
            has_already="created tool for {{{ description }}}",
            group="meta",
        ),
        ToolDef(
            name="navigate",
            description="Navigate to a URL in the browser",
            params={
                "url": ToolParam(
                    name="url",
                    description="The URL to navigate to",
                    required=True,
                    schema={"type": "string"},
                )
            },
            implementation=_make_navigate(browser),
            display_title="Navigate to URL",
            would_like_to="navigate to {{{ url }}}",
            is_currently="navigating to {{{ url }}}",
            has_already="navigated to {{{ url }}}",
            group="navigation",
        ),
        ToolDef(
            name="act",
            description="Performs an action on a web page element",
            params={
                "action": ToolParam(
                    name="action",
                    description="The action to perform (e.g., 'Click the login button')",
                    required=True,
                    schema={"type": "string"},
                ),
                "variables": ToolParam(
                    name="variables",
                    description="Variables used in the action template",
                    required=False,
                    schema={"type": "object"},
                ),
            },
            implementation=_make_act(browser),
            display_title="Perform Action",
            would_like_to="perform action: {{{ action }}}",
            is_currently="performing action: {{{ action }}}",
            has_already="completed action: {{{ action }}}",
            group="interaction",
        ),
        ToolDef(
            name="extract",
            description="Extracts all text content from the current page",
            params={},
            implementation=_make_extract(browser),
            display_title="Extract Content",
            would_like_to="extract all text from the current page",
            is_currently="extracting page content",
            has_already="extracted page content",
            group="analysis",
            readonly=True,
            is_instant=True,
        ),
        ToolDef(
            name="observe",
            description="Observes elements on the web page",
            params={
                "instruction": ToolParam(
                    name="instruction",
                    description="Instruction for observation (e.g., 'find the login button')",
                    required=True,
                    schema={"type": "string"},
                )
            },
            implementation=_make_observe(browser),
            display_title="Observe Elements",
            would_like_to="observe elements: {{{ instruction }}}",
            is_currently="observing elements: {{{ instruction }}}",
            has_already="observed elements: {{{ instruction }}}",
            group="analysis",
            readonly=True,
            is_instant=True,
        ),
        ToolDef(
            name="screenshot",
            description="Takes a screenshot of the current page",
            params={},
            implementation=_make_screenshot(browser),
            display_title="Take Screenshot",
            would_like_to="take a screenshot of the current page",
            is_currently="taking screenshot",
            has_already="captured screenshot",
            group="analysis",
            readonly=True,
            is_instant=True,
        ),
    ]


def register_default_tools(
    registry: ToolRegistry,
    browser: BrowserCapabilities,
    generator: Optional[ToolGenerator] = None,
) -> ToolRegistry:
    for tool in default_tool_defs(browser, registry, generator):
        registry.register(tool)
    return registry
