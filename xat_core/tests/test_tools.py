import asyncio

import pytest

from xat_core.domain.exceptions import ToolNotFoundError
from xat_core.tools.builtin import PlaceholderToolGenerator, register_default_tools
from xat_core.tools.definitions import ToolCall, ToolDef, ToolParam
from xat_core.tools.execution import ExecutionContext, ToolInvocation
from xat_core.tools.registry import ToolRegistry
from xat_core.tools.templates import format_message


def _noop(args, invocation):
    return None


def test_format_message_substitutes_and_keeps_unknown():
    assert format_message("searching for {{{ query }}}", {"query": "cats"}) == "searching for cats"
    assert format_message("{{{a}}}/{{{ b }}}", {"a": 1, "b": None}) == "1/{{{ b }}}"
    assert format_message("open {{{ url }}}", {}) == "open {{{ url }}}"
    assert format_message("", {"a": 1}) == ""
    assert format_message(None, {}) == ""


def test_registry_replaces_same_name():
    first = ToolDef(name="t", description="first", params={}, implementation=_noop)
    second = ToolDef(name="t", description="second", params={}, implementation=_noop)
    registry = ToolRegistry([first])
    registry.register(second)

    assert len(registry) == 1
    assert registry.resolve("t") is second
    assert "t" in registry
    assert registry.names() == ["t"]


def test_registry_resolve_unknown():
    with pytest.raises(ToolNotFoundError) as excinfo:
        ToolRegistry().resolve("ghost")
    assert excinfo.value.code == "TOOL_NOT_FOUND"
    assert ToolRegistry().get("ghost") is None


def test_to_schema_and_back():
    tool = ToolDef(
        name="search_web",
        description="Search the web",
        params={
            "query": ToolParam(
                name="query", description="The search query", required=True, schema={"type": "string"}
            ),
            "tab_id": ToolParam(name="tab_id", description="Tab", required=False, schema={"type": "number"}),
        },
        implementation=_noop,
    )
    schema = tool.to_schema()
    assert schema["type"] == "function"
    assert schema["function"]["parameters"] == {
        "type": "object",
        "required": ["query"],
        "properties": {
            "query": {"type": "string", "description": "The search query"},
            "tab_id": {"type": "number", "description": "Tab"},
        },
    }

    rebuilt = ToolDef.from_schema(schema, _noop, group="web")
    assert rebuilt.required_params == ["query"]
    assert rebuilt.params["tab_id"].type == "number"
    assert rebuilt.group == "web"


def test_untyped_parameter_keeps_schema_as_declared():
    schema = {
        "name": "count_things",
        "function": {
            "name": "count_things",
            "description": "Count things",
            "parameters": {"type": "object", "properties": {"count": {"description": "untyped"}}},
        },
    }
    tool = ToolDef.from_schema(schema, _noop)
    assert tool.params["count"].type is None
    assert tool.to_schema()["function"]["parameters"]["properties"] == {"count": {"description": "untyped"}}
    assert ToolParam(name="x", description="", required=False).schema == {}


def test_tool_call_coerce():
    call = ToolCall.coerce({"tool": "open_new_tab", "args": {"url": "https://x"}})
    assert call == ToolCall(tool="open_new_tab", args={"url": "https://x"})
    assert ToolCall.coerce(call) is call


class FakeBrowser:
    def __init__(self):
        self.calls = []

    async def search_web(self, query, tab_id=None):
        self.calls.append(("search", query, tab_id))
        return {"tabId": 3}

    async def open_tab(self, url):
        self.calls.append(("open", url))
        return {"tabId": 4}

    async def get_page_html(self, tab_id=None):
        self.calls.append(("html", tab_id))
        return {"html": "<h1>title</h1>"}

    async def navigate(self, url):
        self.calls.append(("navigate", url))
        return {"tabId": 5}

    async def act(self, action, variables=None):
        self.calls.append(("act", action, variables))
        return {"result": "clicked"}

    async def extract(self):
        self.calls.append(("extract",))
        return {"content": "title", "length": 5}

    async def observe(self, instruction):
        self.calls.append(("observe", instruction))
        return {"observations": ["#login"], "count": 1}

    async def screenshot(self):
        self.calls.append(("screenshot",))
        return {"filename": "shot.png", "dataUrl": "data:image/png;base64,AAA", "base64": "AAA"}


def _invoke(tool, args):
    progress = []
    invocation = ToolInvocation(
        execution_id="exec_test",
        tool=tool,
        context=ExecutionContext(),
        on_progress=progress.append,
    )
    return asyncio.run(tool.implementation(args, invocation)), progress


def test_builtin_browser_tools():
    browser = FakeBrowser()
    registry = register_default_tools(ToolRegistry(), browser)
    assert registry.names() == [
        "search_web",
        "open_new_tab",
        "get_page_content",
        "generate_tool",
        "navigate",
        "act",
        "extract",
        "observe",
        "screenshot",
    ]

    result, progress = _invoke(registry.resolve("search_web"), {"query": "rust async"})
    assert result["url"] == "https://www.google.com/search?q=rust+async"
    assert result["tab_id"] == 3
    assert progress == [{"message": "Searching for: rust async"}]

    result, _ = _invoke(registry.resolve("open_new_tab"), {"url": "https://example.com"})
    assert result["tab_id"] == 4

    result, _ = _invoke(registry.resolve("get_page_content"), {})
    assert result["html"] == "<h1>title</h1>"
    assert result["length"] == len("<h1>title</h1>")

    assert browser.calls == [("search", "rust async", None), ("open", "https://example.com"), ("html", None)]


def test_builtin_page_interaction_tools():
    browser = FakeBrowser()
    registry = register_default_tools(ToolRegistry(), browser)

    result, progress = _invoke(registry.resolve("navigate"), {"url": "https://example.com/login"})
    assert result["tab_id"] == 5
    assert progress == [{"message": "Navigating to: https://example.com/login"}]

    act = registry.resolve("act")
    assert act.params["variables"].type == "object"
    result, _ = _invoke(act, {"action": "Click the login button", "variables": {"user": "me"}})
    assert result["result"] == "clicked"
    assert result["variables"] == {"user": "me"}

    result, _ = _invoke(registry.resolve("extract"), {})
    assert (result["content"], result["length"]) == ("title", 5)

    observe = registry.resolve("observe")
    assert format_message(observe.is_currently, {"instruction": "find login"}) == "observing elements: find login"
    result, _ = _invoke(observe, {"instruction": "find login"})
    assert (result["observations"], result["count"]) == (["#login"], 1)

    screenshot = registry.resolve("screenshot")
    assert screenshot.readonly and screenshot.is_instant
    result, progress = _invoke(screenshot, {})
    assert result["filename"] == "shot.png"
    assert result["data_url"].startswith("data:image/png")
    assert progress == [{"message": "Taking screenshot..."}]

    assert browser.calls == [
        ("navigate", "https://example.com/login"),
        ("act", "Click the login button", {"user": "me"}),
        ("extract",),
        ("observe", "find login"),
        ("screenshot",),
    ]


def test_generate_tool_registers_new_tool():
    registry = register_default_tools(ToolRegistry(), FakeBrowser(), PlaceholderToolGenerator())
    result, _ = _invoke(registry.resolve("generate_tool"), {"description": "summarize page"})

    assert result["tool_name"].startswith("generated_")
    generated = registry.resolve(result["tool_name"])
    assert generated.group == "generated"
    assert generated.description == "summarize page"
