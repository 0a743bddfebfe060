"""工具数据结构定义。

这些 dataclass 描述了“工具”的 schema，既用于：
- 将可用工具列表暴露给 LLM（ToolDef.to_schema）。
- 在 ToolOrchestrator 中校验参数、渲染状态文案并调用实现（ToolDef.implementation）。
- 描述工具链中的一步调用（ToolCall）。
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

if TYPE_CHECKING:
    from xat_core.tools.execution import ToolInvocation


# 实现可以是普通函数，也可以是协程函数
ToolImpl = Callable[[Dict[str, Any], "ToolInvocation"], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class ToolParam:
    """单个工具参数的定义。

    schema 里的 type 为 JSON Schema 基本类型名；未声明 type 时不做类型校验。
    """

    name: str
    description: str
    required: bool
    schema: Dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> Optional[str]:
        return self.schema.get("type")


@dataclass(frozen=True)
class ToolDef:
    """一个可供编排器执行的工具定义。

    - would_like_to / is_currently / has_already: 三种状态下展示给用户的文案模板，
      可包含 ``{{{ param }}}`` 占位符。
    - readonly: 工具不产生副作用。
    - is_instant: 工具几乎立即完成，UI 可以不展示进度。
    - requires_confirmation: 执行前需要用户确认（由 UI 层处理）。

    注册后不会被原地修改；同名重新注册即整体替换。
    """

    name: str
    description: str
    params: Dict[str, ToolParam]
    implementation: ToolImpl
    display_title: str = ""
    would_like_to: str = ""
    is_currently: str = ""
    has_already: str = ""
    group: str = "general"
    readonly: bool = False
    is_instant: bool = False
    requires_confirmation: bool = False

    @property
    def required_params(self) -> List[str]:
        return [name for name, p in self.params.items() if p.required]

    def to_schema(self) -> Dict[str, Any]:
        """渲染为暴露给 LLM 的 function 描述。"""

        properties: Dict[str, Any] = {}
        for name, param in self.params.items():
            schema = dict(param.schema)
            if param.description:
                schema["description"] = param.description
            properties[name] = schema
        return {
            "type": "function",
            "name": self.name,
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "required": self.required_params,
                    "properties": properties,
                },
            },
        }

    @classmethod
    def from_schema(cls, schema: Mapping[str, Any], implementation: ToolImpl, **extra: Any) -> "ToolDef":
        """从 ``{name, function: {name, description, parameters}}`` 结构构造 ToolDef。"""

        function = schema.get("function") or {}
        name = schema.get("name") or function.get("name")
        if not name:
            raise ValueError("tool schema has no name")
        parameters = function.get("parameters") or {}
        required = set(parameters.get("required") or [])
        params: Dict[str, ToolParam] = {}
        for pname, pschema in (parameters.get("properties") or {}).items():
            pschema = dict(pschema or {})
            description = str(pschema.pop("description", ""))
            params[pname] = ToolParam(
                name=pname,
                description=description,
                required=pname in required,
                schema=pschema,
            )
        for key in ("display_title", "would_like_to", "is_currently", "has_already", "group"):
            if key in schema and key not in extra:
                extra[key] = schema[key]
        return cls(
            name=str(name),
            description=str(function.get("description") or ""),
            params=params,
            implementation=implementation,
            **extra,
        )


@dataclass
class ToolCall:
    """工具链中的一步：``{"tool": <name>, "args": {...}}``。"""

    tool: str
    args: Dict[str, Any] = field(default_factory=dict)
    description: str = ""

    @classmethod
    def coerce(cls, value: Union["ToolCall", Mapping[str, Any]]) -> "ToolCall":
        if isinstance(value, ToolCall):
            return value
        return cls(
            tool=str(value.get("tool") or ""),
            args=dict(value.get("args") or {}),
            description=str(value.get("description") or ""),
        )
