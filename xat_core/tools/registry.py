"""工具注册表。

注册表是显式持有、注入给 ToolOrchestrator 的一个普通映射，不是全局单例。
注册（含同名覆盖）是唯一的修改操作，可以在某个工具执行过程中调用，
例如 generate_tool 在工具链中途注册新工具。
"""

from typing import Dict, Iterable, Iterator, List, Optional

from xat_core.domain.exceptions import ToolNotFoundError
from xat_core.infrastructure.logging.logger import logger
from xat_core.tools.definitions import ToolDef


class ToolRegistry:
    def __init__(self, tools: Optional[Iterable[ToolDef]] = None):
        self._tools: Dict[str, ToolDef] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolDef) -> None:
        replaced = tool.name in self._tools
        self._tools[tool.name] = tool
        logger.info("tool_registry.register", extra={"extra": {"tool": tool.name, "replaced": replaced}})

    def get(self, name: str) -> Optional[ToolDef]:
        return self._tools.get(name)

    def resolve(self, name: str) -> ToolDef:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(code="TOOL_NOT_FOUND", message=f'Tool "{name}" not found', tool_name=name)
        return tool

    def all(self) -> List[ToolDef]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools)

    def schemas(self) -> List[dict]:
        return [tool.to_schema() for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDef]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)
