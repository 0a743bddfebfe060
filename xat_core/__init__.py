"""XatBrowser 核心包。

提供浏览器助手的两块核心能力：
- 把 Azure OpenAI / Claude 的分块流式响应解码为统一的增量事件（providers）。
- 工具的校验、执行、重试与链式编排，并实时向 UI 发出进度事件（tools）。

另外包含模型配置目录（config）与基于 LangGraph 的规划-执行流程（flows）。
"""

from xat_core.providers.ai_client import AIClient
from xat_core.tools.orchestrator import ToolOrchestrator
from xat_core.tools.registry import ToolRegistry

__all__ = ["AIClient", "ToolOrchestrator", "ToolRegistry"]
