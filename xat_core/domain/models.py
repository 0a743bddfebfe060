"""统一的对话与流式事件数据模型。

本模块定义了两个 Provider（Azure OpenAI / Claude）之间共享的标准数据结构：

- ModelConfiguration: 单个模型的连接与生成参数，构造后不可变。
- Message: 一条对话消息（system/user/assistant）。
- StreamEvent: 解码器产出的流式事件（delta / done / error）。
- ChatResult: 从 Provider 响应解析后的统一结果。

Provider 适配器只依赖这些模型，并负责在各自的 API JSON 与这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Sequence, Union


# TypeA = Azure OpenAI chat completions，TypeB = Anthropic Claude messages
ProviderKind = Literal["azure", "claude"]

Role = Literal["system", "user", "assistant"]

AZURE_DEFAULT_API_VERSION = "2024-02-15-preview"
CLAUDE_DEFAULT_API_VERSION = "2023-06-01"
CLAUDE_DEFAULT_API_URL = "https://api.anthropic.com"


@dataclass(frozen=True)
class ModelConfiguration:
    """单个模型的配置。

    - kind: Provider 类型，决定 AIClient 选用哪个适配器。
    - model_id: 配置文档中的模型 ID（界面上展示给用户选择的名字）。
    - model_name: 厂商侧的模型名 / Azure 部署名。
    - api_version: Azure 为 api-version 查询参数，Claude 为 anthropic-version 头。
    """

    kind: ProviderKind
    model_id: str
    api_url: str
    api_key: str
    model_name: str
    max_tokens: int = 1000
    temperature: float = 0.7
    top_p: float = 1.0
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    api_version: Optional[str] = None

    @property
    def resolved_api_version(self) -> str:
        if self.api_version:
            return self.api_version
        if self.kind == "claude":
            return CLAUDE_DEFAULT_API_VERSION
        return AZURE_DEFAULT_API_VERSION


@dataclass
class Message:
    """一条对话消息。核心层把会话历史当作不透明输入，不负责持有或裁剪。"""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


MessageInput = Union[str, Message, Dict[str, Any]]
ConversationInput = Union[str, Sequence[MessageInput]]


def normalize_messages(conversation: ConversationInput) -> list[Message]:
    """把字符串 / dict / Message 混合输入统一成 Message 列表。"""

    if isinstance(conversation, str):
        return [Message(role="user", content=conversation)]
    messages: list[Message] = []
    for item in conversation:
        if isinstance(item, Message):
            messages.append(item)
        elif isinstance(item, str):
            messages.append(Message(role="user", content=item))
        else:
            messages.append(
                Message(role=item.get("role") or "user", content=str(item.get("content") or ""))
            )
    return messages


@dataclass
class StreamEvent:
    """StreamDecoder 产出的单个流事件。

    kind:
        - "delta": 一段增量文本，content/role 有效。
        - "done": 流结束，每条流恰好一次，且一定是最后一个事件。
        - "error": 单行解析失败等可恢复错误，message 有效，不终止流。
    """

    kind: Literal["delta", "done", "error"]
    content: str = ""
    role: str = "assistant"
    message: Optional[str] = None

    @classmethod
    def delta(cls, content: str, role: str = "assistant") -> "StreamEvent":
        return cls(kind="delta", content=content, role=role or "assistant")

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(kind="done")

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(kind="error", message=message)

    @property
    def is_terminal(self) -> bool:
        return self.kind == "done"


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


@dataclass
class ChatResult:
    """一次对话调用的最终结果。

    非流式调用时为第一个候选回答；流式调用时 content 为所有 delta 的拼接。
    """

    content: str
    role: str = "assistant"
    model: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[Dict[str, Any]] = field(default=None, repr=False)
