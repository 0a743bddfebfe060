"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
上层（侧边栏 / 弹窗等 UI）统一捕获后“展示消息并恢复输入框”。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "API_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 tool_name、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigError(BusinessError):
    """模型配置文档无效，或请求了不存在的模型。"""


class TransportError(BusinessError):
    """与 Provider 通信失败。AI 客户端本身不做重试，重试属于编排层。"""


class NetworkError(TransportError):
    """网络层错误，例如连接失败、超时、流被中途断开等。"""


class ApiError(TransportError):
    """Provider 返回非 2xx/429 状态码时抛出，http_status 为上游状态码。"""


class RateLimitError(TransportError):
    """Provider 限流错误（429）。"""


class ProtocolParseError(BusinessError):
    """流中的单行事件无法解析。

    只在解码器内部抛出并被就地吸收，转换为一个 error 流事件，不会终止整条流。
    """


class ValidationError(BusinessError):
    """工具参数校验失败。用同样的参数重试不可能成功，因此从不重试。"""


class ToolNotFoundError(BusinessError):
    """请求的工具名未注册。"""


class ToolExecutionError(BusinessError):
    """工具实现执行失败，会按配置的次数重试后再向上抛出。"""


class ChainAbort(BusinessError):
    """工具链中某一步在重试耗尽后仍然失败，整条链提前终止。"""
