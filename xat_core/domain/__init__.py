"""领域层模型。

包含：
- models: ModelConfiguration / Message / StreamEvent / ChatResult。
- exceptions: 业务异常类型定义。
"""
