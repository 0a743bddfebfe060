"""工具状态文案模板。

模板中的 ``{{{ name }}}`` 会被参数值替换；找不到对应参数时原样保留，
这样模板写错时能在界面上直接看出来。
"""

import re
from typing import Any, Mapping, Optional

PLACEHOLDER = re.compile(r"\{\{\{\s*(\w+)\s*\}\}\}")


def format_message(template: Optional[str], args: Mapping[str, Any]) -> str:
    if not template:
        return ""

    def _sub(match: "re.Match[str]") -> str:
        value = args.get(match.group(1))
        if value is None:
            return match.group(0)
        return str(value)

    return PLACEHOLDER.sub(_sub, template)
