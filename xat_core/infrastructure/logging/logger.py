"""JSON 行日志。

结构化字段通过 ``extra={"extra": {...}}`` 传入并平铺到每行 JSON 中。
开启 ``log_redact_content`` 后，消息截断到 64 个字符，并丢弃
REDACTED_KEYS 中的字段（消息正文、工具参数与工具结果）。
"""

import json
import logging
from pathlib import Path
from datetime import datetime, timezone
from xat_core.config.settings import settings


REDACTED_KEYS = frozenset({"content", "args", "result"})


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("xat_core")
    logger.setLevel(logging.INFO)
    if logger.handlers:
        return logger
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "xat.log", encoding="utf-8")
    fh.setLevel(logging.INFO)

    class JsonFormatter(logging.Formatter):
        def format(self, record: logging.LogRecord) -> str:
            msg = record.getMessage()
            if settings.log_redact_content:
                msg = (msg or "")[:64]
            payload = {
                "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname,
                "name": record.name,
                "msg": msg,
            }
            extra = getattr(record, "extra", None)
            if isinstance(extra, dict):
                if settings.log_redact_content:
                    extra = {k: v for k, v in extra.items() if k not in REDACTED_KEYS}
                payload.update(extra)
            if record.exc_info:
                payload["exc"] = self.formatException(record.exc_info)
            return json.dumps(payload, ensure_ascii=False, default=str)

    fh.setFormatter(JsonFormatter())
    logger.addHandler(fh)
    return logger


logger = setup_logger()
