import json
import time
import logging
from settings import config
from .context import request_id_var, operation_var, course_code_var


def _context_fields() -> dict[str, str]:
    out: dict[str, str] = {}
    rid = request_id_var.get()
    op = operation_var.get()
    course = course_code_var.get()
    if rid:
        out["request_id"] = rid
    if op:
        out["operation"] = op
    if course:
        out["course_code"] = course
    return out


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "app": config.APP_NAME,
        }
        payload.update(_context_fields())
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class PlainFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[37m",
        "INFO": "\033[36m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        parts = [
            f"{time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(record.created))}",
            f"{color}{record.levelname:<8}{self.RESET}",
            record.name,
            f"msg={record.getMessage()}",
        ]
        parts.extend(f"{k}={v}" for k, v in _context_fields().items())
        if record.exc_info:
            parts.append(self.formatException(record.exc_info))
        return " | ".join(parts)
