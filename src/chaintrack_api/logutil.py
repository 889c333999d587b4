import logging
import re
from typing import Iterable


# Hosted RPC providers (Alchemy, Infura) embed the API key as the last path segment
_RPC_KEY_IN_URL = re.compile(r"(https?://[^\s/]+/v\d+/)[A-Za-z0-9_-]{16,}")


class RedactingFilter(logging.Filter):
    """Redact RPC API keys and secret-bearing fields from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = str(record.getMessage())
            msg = _RPC_KEY_IN_URL.sub(r"\1***", msg)
            msg = re.sub(
                r"(Authorization:?)\s+\S+", r"\1 ***", msg, flags=re.IGNORECASE
            )
            msg = re.sub(
                r"(apikey|api_key|token|secret|password|private_key|key)=\S+",
                r"\1=***",
                msg,
                flags=re.IGNORECASE,
            )
            record.msg = msg
            record.args = None
        except Exception:
            pass
        return True


def setup_logging(
    level=logging.INFO,
    loggers: Iterable[str] = ("chaintrack_api", "uvicorn", "uvicorn.access"),
) -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level)
    f = RedactingFilter()
    # logger filters do not apply to child loggers; handler filters do
    for h in logging.getLogger().handlers:
        h.addFilter(f)
    for name in loggers:
        lg = logging.getLogger(name)
        lg.setLevel(level)
        lg.addFilter(f)
