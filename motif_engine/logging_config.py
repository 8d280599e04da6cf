"""日志配置

根据 Settings.log_format 在根 logger 上安装 JSON 或文本格式化器。
各模块仍然使用 logging.getLogger(__name__) 获取自己的 logger。
"""

import json
import logging
from datetime import UTC, datetime

from motif_engine.config import Settings, settings

_TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """把日志记录序列化为单行 JSON"""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(config: Settings | None = None) -> None:
    """配置根 logger

    参数：
        config: 配置对象，默认使用全局 settings

    说明：
    - 重复调用会替换之前安装的 handler，不会重复输出
    """
    config = config or settings

    handler = logging.StreamHandler()
    if config.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_motif_engine_handler", False):
            root.removeHandler(existing)
    handler._motif_engine_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(config.log_level.upper())
