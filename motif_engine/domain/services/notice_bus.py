"""提示总线 (NoticeBus) - 面向用户的提示信息通道

业务定义：
- 执行控制器、历史管理器、持久化同步器通过它发布提示（UI 渲染成 toast）
- 领域层只负责发布，不关心渲染

设计原则：
- 同步分发：发布者处于事件循环中，处理器只做轻量工作
- 错误隔离：单个处理器异常不影响其他处理器
- 保留提示日志，便于测试断言和调试
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    title: str
    description: str | None = None
    timestamp: datetime = field(default_factory=datetime.now, compare=False)


NoticeHandler = Callable[[Notice], None]


class NoticeBus:
    """提示总线

    使用示例：
        bus = NoticeBus()
        bus.subscribe(lambda notice: toast(notice.title))
        bus.warning("Save failed", "Changes will be retried")
    """

    def __init__(self) -> None:
        self._handlers: list[NoticeHandler] = []
        self._notice_log: list[Notice] = []

    @property
    def notice_log(self) -> list[Notice]:
        """已发布的提示（只读）"""
        return self._notice_log

    def subscribe(self, handler: NoticeHandler) -> None:
        self._handlers.append(handler)
        logger.debug(f"订阅提示, 当前订阅者数: {len(self._handlers)}")

    def unsubscribe(self, handler: NoticeHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, notice: Notice) -> None:
        self._notice_log.append(notice)

        for handler in list(self._handlers):
            try:
                handler(notice)
            except Exception as e:
                logger.error(f"提示处理器异常: {e}", exc_info=True)

    def info(self, title: str, description: str | None = None) -> None:
        self.publish(Notice(NoticeLevel.INFO, title, description))

    def success(self, title: str, description: str | None = None) -> None:
        self.publish(Notice(NoticeLevel.SUCCESS, title, description))

    def warning(self, title: str, description: str | None = None) -> None:
        self.publish(Notice(NoticeLevel.WARNING, title, description))

    def error(self, title: str, description: str | None = None) -> None:
        self.publish(Notice(NoticeLevel.ERROR, title, description))

    def clear_log(self) -> None:
        self._notice_log.clear()
