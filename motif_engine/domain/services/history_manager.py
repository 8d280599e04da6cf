"""撤销/重做历史

业务定义：
- 历史是快照的有界线性序列加一个当前下标
- push：丢弃下标之后的“未来”，追加当前图的深拷贝；超过上限时淘汰最旧的一条
- 执行锁持有期间 push 是空操作（运行过程中的状态变化不进入历史）
- undo/redo 把相邻快照的深拷贝写回图模型，到达边界时返回 False

设计原则：
- 入栈和恢复都深拷贝，历史条目与当前图之间没有共享的可变数据
"""

from __future__ import annotations

import logging

from motif_engine.config import settings
from motif_engine.domain.entities.graph import GraphSnapshot, clone_snapshot
from motif_engine.domain.services.editing_session import EditingSession
from motif_engine.domain.services.graph_model import GraphModel
from motif_engine.domain.services.notice_bus import NoticeBus

logger = logging.getLogger(__name__)


class HistoryManager:
    def __init__(
        self,
        graph: GraphModel,
        session: EditingSession,
        notices: NoticeBus,
        *,
        max_history_size: int | None = None,
    ) -> None:
        self._graph = graph
        self._session = session
        self._notices = notices
        self._max_history_size = max_history_size or settings.max_history_size
        self._entries: list[GraphSnapshot] = []
        self._index = -1

    @property
    def index(self) -> int:
        return self._index

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def initialize(self, snapshot: GraphSnapshot) -> None:
        self._entries = [clone_snapshot(snapshot)]
        self._index = 0

    def push(self) -> bool:
        """记录当前图；执行期间不记录

        返回：
            是否真正追加了条目
        """
        if self._session.is_executing:
            logger.debug("执行中，跳过历史记录")
            return False

        if self._index < len(self._entries) - 1:
            del self._entries[self._index + 1 :]

        self._entries.append(clone_snapshot(self._graph.read()))
        self._index += 1

        if len(self._entries) > self._max_history_size:
            self._entries.pop(0)
            self._index -= 1

        return True

    def undo(self) -> bool:
        if not self.can_undo:
            self._notices.info("Nothing to undo")
            return False

        self._index -= 1
        self._graph.replace(clone_snapshot(self._entries[self._index]))
        self._notices.success("Undo")
        return True

    def redo(self) -> bool:
        if not self.can_redo:
            self._notices.info("Nothing to redo")
            return False

        self._index += 1
        self._graph.replace(clone_snapshot(self._entries[self._index]))
        self._notices.success("Redo")
        return True
