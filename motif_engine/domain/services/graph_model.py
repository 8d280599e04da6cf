"""图模型 (GraphModel) - 当前节点/边集合的唯一权威来源

业务定义：
- read() 总是返回最新已提交的快照，mutate() 返回后立即可见
- 执行控制器、持久化同步器、历史管理器都从这里读取，不持有私有副本
- 视图层通过 subscribe() 在每次提交后同步收到通知

设计原则：
- 单一值单元 + 监听者，没有镜像变量
- 提交前校验快照不变式，违例时模型保持不变
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from motif_engine.domain.entities.graph import GraphSnapshot

logger = logging.getLogger(__name__)

GraphListener = Callable[[GraphSnapshot], None]
GraphUpdater = Callable[[GraphSnapshot], GraphSnapshot]


class GraphModel:
    def __init__(self, snapshot: GraphSnapshot | None = None) -> None:
        initial = snapshot or GraphSnapshot()
        initial.check_integrity()
        self._snapshot = initial
        self._version = 0
        self._listeners: list[GraphListener] = []

    @property
    def version(self) -> int:
        """每次提交递增，持久化同步器用它判断是否有未保存的修改"""
        return self._version

    def read(self) -> GraphSnapshot:
        return self._snapshot

    def mutate(self, updater: GraphUpdater) -> GraphSnapshot:
        """以函数式方式更新图

        参数：
            updater: 接收当前快照、返回新快照的纯函数

        返回：
            提交后的快照

        抛出：
            DomainError: 新快照违反端点完整性，模型保持不变
        """
        updated = updater(self._snapshot)
        if updated is self._snapshot:
            return updated
        return self._commit(updated)

    def replace(self, snapshot: GraphSnapshot) -> GraphSnapshot:
        """整体替换（加载远端工作流、撤销/重做恢复）"""
        return self._commit(snapshot)

    def subscribe(self, listener: GraphListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: GraphListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _commit(self, snapshot: GraphSnapshot) -> GraphSnapshot:
        snapshot.check_integrity()
        self._snapshot = snapshot
        self._version += 1

        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"图模型监听者异常: {e}", exc_info=True)

        return snapshot
