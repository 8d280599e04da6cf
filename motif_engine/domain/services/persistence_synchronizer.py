"""持久化同步器 - 把图模型最终一致地同步到远端存储

业务定义：
- 图发生变化后调用 schedule_save()，静默期（默认 1.5 秒）结束后保存一次，
  连续多次修改只产生一次保存，内容为最后的状态
- 保存时读取图模型的最新快照，先写节点再写边，然后读取远端现有的 ID，
  删除不在快照中的孤儿节点/边
- 以下情况跳过保存：执行锁被持有、工作流身份尚未就绪、图尚未初始化
- 同一时刻最多一个保存在进行；保存期间又有修改时，完成后自动补一次防抖保存
- 保存失败不向调用方抛出：连续失败达到 3 次时提醒，之后每 10 次再提醒一次，
  任意一次成功后计数清零

设计原则：
- 保存永远从 GraphModel.read() 取数据，不持有私有副本
- 孤儿以远端实际内容为准：写入后失败的残留、加载时被忽略的悬空连线都会被清理
"""

from __future__ import annotations

import logging

from motif_engine.config import settings
from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.exceptions import PersistenceError
from motif_engine.domain.ports.workflow_store import WorkflowStorePort
from motif_engine.domain.services.debounce import Debouncer
from motif_engine.domain.services.editing_session import EditingSession
from motif_engine.domain.services.graph_model import GraphModel
from motif_engine.domain.services.notice_bus import NoticeBus

logger = logging.getLogger(__name__)


class PersistenceSynchronizer:
    def __init__(
        self,
        graph: GraphModel,
        session: EditingSession,
        store: WorkflowStorePort,
        notices: NoticeBus,
        *,
        debounce_seconds: float | None = None,
        save_wait_timeout: float | None = None,
        warn_threshold: int | None = None,
        reminder_interval: int | None = None,
    ) -> None:
        self._graph = graph
        self._session = session
        self._store = store
        self._notices = notices
        self._save_wait_timeout = (
            save_wait_timeout if save_wait_timeout is not None else settings.save_wait_timeout_seconds
        )
        self._warn_threshold = warn_threshold or settings.save_failure_warn_threshold
        self._reminder_interval = reminder_interval or settings.save_failure_reminder_interval

        self._debouncer: Debouncer[bool] = Debouncer(
            self._save,
            debounce_seconds if debounce_seconds is not None else settings.autosave_debounce_seconds,
            name="autosave",
        )
        self._debouncer.subscribe(self._on_save_complete)

        self._consecutive_failures = 0
        self._saved_version: int | None = None
        self._attempt_version: int | None = None
        self._closed = False

    # ==================== 状态 ====================

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def is_dirty(self) -> bool:
        return self._graph.version != self._saved_version

    @property
    def save_in_flight(self) -> bool:
        return self._debouncer.in_flight

    @property
    def save_pending(self) -> bool:
        return self._debouncer.pending

    def mark_synced(self, snapshot: GraphSnapshot) -> None:
        """加载工作流之后调用：当前图与远端一致，无需保存"""
        self._saved_version = self._graph.version

    # ==================== 保存入口 ====================

    def schedule_save(self) -> None:
        if self._closed:
            return
        self._debouncer.schedule()

    async def save_now(self) -> bool | None:
        """立即保存

        返回：
            保存结果；已有保存在进行时改为防抖保存并返回 None
        """
        task = self._debouncer.run_now()
        if task is None:
            logger.info("已有保存在进行，改为防抖保存")
            self.schedule_save()
            return None
        return await task

    async def wait_for_in_flight_save(self, timeout: float | None = None) -> bool:
        """有界等待进行中的保存结束，超时返回 False"""
        limit = self._save_wait_timeout if timeout is None else timeout
        finished = await self._debouncer.wait_in_flight(limit)
        if not finished:
            logger.warning(f"等待进行中的保存超时（{limit} 秒），继续执行降级路径")
        return finished

    async def save_after_delete(self) -> bool | None:
        """删除节点后的保存：先等待进行中的保存，再立即保存删除后的状态"""
        await self.wait_for_in_flight_save()
        return await self.save_now()

    async def flush(self) -> bool | None:
        """关闭前把尚未到期的防抖保存立即执行"""
        return await self._debouncer.flush()

    def close(self) -> None:
        self._closed = True
        self._debouncer.cancel()

    # ==================== 保存实现 ====================

    async def _save(self) -> bool:
        self._attempt_version = self._graph.version
        if self._session.is_executing:
            logger.debug("执行中，跳过保存")
            return False

        identity = self._session.identity
        if identity is None or not self._session.initialized:
            logger.debug("工作流身份尚未就绪，跳过保存")
            return False

        if not self._session.save_lock.acquire():
            logger.debug("已有保存持有保存锁，丢弃本次保存")
            return False

        snapshot = self._graph.read()
        version = self._graph.version
        workflow_id = identity.workflow_id

        try:
            if not await self._store.save_nodes(workflow_id, snapshot.nodes):
                raise PersistenceError("保存节点失败")

            if not await self._store.save_edges(workflow_id, snapshot.edges):
                raise PersistenceError("保存连线失败")

            await self._delete_orphans(workflow_id, snapshot)
        except Exception as e:
            self._record_failure(workflow_id, snapshot, e)
            return False
        finally:
            self._session.save_lock.release()

        self._consecutive_failures = 0
        self._saved_version = version
        logger.debug(
            f"工作流已保存: {workflow_id}, 节点数={len(snapshot.nodes)}, 连线数={len(snapshot.edges)}"
        )
        return True

    async def _delete_orphans(self, workflow_id: str, snapshot: GraphSnapshot) -> None:
        local_edge_ids = {edge.id for edge in snapshot.edges}
        orphan_edges = [
            edge_id for edge_id in await self._store.list_edge_ids(workflow_id) if edge_id not in local_edge_ids
        ]
        if orphan_edges:
            if not await self._store.delete_edges(workflow_id, orphan_edges):
                raise PersistenceError("删除孤儿连线失败")

        local_node_ids = set(snapshot.node_ids())
        orphan_nodes = [
            node_id for node_id in await self._store.list_node_ids(workflow_id) if node_id not in local_node_ids
        ]
        if orphan_nodes:
            if not await self._store.delete_nodes(workflow_id, orphan_nodes):
                raise PersistenceError("删除孤儿节点失败")
            logger.info(f"已删除远端孤儿节点: {orphan_nodes}")

    def _record_failure(self, workflow_id: str, snapshot: GraphSnapshot, error: Exception) -> None:
        self._consecutive_failures += 1
        logger.error(
            f"自动保存失败: workflow_id={workflow_id}, 节点数={len(snapshot.nodes)}, "
            f"连线数={len(snapshot.edges)}, 连续失败={self._consecutive_failures}, 错误={error}"
        )

        failures = self._consecutive_failures
        past_threshold = failures - self._warn_threshold
        if past_threshold == 0 or (past_threshold > 0 and past_threshold % self._reminder_interval == 0):
            self._notices.warning(
                "Auto-save is having issues",
                "Your changes may not be saved. Check your connection.",
            )

    def _on_save_complete(self, _saved: bool) -> None:
        # 保存期间发生的修改需要再保存一次
        changed_during_save = self._graph.version != self._attempt_version
        if changed_during_save and self.is_dirty and not self._debouncer.pending:
            self.schedule_save()
