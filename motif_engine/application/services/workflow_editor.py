"""WorkflowEditor - UI 外壳调用的编辑会话门面

业务场景：
- 新建/加载工作流
- 添加、修改、移动、删除节点；连线与删线；选择
- 撤销/重做
- 运行单个节点、运行整图、停止节点、关闭会话

设计原则：
- 只做编排：图模型修改 → 历史记录 → 防抖保存
- 执行锁持有期间拒绝结构性修改（增删节点、连线、撤销/重做），选择不受限制
- 依赖通过构造函数注入（存储端口、生成服务端口），便于测试替换
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from motif_engine.domain.entities.edge import Edge
from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.entities.node import Node
from motif_engine.domain.exceptions import ConcurrencyRejection
from motif_engine.domain.ports.generation_service import GenerationServicePort
from motif_engine.domain.ports.workflow_store import WorkflowStorePort
from motif_engine.domain.services import connection_rules
from motif_engine.domain.services.editing_session import EditingSession
from motif_engine.domain.services.execution_controller import (
    ExecutionController,
    NodeRunResult,
    WorkflowRunResult,
)
from motif_engine.domain.services.graph_model import GraphModel, GraphUpdater
from motif_engine.domain.services.history_manager import HistoryManager
from motif_engine.domain.services.notice_bus import NoticeBus
from motif_engine.domain.services.persistence_synchronizer import PersistenceSynchronizer
from motif_engine.domain.services.workflow_validator import WorkflowValidator
from motif_engine.domain.value_objects.execution_status import ExecutionStatus
from motif_engine.domain.value_objects.node_kind import NodeKind
from motif_engine.domain.value_objects.position import Position
from motif_engine.domain.value_objects.validation import ConnectionValidationResult
from motif_engine.domain.value_objects.workflow_identity import WorkflowIdentity

logger = logging.getLogger(__name__)


class WorkflowEditor:
    """编辑会话门面

    依赖：
    - store: 远端工作流存储
    - generation_service: 外部生成服务

    可选参数用于测试时缩短防抖/超时时间。
    """

    def __init__(
        self,
        store: WorkflowStorePort,
        generation_service: GenerationServicePort,
        *,
        notices: NoticeBus | None = None,
        debounce_seconds: float | None = None,
        save_wait_timeout: float | None = None,
        generation_timeout: float | None = None,
        max_history_size: int | None = None,
    ) -> None:
        self._store = store
        self.session = EditingSession()
        self.notices = notices or NoticeBus()
        self.graph = GraphModel()
        self.validator = WorkflowValidator()
        self.history = HistoryManager(
            self.graph, self.session, self.notices, max_history_size=max_history_size
        )
        self.persistence = PersistenceSynchronizer(
            self.graph,
            self.session,
            store,
            self.notices,
            debounce_seconds=debounce_seconds,
            save_wait_timeout=save_wait_timeout,
        )
        self.controller = ExecutionController(
            self.graph,
            self.session,
            generation_service,
            self.notices,
            validator=self.validator,
            persistence=self.persistence,
            timeout_seconds=generation_timeout,
        )
        self._selected: list[str] = []

    # ==================== 会话 ====================

    async def create_workflow(
        self,
        owner_id: str,
        name: str = "My Workflow",
        initial: GraphSnapshot | None = None,
    ) -> str | None:
        """新建工作流

        图在远端创建完成之前就可以编辑；创建完成后写入身份，
        如果期间已有修改则安排一次保存。

        返回：
            workflow_id；远端创建失败时返回 None（图仍可继续编辑）
        """
        self.graph.replace(initial or GraphSnapshot())
        self.history.initialize(self.graph.read())
        self.session.initialized = True
        initial_version = self.graph.version

        try:
            workflow_id = await self._store.create_workflow(owner_id, name)
        except Exception as e:
            logger.error(f"创建工作流失败: owner_id={owner_id}, 错误={e}", exc_info=True)
            self.notices.error("Could not create workflow", "Your changes are not being saved.")
            return None

        self.session.assign_identity(WorkflowIdentity(workflow_id=workflow_id, owner_id=owner_id))
        logger.info(f"工作流已创建: {workflow_id}")

        # 初始内容或创建期间的修改都还没有落盘
        if self.graph.read().nodes or self.graph.version != initial_version:
            self.persistence.schedule_save()
        return workflow_id

    async def load_workflow(self, workflow_id: str, owner_id: str) -> GraphSnapshot:
        """加载远端工作流

        抛出：
            NotFoundError: 工作流不存在
        """
        snapshot = await self._store.load_workflow(workflow_id)
        self.session.assign_identity(WorkflowIdentity(workflow_id=workflow_id, owner_id=owner_id))
        self.graph.replace(snapshot)
        self.history.initialize(snapshot)
        self.persistence.mark_synced(snapshot)
        self.session.initialized = True
        logger.info(
            f"工作流已加载: {workflow_id}, 节点数={len(snapshot.nodes)}, 连线数={len(snapshot.edges)}"
        )
        return snapshot

    async def shutdown(self) -> None:
        """关闭会话：中止进行中的生成，落盘尚未到期的保存"""
        self.controller.abort_all()
        await self.persistence.flush()
        self.persistence.close()

    # ==================== 节点 ====================

    def add_node(self, kind: NodeKind, position: Position, **data: Any) -> Node | None:
        if self._reject_while_executing("add nodes"):
            return None

        node = Node.create(kind, position, data)
        self._commit(lambda snapshot: snapshot.add_node(node))
        return node

    def update_node_data(self, node_id: str, **changes: Any) -> bool:
        if not self.graph.read().has_node(node_id):
            return False
        self._commit(lambda snapshot: snapshot.update_node_data(node_id, **changes))
        return True

    def move_node(self, node_id: str, position: Position) -> bool:
        if not self.graph.read().has_node(node_id):
            return False
        self._commit(lambda snapshot: snapshot.move_node(node_id, position))
        return True

    async def delete_nodes(self, node_ids: Iterable[str]) -> bool:
        """删除节点及其连线

        删除后先有界等待进行中的保存，再立即保存删除后的状态，
        避免旧的保存把已删除的节点写回远端。
        """
        if self._reject_while_executing("delete nodes"):
            return False

        snapshot = self.graph.read()
        doomed = [node_id for node_id in dict.fromkeys(node_ids) if snapshot.has_node(node_id)]
        if not doomed:
            return False

        for node_id in doomed:
            self.controller.stop_node(node_id)

        self.graph.mutate(lambda current: current.remove_nodes(doomed))
        self.history.push()
        self._selected = [node_id for node_id in self._selected if node_id not in doomed]
        logger.info(f"已删除节点: {doomed}")

        await self.persistence.save_after_delete()
        return True

    # ==================== 选择 ====================

    @property
    def selected_node_ids(self) -> list[str]:
        # 撤销/重做可能移除已选中的节点
        snapshot = self.graph.read()
        return [node_id for node_id in self._selected if snapshot.has_node(node_id)]

    def select_nodes(self, node_ids: Iterable[str]) -> list[str]:
        snapshot = self.graph.read()
        self._selected = [node_id for node_id in dict.fromkeys(node_ids) if snapshot.has_node(node_id)]
        return self.selected_node_ids

    # ==================== 连线 ====================

    def can_connect(self, source_id: str, target_id: str) -> bool:
        """拖拽过程中的预判，不产生任何副作用"""
        return connection_rules.validate_connection(source_id, target_id, self.graph.read()).valid

    def connect(self, source_id: str, target_id: str) -> ConnectionValidationResult:
        if self._reject_while_executing("connect nodes"):
            return ConnectionValidationResult.reject(
                "Workflow is running", "Wait for the current run to finish"
            )

        result = connection_rules.validate_connection(source_id, target_id, self.graph.read())
        if not result.valid:
            self.notices.error(result.error or "Invalid connection", result.error_details)
            return result

        edge = Edge.create(source_id, target_id)
        self._commit(lambda snapshot: snapshot.add_edge(edge))
        return result

    def remove_edges(self, edge_ids: Iterable[str]) -> bool:
        if self._reject_while_executing("remove connections"):
            return False

        doomed = set(edge_ids)
        if not any(edge.id in doomed for edge in self.graph.read().edges):
            return False
        self._commit(lambda snapshot: snapshot.remove_edges(doomed))
        return True

    # ==================== 历史 ====================

    def undo(self) -> bool:
        if self._reject_while_executing("undo"):
            return False
        if self.history.undo():
            self.persistence.schedule_save()
            return True
        return False

    def redo(self) -> bool:
        if self._reject_while_executing("redo"):
            return False
        if self.history.redo():
            self.persistence.schedule_save()
            return True
        return False

    # ==================== 执行 ====================

    async def run_node(self, node_id: str) -> NodeRunResult:
        if self.session.is_executing:
            self.notices.info("Workflow is already running", "Please wait for the current run to finish")
            node = self.graph.read().get_node(node_id)
            return NodeRunResult(
                node_id=node_id,
                status=node.status if node else ExecutionStatus.IDLE,
                error=ConcurrencyRejection("Workflow is already running"),
            )

        result = await self.controller.run_node(node_id)
        self.persistence.schedule_save()
        return result

    async def run_workflow(self) -> WorkflowRunResult:
        return await self.controller.run_workflow()

    def stop_node(self, node_id: str) -> bool:
        return self.controller.stop_node(node_id)

    # ==================== 内部 ====================

    def _commit(self, updater: GraphUpdater) -> None:
        self.graph.mutate(updater)
        self.history.push()
        self.persistence.schedule_save()

    def _reject_while_executing(self, action: str) -> bool:
        if not self.session.is_executing:
            return False
        logger.info(f"执行中拒绝操作: {action}")
        self.notices.warning("Workflow is running", f"Cannot {action} while the workflow is running")
        return True
