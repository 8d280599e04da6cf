"""SQLAlchemy WorkflowStore 实现

职责：
1. 转换（Translation）：领域实体 ⇄ ORM 模型
2. 持久化（Persistence）：创建、读取、upsert、删除
3. 异常转换（Exception Translation）：SQLAlchemyError → PersistenceError

设计模式：
- Adapter 模式：实现领域层定义的 WorkflowStorePort
- Assembler 模式：_to_node/_to_node_model 等负责对象转换
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from uuid import uuid4

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from motif_engine.domain.entities.edge import Edge
from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.entities.node import Node
from motif_engine.domain.exceptions import NotFoundError, PersistenceError
from motif_engine.domain.value_objects.node_kind import NodeKind
from motif_engine.domain.value_objects.position import Position, Size
from motif_engine.infrastructure.database.models import (
    WorkflowEdgeModel,
    WorkflowModel,
    WorkflowNodeModel,
)

logger = logging.getLogger(__name__)


class SQLAlchemyWorkflowStore:
    """SQLAlchemy 工作流存储

    依赖：
    - session_factory: 异步会话工厂，每个操作使用独立会话与事务
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ==================== Assembler 方法 ====================

    @staticmethod
    def _to_node(model: WorkflowNodeModel) -> Node:
        size = None
        if model.width is not None and model.height is not None:
            size = Size(width=model.width, height=model.height)
        return Node(
            id=model.node_id,
            kind=NodeKind(model.node_type),
            position=Position(x=model.position_x, y=model.position_y),
            data=dict(model.data or {}),
            size=size,
        )

    @staticmethod
    def _to_node_model(workflow_id: str, node: Node, sort_order: int) -> WorkflowNodeModel:
        return WorkflowNodeModel(
            workflow_id=workflow_id,
            node_id=node.id,
            node_type=node.kind.value,
            position_x=node.position.x,
            position_y=node.position.y,
            width=node.size.width if node.size else None,
            height=node.size.height if node.size else None,
            data=dict(node.data),
            sort_order=sort_order,
        )

    @staticmethod
    def _to_edge(model: WorkflowEdgeModel) -> Edge:
        return Edge(
            id=model.edge_id,
            source_node_id=model.source_node_id,
            target_node_id=model.target_node_id,
        )

    @staticmethod
    def _to_edge_model(workflow_id: str, edge: Edge, sort_order: int) -> WorkflowEdgeModel:
        return WorkflowEdgeModel(
            workflow_id=workflow_id,
            edge_id=edge.id,
            source_node_id=edge.source_node_id,
            target_node_id=edge.target_node_id,
            sort_order=sort_order,
        )

    # ==================== Port 实现 ====================

    async def create_workflow(self, owner_id: str, name: str) -> str:
        workflow_id = str(uuid4())
        try:
            async with self._session_factory() as session, session.begin():
                session.add(WorkflowModel(id=workflow_id, owner_id=owner_id, name=name))
        except SQLAlchemyError as e:
            raise PersistenceError(f"创建工作流失败: {e}") from e

        logger.info(f"已创建工作流记录: {workflow_id}, owner_id={owner_id}")
        return workflow_id

    async def load_workflow(self, workflow_id: str) -> GraphSnapshot:
        try:
            async with self._session_factory() as session:
                workflow = await session.get(WorkflowModel, workflow_id)
                if workflow is None:
                    raise NotFoundError(entity_type="Workflow", entity_id=workflow_id)

                node_models = await session.scalars(
                    select(WorkflowNodeModel)
                    .where(WorkflowNodeModel.workflow_id == workflow_id)
                    .order_by(WorkflowNodeModel.sort_order)
                )
                edge_models = await session.scalars(
                    select(WorkflowEdgeModel)
                    .where(WorkflowEdgeModel.workflow_id == workflow_id)
                    .order_by(WorkflowEdgeModel.sort_order)
                )
                nodes = [self._to_node(model) for model in node_models]
                edges = [self._to_edge(model) for model in edge_models]
        except SQLAlchemyError as e:
            raise PersistenceError(f"读取工作流失败: {e}") from e

        # 远端可能残留指向已删除节点的边，丢弃它们以满足快照不变式
        known = {node.id for node in nodes}
        valid_edges = [
            edge for edge in edges if edge.source_node_id in known and edge.target_node_id in known
        ]
        if len(valid_edges) != len(edges):
            logger.warning(f"工作流 {workflow_id} 存在 {len(edges) - len(valid_edges)} 条悬空连线，已忽略")

        return GraphSnapshot.of(nodes, valid_edges)

    async def save_nodes(self, workflow_id: str, nodes: Sequence[Node]) -> bool:
        """按 (workflow_id, node_id) upsert 节点"""
        try:
            async with self._session_factory() as session, session.begin():
                for sort_order, node in enumerate(nodes):
                    await session.merge(self._to_node_model(workflow_id, node, sort_order))
        except SQLAlchemyError as e:
            raise PersistenceError(f"保存节点失败: {e}") from e
        return True

    async def save_edges(self, workflow_id: str, edges: Sequence[Edge]) -> bool:
        """按 (workflow_id, edge_id) upsert 连线"""
        try:
            async with self._session_factory() as session, session.begin():
                for sort_order, edge in enumerate(edges):
                    await session.merge(self._to_edge_model(workflow_id, edge, sort_order))
        except SQLAlchemyError as e:
            raise PersistenceError(f"保存连线失败: {e}") from e
        return True

    async def delete_nodes(self, workflow_id: str, node_ids: Sequence[str]) -> bool:
        """删除节点以及与之相连的连线"""
        if not node_ids:
            return True
        ids = list(node_ids)
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    delete(WorkflowEdgeModel).where(
                        WorkflowEdgeModel.workflow_id == workflow_id,
                        or_(
                            WorkflowEdgeModel.source_node_id.in_(ids),
                            WorkflowEdgeModel.target_node_id.in_(ids),
                        ),
                    )
                )
                await session.execute(
                    delete(WorkflowNodeModel).where(
                        WorkflowNodeModel.workflow_id == workflow_id,
                        WorkflowNodeModel.node_id.in_(ids),
                    )
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"删除节点失败: {e}") from e
        return True

    async def delete_edges(self, workflow_id: str, edge_ids: Sequence[str]) -> bool:
        if not edge_ids:
            return True
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    delete(WorkflowEdgeModel).where(
                        WorkflowEdgeModel.workflow_id == workflow_id,
                        WorkflowEdgeModel.edge_id.in_(list(edge_ids)),
                    )
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"删除连线失败: {e}") from e
        return True

    async def list_node_ids(self, workflow_id: str) -> list[str]:
        try:
            async with self._session_factory() as session:
                result = await session.scalars(
                    select(WorkflowNodeModel.node_id)
                    .where(WorkflowNodeModel.workflow_id == workflow_id)
                    .order_by(WorkflowNodeModel.sort_order)
                )
                return list(result)
        except SQLAlchemyError as e:
            raise PersistenceError(f"读取节点 ID 失败: {e}") from e

    async def list_edge_ids(self, workflow_id: str) -> list[str]:
        """包含加载时被忽略的悬空连线，孤儿清理需要看到它们"""
        try:
            async with self._session_factory() as session:
                result = await session.scalars(
                    select(WorkflowEdgeModel.edge_id)
                    .where(WorkflowEdgeModel.workflow_id == workflow_id)
                    .order_by(WorkflowEdgeModel.sort_order)
                )
                return list(result)
        except SQLAlchemyError as e:
            raise PersistenceError(f"读取连线 ID 失败: {e}") from e
