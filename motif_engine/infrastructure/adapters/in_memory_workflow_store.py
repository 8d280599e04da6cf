"""内存工作流存储 - 离线会话与测试使用的 WorkflowStorePort 实现

说明：
- 节点与边按插入顺序保存，upsert 时保留原位置
- 写入的是深拷贝，调用方之后修改实体不会影响存储内容
- latency 用于模拟远端延迟（测试“保存进行中”的场景）
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import uuid4

from motif_engine.domain.entities.edge import Edge
from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.entities.node import Node
from motif_engine.domain.exceptions import NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class _StoredWorkflow:
    owner_id: str
    name: str
    nodes: dict[str, Node] = field(default_factory=dict)
    edges: dict[str, Edge] = field(default_factory=dict)


class InMemoryWorkflowStore:
    def __init__(self, *, latency: float = 0.0) -> None:
        self.latency = latency
        self.save_count = 0
        self._workflows: dict[str, _StoredWorkflow] = {}

    async def create_workflow(self, owner_id: str, name: str) -> str:
        await self._delay()
        workflow_id = str(uuid4())
        self._workflows[workflow_id] = _StoredWorkflow(owner_id=owner_id, name=name)
        return workflow_id

    async def load_workflow(self, workflow_id: str) -> GraphSnapshot:
        await self._delay()
        stored = self._get(workflow_id)
        return GraphSnapshot.of(
            (node.clone() for node in stored.nodes.values()),
            stored.edges.values(),
        )

    async def save_nodes(self, workflow_id: str, nodes: Sequence[Node]) -> bool:
        self.save_count += 1
        await self._delay()
        stored = self._get(workflow_id)
        for node in nodes:
            stored.nodes[node.id] = node.clone()
        return True

    async def save_edges(self, workflow_id: str, edges: Sequence[Edge]) -> bool:
        await self._delay()
        stored = self._get(workflow_id)
        for edge in edges:
            stored.edges[edge.id] = edge
        return True

    async def delete_nodes(self, workflow_id: str, node_ids: Sequence[str]) -> bool:
        stored = self._get(workflow_id)
        doomed = set(node_ids)
        for node_id in doomed:
            stored.nodes.pop(node_id, None)
        stored.edges = {
            edge_id: edge
            for edge_id, edge in stored.edges.items()
            if edge.source_node_id not in doomed and edge.target_node_id not in doomed
        }
        return True

    async def delete_edges(self, workflow_id: str, edge_ids: Sequence[str]) -> bool:
        stored = self._get(workflow_id)
        for edge_id in edge_ids:
            stored.edges.pop(edge_id, None)
        return True

    async def list_node_ids(self, workflow_id: str) -> list[str]:
        await self._delay()
        return self.node_ids(workflow_id)

    async def list_edge_ids(self, workflow_id: str) -> list[str]:
        await self._delay()
        return self.edge_ids(workflow_id)

    def node_ids(self, workflow_id: str) -> list[str]:
        return list(self._get(workflow_id).nodes)

    def edge_ids(self, workflow_id: str) -> list[str]:
        return list(self._get(workflow_id).edges)

    def _get(self, workflow_id: str) -> _StoredWorkflow:
        stored = self._workflows.get(workflow_id)
        if stored is None:
            raise NotFoundError(entity_type="Workflow", entity_id=workflow_id)
        return stored

    async def _delay(self) -> None:
        if self.latency > 0:
            await asyncio.sleep(self.latency)
