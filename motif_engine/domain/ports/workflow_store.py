"""WorkflowStorePort - 远端工作流存储接口

职责：
- 创建工作流记录并返回 ID
- 读取完整快照
- 按 (workflow_id, node_id) / (workflow_id, edge_id) upsert 节点与边
- 列出远端现有的节点/边 ID，删除孤儿节点与边

设计原则：
- 依赖倒置：领域层定义接口，基础设施层实现
- 写操作返回 bool 表示成功与否，连接类故障可以抛 PersistenceError
"""

from collections.abc import Sequence
from typing import Protocol

from motif_engine.domain.entities.edge import Edge
from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.entities.node import Node


class WorkflowStorePort(Protocol):
    """远端工作流存储接口"""

    async def create_workflow(self, owner_id: str, name: str) -> str:
        """创建工作流，返回 workflow_id"""
        ...

    async def load_workflow(self, workflow_id: str) -> GraphSnapshot:
        """读取工作流的全部节点与边

        抛出：
            NotFoundError: 工作流不存在
        """
        ...

    async def save_nodes(self, workflow_id: str, nodes: Sequence[Node]) -> bool:
        ...

    async def save_edges(self, workflow_id: str, edges: Sequence[Edge]) -> bool:
        ...

    async def delete_nodes(self, workflow_id: str, node_ids: Sequence[str]) -> bool:
        ...

    async def delete_edges(self, workflow_id: str, edge_ids: Sequence[str]) -> bool:
        ...

    async def list_node_ids(self, workflow_id: str) -> list[str]:
        """远端当前保存的节点 ID（按插入顺序）"""
        ...

    async def list_edge_ids(self, workflow_id: str) -> list[str]:
        ...
