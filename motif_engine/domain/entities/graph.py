"""GraphSnapshot - 某一时刻的完整节点/边集合

业务定义：
- 快照是图模型、撤销历史、持久化同步之间传递的唯一数据形态
- 不变式：每条边的两个端点都存在于同一个快照中

设计原则：
- 快照本身不可变，所有修改方法返回新快照
- 修改方法只保证形状正确，端点完整性由 check_integrity() 在提交时校验
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from motif_engine.domain.entities.edge import Edge
from motif_engine.domain.entities.node import Node
from motif_engine.domain.exceptions import DomainError, NotFoundError
from motif_engine.domain.value_objects.node_kind import NodeKind
from motif_engine.domain.value_objects.position import Position


@dataclass(frozen=True)
class GraphSnapshot:
    nodes: tuple[Node, ...] = field(default_factory=tuple)
    edges: tuple[Edge, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, nodes: Iterable[Node] = (), edges: Iterable[Edge] = ()) -> GraphSnapshot:
        return cls(nodes=tuple(nodes), edges=tuple(edges))

    # ==================== 查询 ====================

    def get_node(self, node_id: str) -> Node | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def require_node(self, node_id: str) -> Node:
        node = self.get_node(node_id)
        if node is None:
            raise NotFoundError("Node", node_id)
        return node

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def nodes_of_kind(self, kind: NodeKind) -> list[Node]:
        return [node for node in self.nodes if node.kind == kind]

    def incoming(self, node_id: str) -> list[Edge]:
        return [edge for edge in self.edges if edge.target_node_id == node_id]

    def outgoing(self, node_id: str) -> list[Edge]:
        return [edge for edge in self.edges if edge.source_node_id == node_id]

    def has_edge(self, source_node_id: str, target_node_id: str) -> bool:
        return any(
            edge.source_node_id == source_node_id and edge.target_node_id == target_node_id
            for edge in self.edges
        )

    def check_integrity(self) -> None:
        """校验快照不变式

        抛出：
            DomainError: 节点 ID 重复、边 ID 重复或边的端点不存在
        """
        ids = self.node_ids()
        if len(ids) != len(set(ids)):
            raise DomainError("快照中存在重复的节点 ID")

        edge_ids = [edge.id for edge in self.edges]
        if len(edge_ids) != len(set(edge_ids)):
            raise DomainError("快照中存在重复的边 ID")

        known = set(ids)
        for edge in self.edges:
            if edge.source_node_id not in known or edge.target_node_id not in known:
                raise DomainError(
                    f"边 {edge.id} 的端点不存在: {edge.source_node_id} -> {edge.target_node_id}"
                )

    # ==================== 不可变更新 ====================

    def add_node(self, node: Node) -> GraphSnapshot:
        return GraphSnapshot(nodes=(*self.nodes, node), edges=self.edges)

    def add_edge(self, edge: Edge) -> GraphSnapshot:
        return GraphSnapshot(nodes=self.nodes, edges=(*self.edges, edge))

    def map_node(self, node_id: str, update: Callable[[Node], Node]) -> GraphSnapshot:
        """替换指定节点；节点不存在时原样返回"""
        return GraphSnapshot(
            nodes=tuple(update(node) if node.id == node_id else node for node in self.nodes),
            edges=self.edges,
        )

    def update_node_data(self, node_id: str, **changes: Any) -> GraphSnapshot:
        return self.map_node(node_id, lambda node: node.with_data(**changes))

    def move_node(self, node_id: str, position: Position) -> GraphSnapshot:
        return self.map_node(node_id, lambda node: node.with_position(position))

    def remove_nodes(self, node_ids: Iterable[str]) -> GraphSnapshot:
        """删除节点以及与之相连的所有边"""
        doomed = set(node_ids)
        return GraphSnapshot(
            nodes=tuple(node for node in self.nodes if node.id not in doomed),
            edges=tuple(
                edge
                for edge in self.edges
                if edge.source_node_id not in doomed and edge.target_node_id not in doomed
            ),
        )

    def remove_edges(self, edge_ids: Iterable[str]) -> GraphSnapshot:
        doomed = set(edge_ids)
        return GraphSnapshot(
            nodes=self.nodes,
            edges=tuple(edge for edge in self.edges if edge.id not in doomed),
        )


def clone_snapshot(snapshot: GraphSnapshot) -> GraphSnapshot:
    """深拷贝快照：节点 data 与位置全部复制，修改副本不会影响原快照"""
    return GraphSnapshot(
        nodes=tuple(node.clone() for node in snapshot.nodes),
        edges=snapshot.edges,
    )
