"""Edge 实体 - 节点之间的数据流连线

业务定义：
- Edge 连接两个节点，表示数据从 source 流向 target
- 同一对有序 (source, target) 最多只有一条边

设计原则：
- 不可变，撤销历史可以直接共享边对象
"""

from dataclasses import dataclass

from motif_engine.domain.exceptions import DomainError


@dataclass(frozen=True)
class Edge:
    id: str
    source_node_id: str
    target_node_id: str

    @classmethod
    def create(cls, source_node_id: str, target_node_id: str) -> "Edge":
        """创建 Edge 的工厂方法

        ID 由端点推导，同一对端点得到同一个 ID。

        抛出：
            DomainError: 端点为空或自环
        """
        if not source_node_id:
            raise DomainError("source_node_id 不能为空")
        if not target_node_id:
            raise DomainError("target_node_id 不能为空")
        if source_node_id == target_node_id:
            raise DomainError("不能创建自连接的边")

        return cls(
            id=f"e-{source_node_id}-{target_node_id}",
            source_node_id=source_node_id,
            target_node_id=target_node_id,
        )

    def touches(self, node_id: str) -> bool:
        return self.source_node_id == node_id or self.target_node_id == node_id
