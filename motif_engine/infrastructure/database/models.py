"""SQLAlchemy ORM 模型

表结构：
- workflows: 工作流（所有者、名称、时间戳）
- workflow_nodes: 节点，主键 (workflow_id, node_id)，upsert 以此为键
- workflow_edges: 连线，主键 (workflow_id, edge_id)
"""

from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from motif_engine.infrastructure.database.base import Base


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class WorkflowModel(Base):
    """Workflow ORM 模型

    字段说明：
    - id: 主键（UUID 字符串）
    - owner_id: 所有者（会话 ID 或用户 ID）
    - name: 工作流名称
    """

    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, comment="Workflow ID")
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, comment="所有者 ID")
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="工作流名称")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, comment="创建时间"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, onupdate=_utcnow, comment="更新时间"
    )

    __table_args__ = (Index("idx_workflows_owner_id", "owner_id"),)


class WorkflowNodeModel(Base):
    """Node ORM 模型

    字段说明：
    - node_type: 节点类型（imageNode/promptNode/...）
    - position_x / position_y: 画布坐标
    - width / height: 用户调整过尺寸时才有
    - data: 节点数据（JSON）
    """

    __tablename__ = "workflow_nodes"

    workflow_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("workflows.id", ondelete="CASCADE"),
        primary_key=True,
        comment="Workflow ID",
    )
    node_id: Mapped[str] = mapped_column(String(255), primary_key=True, comment="Node ID")
    node_type: Mapped[str] = mapped_column(String(50), nullable=False, comment="节点类型")
    position_x: Mapped[float] = mapped_column(nullable=False, comment="节点 X 坐标")
    position_y: Mapped[float] = mapped_column(nullable=False, comment="节点 Y 坐标")
    width: Mapped[float | None] = mapped_column(nullable=True, comment="宽度")
    height: Mapped[float | None] = mapped_column(nullable=True, comment="高度")
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict, comment="节点数据（JSON）")
    sort_order: Mapped[int] = mapped_column(nullable=False, default=0, comment="插入顺序")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, onupdate=_utcnow, comment="更新时间"
    )


class WorkflowEdgeModel(Base):
    __tablename__ = "workflow_edges"

    workflow_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("workflows.id", ondelete="CASCADE"),
        primary_key=True,
        comment="Workflow ID",
    )
    edge_id: Mapped[str] = mapped_column(String(600), primary_key=True, comment="Edge ID")
    source_node_id: Mapped[str] = mapped_column(String(255), nullable=False, comment="源节点 ID")
    target_node_id: Mapped[str] = mapped_column(String(255), nullable=False, comment="目标节点 ID")
    sort_order: Mapped[int] = mapped_column(nullable=False, default=0, comment="插入顺序")
