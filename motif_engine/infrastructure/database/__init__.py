"""数据库基础设施 - SQLAlchemy 异步引擎、ORM 模型与工作流存储实现"""

from motif_engine.infrastructure.database.base import Base
from motif_engine.infrastructure.database.engine import create_session_factory, get_engine, init_schema

__all__ = [
    "Base",
    "create_session_factory",
    "get_engine",
    "init_schema",
]
