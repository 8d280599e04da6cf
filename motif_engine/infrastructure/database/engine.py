"""数据库引擎配置

设计说明：
- 使用 create_async_engine 创建异步引擎
- 从配置读取 database_url，测试时可以传入内存数据库 URL
- 会话工厂配置 expire_on_commit=False，提交后对象仍可读取
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from motif_engine.config import settings
from motif_engine.infrastructure.database.base import Base


def get_engine(database_url: str | None = None, **kwargs) -> AsyncEngine:
    """创建异步数据库引擎

    参数：
        database_url: 数据库 URL，默认取配置
        kwargs: 透传给 create_async_engine（如测试用的 poolclass）
    """
    return create_async_engine(
        database_url or settings.database_url,
        echo=settings.database_echo,
        **kwargs,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,  # 提交后不过期对象（避免额外查询）
        autoflush=False,
    )


async def init_schema(engine: AsyncEngine) -> None:
    """创建全部表（开发环境与测试使用）"""
    # 确保模型已注册到 Base.metadata
    from motif_engine.infrastructure.database import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
