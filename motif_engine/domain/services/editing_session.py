"""编辑会话上下文 - 工作流身份与执行/保存锁

业务定义：
- 一个编辑会话对应一个远端工作流，身份只能写入一次
- 执行锁：同一时刻最多一个整图运行；持有期间历史记录和保存都暂停
- 保存锁：同一时刻最多一个保存在进行，重叠的保存请求被丢弃而不是排队

设计原则：
- 显式上下文对象，通过构造函数传给各个组件，没有模块级全局状态
- 锁是非阻塞的单持有者标记，获取失败立即返回 False
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from motif_engine.domain.exceptions import DomainError
from motif_engine.domain.value_objects.workflow_identity import WorkflowIdentity

logger = logging.getLogger(__name__)


@dataclass
class ExecutionLock:
    """单持有者锁标记"""

    resource_id: str
    _is_locked: bool = False
    _acquired_at: datetime | None = None

    def acquire(self) -> bool:
        """尝试获取锁

        返回：
            True 如果成功获取，锁已被持有时返回 False
        """
        if self._is_locked:
            return False
        self._is_locked = True
        self._acquired_at = datetime.now(UTC)
        return True

    def release(self) -> None:
        self._is_locked = False
        self._acquired_at = None

    def is_locked(self) -> bool:
        return self._is_locked

    @property
    def acquired_at(self) -> datetime | None:
        return self._acquired_at


@dataclass
class EditingSession:
    """编辑会话

    属性说明：
    - execution_lock: 整图运行锁
    - save_lock: 保存互斥标记
    - initialized: 图已经从远端加载或完成初始化
    """

    execution_lock: ExecutionLock = field(default_factory=lambda: ExecutionLock("execution"))
    save_lock: ExecutionLock = field(default_factory=lambda: ExecutionLock("save"))
    initialized: bool = False
    _identity: WorkflowIdentity | None = None

    @property
    def identity(self) -> WorkflowIdentity | None:
        return self._identity

    @property
    def workflow_id(self) -> str | None:
        return self._identity.workflow_id if self._identity else None

    def assign_identity(self, identity: WorkflowIdentity) -> None:
        """写入工作流身份（一次性）

        抛出：
            DomainError: 已经绑定了另一个工作流
        """
        if self._identity is not None:
            if self._identity == identity:
                return
            raise DomainError(
                f"会话已绑定工作流 {self._identity.workflow_id}，不能改为 {identity.workflow_id}"
            )
        self._identity = identity
        logger.info(f"会话绑定工作流: {identity.workflow_id}")

    @property
    def is_executing(self) -> bool:
        return self.execution_lock.is_locked()
