"""ExecutionStatus 枚举 - 生成器节点的执行状态

业务定义：
- 状态流转：IDLE → RUNNING → (COMPLETE | ERROR)
- COMPLETE / ERROR 可以重置为 IDLE（重试），也可以直接再次运行

设计原则：
- 继承 str：序列化/数据库存储友好
- 通过 can_transition_to() 固化状态机不变式
"""

from __future__ import annotations

from enum import Enum


class ExecutionStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"

    def can_transition_to(self, target: ExecutionStatus) -> bool:
        allowed: dict[ExecutionStatus, set[ExecutionStatus]] = {
            ExecutionStatus.IDLE: {ExecutionStatus.RUNNING},
            ExecutionStatus.RUNNING: {ExecutionStatus.COMPLETE, ExecutionStatus.ERROR},
            ExecutionStatus.COMPLETE: {ExecutionStatus.IDLE, ExecutionStatus.RUNNING},
            ExecutionStatus.ERROR: {ExecutionStatus.IDLE, ExecutionStatus.RUNNING},
        }
        return target in allowed[self]

    def is_terminal(self) -> bool:
        return self in {ExecutionStatus.COMPLETE, ExecutionStatus.ERROR}

    @classmethod
    def parse(cls, value: object) -> ExecutionStatus:
        """从节点 data 中的原始值解析状态，未知值视为 IDLE"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return cls.IDLE
