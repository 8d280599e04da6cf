"""领域层异常定义

异常分层：
- StructuralError：图结构问题（环、非法连线），执行前就能发现
- ExecutionError：单个节点运行失败（限流、服务错误、网络、超时、取消、节点被删）
- PersistenceError：远端存储失败，由同步器内部消化并通过提示升级
- ConcurrencyRejection：执行锁持有期间被拒绝的操作

设计原则：
- 校验器和连线规则返回结果值，不抛异常
- 执行失败转换为节点状态 + NodeRunResult.error
"""


class DomainError(Exception):
    """领域层异常基类

    用途：
    - 表示业务规则违反（如：边的端点不存在）
    - 表示领域不变式违反（如：状态流转非法）
    """

    pass


class NotFoundError(DomainError):
    """实体不存在异常

    参数：
        entity_type: 实体类型（如："Node"、"Workflow"）
        entity_id: 实体 ID
    """

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} 不存在: {entity_id}")


# ==================== 结构错误 ====================


class StructuralError(DomainError):
    """图结构错误基类（执行前阻断）"""

    pass


class CycleDetectedError(StructuralError):
    """依赖图存在环

    属性：
        node_ids: 参与环（或无法排序）的节点 ID，按插入顺序
    """

    def __init__(self, node_ids: list[str], message: str | None = None):
        self.node_ids = list(node_ids)
        super().__init__(message or f"检测到循环依赖: {', '.join(self.node_ids)}")


class InvalidConnectionError(StructuralError):
    """连线被规则引擎拒绝"""

    def __init__(self, message: str, details: str | None = None):
        self.details = details
        super().__init__(message)


# ==================== 执行错误 ====================


class ExecutionError(DomainError):
    """节点执行失败基类"""

    pass


class RateLimitError(ExecutionError):
    """生成服务限流（HTTP 429）

    属性：
        reset: 服务返回的限流重置时间（可能为空）
    """

    def __init__(self, reset: str | None = None):
        self.reset = reset
        if reset:
            message = f"Rate limit exceeded. Try again at {reset}."
        else:
            message = "Rate limit exceeded. Please try again later."
        super().__init__(message)


class GenerationServiceError(ExecutionError):
    """生成服务返回非 2xx 响应"""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class GenerationNetworkError(ExecutionError):
    """传输层失败（连接失败、读写错误）"""

    pass


class GenerationTimeoutError(ExecutionError):
    """生成调用超时"""

    pass


class ExecutionCancelledError(ExecutionError):
    """运行被取消（停止单个节点或全部中止）"""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Generation cancelled for node {node_id}")


class NodeDeletedError(ExecutionError):
    """节点在运行过程中被删除，结果无处写入"""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node {node_id} was deleted during execution")


# ==================== 持久化 / 并发 ====================


class PersistenceError(DomainError):
    """远端存储读写失败"""

    pass


class ConcurrencyRejection(DomainError):
    """执行锁持有期间的结构性操作被拒绝"""

    pass
