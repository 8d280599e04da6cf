"""WorkflowIdentity 值对象 - 当前编辑会话对应的远端工作流"""

from dataclasses import dataclass

from motif_engine.domain.exceptions import DomainError


@dataclass(frozen=True)
class WorkflowIdentity:
    workflow_id: str
    owner_id: str

    def __post_init__(self) -> None:
        if not self.workflow_id:
            raise DomainError("workflow_id 不能为空")
        if not self.owner_id:
            raise DomainError("owner_id 不能为空")
