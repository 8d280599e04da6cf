"""校验结果值对象

业务定义：
- ValidationIssue：一条校验问题，severity 为 error 时阻断执行，warning 只提示
- ValidationResult：整图或单节点校验的汇总，valid ⇔ 不存在 error 级问题
- ConnectionValidationResult：连线规则引擎的判定结果
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class IssueKind(str, Enum):
    CYCLE = "cycle"
    MISSING_INPUT = "missing-input"
    EMPTY_PROMPT = "empty-prompt"
    INVALID_NODE = "invalid-node"
    NO_OUTPUT = "no-output"
    LANGUAGE_MISMATCH = "language-mismatch"


@dataclass(frozen=True)
class ValidationIssue:
    kind: IssueKind
    severity: Severity
    message: str
    node_id: str | None = None
    details: str | None = None

    @property
    def is_blocking(self) -> bool:
        return self.severity == Severity.ERROR


@dataclass(frozen=True)
class ValidationResult:
    """校验结果

    属性说明：
    - errors: 全部问题（包括 warning），按发现顺序
    - valid: 是否可以执行
    """

    errors: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, issues: list[ValidationIssue]) -> ValidationResult:
        return cls(errors=tuple(issues))

    @property
    def valid(self) -> bool:
        return not any(issue.is_blocking for issue in self.errors)

    @property
    def blocking(self) -> list[ValidationIssue]:
        return [issue for issue in self.errors if issue.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.errors if issue.severity == Severity.WARNING]


@dataclass(frozen=True)
class ConnectionValidationResult:
    valid: bool
    error: str | None = None
    error_details: str | None = None

    @classmethod
    def ok(cls) -> ConnectionValidationResult:
        return cls(valid=True)

    @classmethod
    def reject(cls, error: str, details: str | None = None) -> ConnectionValidationResult:
        return cls(valid=False, error=error, error_details=details)
