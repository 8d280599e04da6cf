"""工作流校验器 - 运行前的整图校验与单节点校验

业务定义：
- 整图校验：先查环，有环直接返回（只给一个汇总错误）；再逐节点检查
  提示词/模型、输入节点内容、是否连到输出；没有生成器时报错
- 单节点校验：节点存在且是生成器，字段合法，直接输入当前已填好；
  另外给出“无输出”“语言不匹配”等提醒
- 整图运行时，空的输入节点只要由上游生成器写入就算可满足

设计原则：
- 只读、无副作用，结果以 ValidationResult 返回，不抛异常
- error 阻断执行，warning 只提示
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from motif_engine.config import settings
from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.entities.node import Node
from motif_engine.domain.value_objects.node_kind import NodeKind
from motif_engine.domain.value_objects.validation import (
    IssueKind,
    Severity,
    ValidationIssue,
    ValidationResult,
)

logger = logging.getLogger(__name__)

_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".avif")


# ==================== 图遍历辅助 ====================


def is_valid_image_url(url: object) -> bool:
    """校验图片 URL

    接受：
    - data:image/ 开头的内联图片（长度大于 50）
    - 站内占位图 /placeholders/、/images/
    - 对象存储 URL（路径包含 /storage/v1/object/）
    - 以常见图片扩展名结尾的 http(s) URL
    """
    if not isinstance(url, str) or not url:
        return False

    if url.startswith("data:image/"):
        return len(url) > 50

    if url.startswith(("/placeholders/", "/images/")):
        return True

    try:
        parsed = urlparse(url)
    except ValueError:
        return False

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    if "/storage/v1/object/" in parsed.path:
        return True
    return parsed.path.lower().endswith(_IMAGE_EXTENSIONS)


def downstream_node_ids(node_id: str, snapshot: GraphSnapshot) -> set[str]:
    downstream: set[str] = set()
    pending = [node_id]

    while pending:
        current = pending.pop()
        for edge in snapshot.outgoing(current):
            if edge.target_node_id not in downstream:
                downstream.add(edge.target_node_id)
                pending.append(edge.target_node_id)

    downstream.discard(node_id)
    return downstream


def has_path_to_output(node_id: str, snapshot: GraphSnapshot) -> bool:
    for downstream_id in downstream_node_ids(node_id, snapshot):
        node = snapshot.get_node(downstream_id)
        if node is not None and node.kind.is_output:
            return True
    return False


def detect_language_from_prompt(prompt: str) -> str | None:
    lowered = prompt.lower()

    if "typescript" in lowered or "tsx" in lowered or "react component" in lowered:
        return "tsx"
    if "css" in lowered or "stylesheet" in lowered or "styling" in lowered:
        return "css"
    if "json" in lowered or "config" in lowered:
        return "json"
    if "html" in lowered:
        return "html"
    return None


def _is_produced_upstream(node_id: str, snapshot: GraphSnapshot) -> bool:
    for edge in snapshot.incoming(node_id):
        source = snapshot.get_node(edge.source_node_id)
        if source is not None and source.kind == NodeKind.GENERATOR:
            return True
    return False


def _display_name(node: Node) -> str:
    return node.data.get("title") or node.data.get("label") or node.id


def _detect_cycles(snapshot: GraphSnapshot) -> list[list[str]]:
    """沿边方向做 DFS，每条回边记录一个环（按数据流方向，首尾相同）"""
    cycles: list[list[str]] = []
    visited: set[str] = set()
    on_stack: set[str] = set()

    def visit(node_id: str, path: list[str]) -> None:
        visited.add(node_id)
        on_stack.add(node_id)

        for edge in snapshot.outgoing(node_id):
            target_id = edge.target_node_id
            if target_id not in visited:
                visit(target_id, [*path, target_id])
            elif target_id in on_stack:
                start = path.index(target_id)
                cycles.append([*path[start:], target_id])

        on_stack.discard(node_id)

    for node in snapshot.nodes:
        if node.id not in visited:
            visit(node.id, [node.id])

    return cycles


# ==================== 校验器 ====================


class WorkflowValidator:
    """工作流校验器

    参数：
        max_prompt_length: 提示词最大长度
        max_model_id_length: 模型 ID 最大长度
    """

    def __init__(
        self,
        *,
        max_prompt_length: int | None = None,
        max_model_id_length: int | None = None,
    ) -> None:
        self._max_prompt_length = max_prompt_length or settings.max_prompt_length
        self._max_model_id_length = max_model_id_length or settings.max_model_id_length

    def validate_workflow(self, snapshot: GraphSnapshot) -> ValidationResult:
        cycles = _detect_cycles(snapshot)
        if cycles:
            summary = (
                "1 circular dependency detected"
                if len(cycles) == 1
                else f"{len(cycles)} circular dependencies detected"
            )
            details = "; ".join(
                "Cycle: "
                + " → ".join(
                    _display_name(node) if (node := snapshot.get_node(node_id)) else node_id
                    for node_id in cycle
                )
                for cycle in cycles
            )
            logger.info(f"整图校验发现环: {details}")
            return ValidationResult.of(
                [ValidationIssue(IssueKind.CYCLE, Severity.ERROR, summary, details=details)]
            )

        issues: list[ValidationIssue] = []

        for node in snapshot.nodes:
            match node.kind:
                case NodeKind.GENERATOR:
                    issues.extend(self._check_generator_fields(node))
                    if not has_path_to_output(node.id, snapshot):
                        issues.append(self._no_output_warning(node))
                case NodeKind.STATIC_INPUT | NodeKind.CODE_OUTPUT | NodeKind.TEXT_INPUT | NodeKind.CAPTURE:
                    if snapshot.outgoing(node.id) and not _is_produced_upstream(node.id, snapshot):
                        issues.extend(self._check_input_node(node))
                case NodeKind.NOTE:
                    pass

        if not snapshot.nodes_of_kind(NodeKind.GENERATOR):
            issues.append(
                ValidationIssue(
                    IssueKind.INVALID_NODE,
                    Severity.ERROR,
                    "No prompt nodes in workflow",
                    details="Add at least one prompt node to run the workflow",
                )
            )

        return ValidationResult.of(issues)

    def validate_node(self, node_id: str, snapshot: GraphSnapshot) -> ValidationResult:
        node = snapshot.get_node(node_id)
        if node is None:
            return ValidationResult.of(
                [ValidationIssue(IssueKind.INVALID_NODE, Severity.ERROR, "Node not found", node_id=node_id)]
            )

        if node.kind != NodeKind.GENERATOR:
            return ValidationResult.of(
                [
                    ValidationIssue(
                        IssueKind.INVALID_NODE,
                        Severity.ERROR,
                        f"{node.kind.display_name} nodes cannot be run",
                        node_id=node_id,
                        details="Only prompt nodes can be executed",
                    )
                ]
            )

        issues = self._check_generator_fields(node)

        for edge in snapshot.incoming(node_id):
            source = snapshot.get_node(edge.source_node_id)
            if source is not None:
                issues.extend(self._check_input_node(source))

        if not has_path_to_output(node_id, snapshot):
            issues.append(self._no_output_warning(node))

        issues.extend(self._check_language_mismatch(node, snapshot))
        return ValidationResult.of(issues)

    # ==================== 单项检查 ====================

    def _check_generator_fields(self, node: Node) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        title = node.data.get("title") or "Untitled"
        prompt = node.data.get("prompt")
        model = node.data.get("model")

        if not isinstance(prompt, str) or not prompt.strip():
            issues.append(
                ValidationIssue(
                    IssueKind.EMPTY_PROMPT,
                    Severity.ERROR,
                    f'Prompt node "{title}" has no prompt',
                    node_id=node.id,
                    details="Please enter a prompt before running",
                )
            )
        elif len(prompt) > self._max_prompt_length:
            issues.append(
                ValidationIssue(
                    IssueKind.INVALID_NODE,
                    Severity.ERROR,
                    f'Prompt node "{title}" has a prompt that is too long',
                    node_id=node.id,
                    details=f"Prompts are limited to {self._max_prompt_length} characters",
                )
            )

        if not isinstance(model, str) or not model:
            issues.append(
                ValidationIssue(
                    IssueKind.INVALID_NODE,
                    Severity.ERROR,
                    f'Prompt node "{title}" has no model selected',
                    node_id=node.id,
                    details="Please select a model",
                )
            )
        elif len(model) > self._max_model_id_length:
            issues.append(
                ValidationIssue(
                    IssueKind.INVALID_NODE,
                    Severity.ERROR,
                    f'Prompt node "{title}" has an invalid model',
                    node_id=node.id,
                    details=f"Model ids are limited to {self._max_model_id_length} characters",
                )
            )

        return issues

    def _check_input_node(self, node: Node) -> list[ValidationIssue]:
        """检查作为输入使用的节点当前是否有内容"""
        match node.kind:
            case NodeKind.STATIC_INPUT:
                label = node.data.get("label") or "Untitled"
                url = node.data.get("image_url")
                if not isinstance(url, str) or not url:
                    return [
                        ValidationIssue(
                            IssueKind.MISSING_INPUT,
                            Severity.ERROR,
                            f'Image node "{label}" has no image',
                            node_id=node.id,
                            details="Please upload an image before running the workflow",
                        )
                    ]
                if not is_valid_image_url(url):
                    return [
                        ValidationIssue(
                            IssueKind.MISSING_INPUT,
                            Severity.ERROR,
                            f'Image node "{label}" has an invalid image',
                            node_id=node.id,
                            details="The image URL or data is not valid",
                        )
                    ]
            case NodeKind.CODE_OUTPUT:
                content = node.data.get("content")
                if not isinstance(content, str) or not content.strip():
                    return [
                        ValidationIssue(
                            IssueKind.MISSING_INPUT,
                            Severity.ERROR,
                            f'Code node "{node.data.get("label") or "Output"}" is empty',
                            node_id=node.id,
                            details="This code node is being used as input but has no content",
                        )
                    ]
            case NodeKind.TEXT_INPUT:
                value = node.data.get("value")
                if node.data.get("required") and (not isinstance(value, str) or not value.strip()):
                    return [
                        ValidationIssue(
                            IssueKind.MISSING_INPUT,
                            Severity.ERROR,
                            f'Text input "{node.data.get("label") or "Text Input"}" is required',
                            node_id=node.id,
                            details="Please fill in this input before running",
                        )
                    ]
            case NodeKind.CAPTURE:
                if not node.data.get("animation_context"):
                    return [
                        ValidationIssue(
                            IssueKind.MISSING_INPUT,
                            Severity.ERROR,
                            "Capture node has no result",
                            node_id=node.id,
                            details="Run the capture before using it as an input",
                        )
                    ]
            case NodeKind.GENERATOR | NodeKind.NOTE:
                pass
        return []

    def _no_output_warning(self, node: Node) -> ValidationIssue:
        return ValidationIssue(
            IssueKind.NO_OUTPUT,
            Severity.WARNING,
            f'Prompt node "{node.data.get("title") or "Untitled"}" has no output',
            node_id=node.id,
            details="This node doesn't connect to any output (image or code node)",
        )

    def _check_language_mismatch(self, node: Node, snapshot: GraphSnapshot) -> list[ValidationIssue]:
        prompt = node.data.get("prompt")
        suggested = detect_language_from_prompt(prompt) if isinstance(prompt, str) else None
        if suggested is None:
            return []

        issues: list[ValidationIssue] = []
        for edge in snapshot.outgoing(node.id):
            target = snapshot.get_node(edge.target_node_id)
            if target is None or target.kind != NodeKind.CODE_OUTPUT:
                continue

            expected = target.data.get("language")
            if expected and expected != suggested:
                issues.append(
                    ValidationIssue(
                        IssueKind.LANGUAGE_MISMATCH,
                        Severity.WARNING,
                        f'Language mismatch for "{target.data.get("label") or "Output"}"',
                        node_id=target.id,
                        details=f"Output expects {expected} but prompt suggests {suggested}",
                    )
                )
        return issues
