"""Node 实体 - 画布上的单个节点

业务定义：
- Node 由类型、位置、可选尺寸和 data 字典组成
- data 的内容随类型变化（提示词、图片 URL、代码内容等）
- 生成器节点的执行状态保存在 data["status"] 中

设计原则：
- 纯 Python 实现，不依赖任何框架
- 使用 dataclass 简化样板代码
- 每种类型一个工厂方法，统一生成 ID 和默认 data
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Any
from uuid import uuid4

from motif_engine.config import settings
from motif_engine.domain.exceptions import DomainError
from motif_engine.domain.value_objects.execution_status import ExecutionStatus
from motif_engine.domain.value_objects.node_kind import NodeKind
from motif_engine.domain.value_objects.position import Position, Size

CODE_LANGUAGES = ("text", "tsx", "jsx", "css", "json", "typescript", "javascript", "mdx", "markdown")
DEFAULT_CODE_LANGUAGE = "css"
MAX_LABEL_LENGTH = 255


def generate_node_id(kind: NodeKind) -> str:
    return f"{kind.id_prefix}-{uuid4()}"


@dataclass
class Node:
    """Node 实体

    属性说明：
    - id: 唯一标识符（类型前缀 + uuid）
    - kind: 节点类型
    - position: 画布坐标
    - data: 类型相关的数据
    - size: 可选的宽高（用户调整过尺寸时才有）
    """

    id: str
    kind: NodeKind
    position: Position
    data: dict[str, Any] = field(default_factory=dict)
    size: Size | None = None

    @classmethod
    def create(
        cls,
        kind: NodeKind,
        position: Position,
        data: dict[str, Any] | None = None,
        node_id: str | None = None,
    ) -> Node:
        """按类型创建节点，未提供的字段使用默认值

        参数：
            kind: 节点类型
            position: 画布坐标
            data: 覆盖默认值的字段
            node_id: 指定 ID（自动创建的输出节点会用到）
        """
        match kind:
            case NodeKind.STATIC_INPUT:
                return cls.create_image(position, node_id=node_id, **(data or {}))
            case NodeKind.GENERATOR:
                return cls.create_generator(position, node_id=node_id, **(data or {}))
            case NodeKind.CODE_OUTPUT:
                return cls.create_code(position, node_id=node_id, **(data or {}))
            case NodeKind.TEXT_INPUT:
                return cls.create_text_input(position, node_id=node_id, **(data or {}))
            case NodeKind.NOTE:
                return cls.create_note(position, node_id=node_id, **(data or {}))
            case NodeKind.CAPTURE:
                return cls.create_capture(position, node_id=node_id, **(data or {}))

    @classmethod
    def create_image(
        cls,
        position: Position,
        *,
        node_id: str | None = None,
        image_url: str = "",
        aspect: str = "landscape",
        **extra: Any,
    ) -> Node:
        data = {"image_url": image_url, "aspect": aspect, **extra}
        return cls._build(NodeKind.STATIC_INPUT, position, data, node_id)

    @classmethod
    def create_generator(
        cls,
        position: Position,
        *,
        node_id: str | None = None,
        prompt: str = "",
        output_type: str = "image",
        title: str | None = None,
        model: str | None = None,
        **extra: Any,
    ) -> Node:
        if output_type not in ("image", "text"):
            raise DomainError(f"output_type 只能是 image 或 text: {output_type}")

        if title is None:
            title = "Text Generation" if output_type == "text" else "Image Generation"
        if model is None:
            model = settings.default_text_model if output_type == "text" else settings.default_image_model

        data = {
            "title": title,
            "prompt": prompt,
            "model": model,
            "output_type": output_type,
            "status": ExecutionStatus.IDLE.value,
            **extra,
        }
        return cls._build(NodeKind.GENERATOR, position, data, node_id)

    @classmethod
    def create_code(
        cls,
        position: Position,
        *,
        node_id: str | None = None,
        content: str = "",
        language: str = DEFAULT_CODE_LANGUAGE,
        label: str | None = None,
        **extra: Any,
    ) -> Node:
        if language not in CODE_LANGUAGES:
            raise DomainError(f"不支持的代码语言: {language}")

        data: dict[str, Any] = {"content": content, "language": language, **extra}
        if label is not None:
            data["label"] = _check_label(label)
        return cls._build(NodeKind.CODE_OUTPUT, position, data, node_id)

    @classmethod
    def create_text_input(
        cls,
        position: Position,
        *,
        node_id: str | None = None,
        value: str = "",
        label: str = "Text Input",
        required: bool = False,
        **extra: Any,
    ) -> Node:
        data = {
            "value": value,
            "label": _check_label(label),
            "input_type": "text",
            "required": required,
            **extra,
        }
        return cls._build(NodeKind.TEXT_INPUT, position, data, node_id)

    @classmethod
    def create_note(
        cls,
        position: Position,
        *,
        node_id: str | None = None,
        content: str = "",
        color: str = "yellow",
        **extra: Any,
    ) -> Node:
        data = {"content": content, "color": color, "font_size": "md", **extra}
        return cls._build(NodeKind.NOTE, position, data, node_id)

    @classmethod
    def create_capture(
        cls,
        position: Position,
        *,
        node_id: str | None = None,
        url: str = "",
        selector: str = "",
        duration: float = 6,
        **extra: Any,
    ) -> Node:
        data = {
            "url": url,
            "selector": selector,
            "duration": duration,
            "status": "idle",
            "total_frames": 30,
            "excluded_frames": [],
            **extra,
        }
        return cls._build(NodeKind.CAPTURE, position, data, node_id)

    @classmethod
    def _build(
        cls,
        kind: NodeKind,
        position: Position,
        data: dict[str, Any],
        node_id: str | None,
    ) -> Node:
        return cls(id=node_id or generate_node_id(kind), kind=kind, position=position, data=data)

    # ==================== 读取辅助 ====================

    @property
    def status(self) -> ExecutionStatus:
        return ExecutionStatus.parse(self.data.get("status", ExecutionStatus.IDLE.value))

    @property
    def title(self) -> str:
        """用于提示信息的可读名称"""
        for key in ("title", "label"):
            value = self.data.get(key)
            if isinstance(value, str) and value.strip():
                return value
        return self.kind.display_name

    def with_data(self, **changes: Any) -> Node:
        """返回合并了 data 字段的新节点（原节点不变）"""
        return replace(self, data={**self.data, **changes})

    def with_position(self, position: Position) -> Node:
        return replace(self, position=position)

    def clone(self) -> Node:
        """深拷贝 data，历史快照与当前图互不影响"""
        return replace(self, data=copy.deepcopy(self.data))


def _check_label(label: str) -> str:
    if len(label) > MAX_LABEL_LENGTH:
        raise DomainError(f"label 长度不能超过 {MAX_LABEL_LENGTH}")
    return label
