"""上游输入收集 - 为一次生成调用组装图片与文本输入

业务定义：
- 图片：来自直接相连的图片节点（有 URL 才算），按画布位置从上到下、从左到右排序，
  序号从 1 开始；多图合成时提示词可以用“图 1”“图 2”引用
- 文本：来自代码节点的内容、上游生成器的最近一次文本输出、文本输入节点、
  已完成的捕获节点（格式化为 Markdown）
- 目标语言：与生成器相连的代码输出节点的语言，默认 css
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.entities.node import DEFAULT_CODE_LANGUAGE, Node
from motif_engine.domain.value_objects.generation import TextInput, WorkflowImage
from motif_engine.domain.value_objects.node_kind import NodeKind

_DATA_URL_MEDIA_TYPE = re.compile(r"data:([^;]+);")


@dataclass(frozen=True)
class CollectedInputs:
    images: tuple[WorkflowImage, ...]
    text_inputs: tuple[TextInput, ...]


def detect_media_type(url: str) -> str:
    """根据 URL 推断图片媒体类型，无法识别时返回 image/png"""
    if "data:" in url:
        match = _DATA_URL_MEDIA_TYPE.search(url)
        if match:
            return match.group(1)
    else:
        path = url.split("?", 1)[0].lower()
        if path.endswith((".jpg", ".jpeg")):
            return "image/jpeg"
        if path.endswith(".webp"):
            return "image/webp"
        if path.endswith(".gif"):
            return "image/gif"
    return "image/png"


def _input_nodes(node_id: str, snapshot: GraphSnapshot) -> list[Node]:
    nodes = []
    for edge in snapshot.incoming(node_id):
        source = snapshot.get_node(edge.source_node_id)
        if source is not None:
            nodes.append(source)
    return nodes


def collect_images(node_id: str, snapshot: GraphSnapshot) -> list[WorkflowImage]:
    image_nodes = [
        node
        for node in _input_nodes(node_id, snapshot)
        if node.kind == NodeKind.STATIC_INPUT and node.data.get("image_url")
    ]
    image_nodes.sort(key=lambda node: (node.position.y, node.position.x))

    return [
        WorkflowImage(
            url=node.data["image_url"],
            media_type=detect_media_type(node.data["image_url"]),
            sequence_number=sequence,
        )
        for sequence, node in enumerate(image_nodes, start=1)
    ]


def collect_text_inputs(node_id: str, snapshot: GraphSnapshot) -> list[TextInput]:
    text_inputs: list[TextInput] = []

    for source in _input_nodes(node_id, snapshot):
        match source.kind:
            case NodeKind.CODE_OUTPUT:
                content = source.data.get("content")
                if content:
                    text_inputs.append(
                        TextInput(
                            content=content,
                            language=source.data.get("language"),
                            label=source.data.get("label") or "Code Input",
                        )
                    )
            case NodeKind.GENERATOR:
                content = source.data.get("last_text_output")
                if content:
                    text_inputs.append(
                        TextInput(content=content, label=source.data.get("title") or "Text Input")
                    )
            case NodeKind.TEXT_INPUT:
                value = source.data.get("value")
                if isinstance(value, str) and value.strip():
                    text_inputs.append(
                        TextInput(content=value, label=source.data.get("label") or "Text Input")
                    )
            case NodeKind.CAPTURE:
                if source.data.get("animation_context"):
                    text_inputs.append(
                        TextInput(
                            content=format_capture_markdown(source.data),
                            language="markdown",
                            label="Animation Capture",
                        )
                    )
            case NodeKind.STATIC_INPUT | NodeKind.NOTE:
                pass

    return text_inputs


def collect_inputs(node_id: str, snapshot: GraphSnapshot) -> CollectedInputs:
    return CollectedInputs(
        images=tuple(collect_images(node_id, snapshot)),
        text_inputs=tuple(collect_text_inputs(node_id, snapshot)),
    )


def target_language(node_id: str, snapshot: GraphSnapshot) -> str:
    """生成器文本输出的目标语言（取第一个相连的代码输出节点）"""
    for edge in snapshot.outgoing(node_id):
        target = snapshot.get_node(edge.target_node_id)
        if target is not None and target.kind == NodeKind.CODE_OUTPUT:
            return target.data.get("language") or DEFAULT_CODE_LANGUAGE
    return DEFAULT_CODE_LANGUAGE


def format_capture_markdown(data: dict[str, Any]) -> str:
    """把捕获节点的动效上下文整理成 Markdown，供文本模型参考"""
    context = data.get("animation_context") or {}
    if not context:
        return "No animation data captured."

    lines = ["# Animation Capture Results", "", f"**Source URL:** {data.get('url') or 'Unknown'}"]
    if data.get("selector"):
        lines.append(f"**Target Selector:** `{data['selector']}`")
    lines.append("")

    libraries = context.get("libraries")
    if libraries is not None:
        lines.append("## Animation Libraries Detected")
        detected = [name for name, present in libraries.items() if present]
        if detected:
            lines.extend(f"- {name}" for name in detected)
        else:
            lines.append("- No known animation libraries detected (likely CSS animations)")
        lines.append("")

    styles = context.get("computed_styles") or {}
    if styles:
        lines.append("## CSS Animation Properties")
        for prop, value in styles.items():
            if value and value not in ("none", "auto", "none 0s ease 0s"):
                lines.append(f"**{prop}:** `{value}`")
        lines.append("")

    keyframes = context.get("keyframes") or {}
    if keyframes:
        lines.append("## CSS Keyframes")
        for name, frames in keyframes.items():
            lines.append(f"### @keyframes {name}")
            lines.append("```css")
            lines.extend(f"{frame.get('offset')} {{ {frame.get('styles')} }}" for frame in frames)
            lines.append("```")
        lines.append("")

    frames = context.get("frames") or []
    if frames:
        lines.append("## Captured Frames")
        lines.append(f"Captured {len(frames)} frames over {frames[-1].get('timestamp', 0)}ms")

    return "\n".join(lines).rstrip() + "\n"
