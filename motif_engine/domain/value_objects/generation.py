"""生成服务请求/响应值对象

业务定义：
- WorkflowImage：上游图片输入，sequence_number 表示在请求中的顺序（从 1 开始）
- TextInput：上游文本输入（代码、生成器文本输出、文本节点、捕获结果）
- GenerationRequest：一次生成调用的完整输入
- GenerationResponse：生成结果，图片 URL 或文本（可带结构化多文件输出）
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class WorkflowImage:
    url: str
    media_type: str
    sequence_number: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "mediaType": self.media_type,
            "sequenceNumber": self.sequence_number,
        }


@dataclass(frozen=True)
class TextInput:
    content: str
    language: str | None = None
    label: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"content": self.content}
        if self.language:
            payload["language"] = self.language
        if self.label:
            payload["label"] = self.label
        return payload


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    model: str
    images: tuple[WorkflowImage, ...] = ()
    text_inputs: tuple[TextInput, ...] = ()
    target_language: str | None = None
    session_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """转换为生成服务的 JSON 请求体（camelCase）"""
        payload: dict[str, Any] = {
            "prompt": self.prompt,
            "model": self.model,
            "images": [image.to_payload() for image in self.images],
            "textInputs": [text.to_payload() for text in self.text_inputs],
        }
        if self.target_language:
            payload["targetLanguage"] = self.target_language
        if self.session_id:
            payload["sessionId"] = self.session_id
        return payload


@dataclass(frozen=True)
class OutputFile:
    """结构化输出中的单个文件"""

    content: str
    language: str | None = None
    filename: str | None = None


@dataclass(frozen=True)
class GenerationResponse:
    image_url: str | None = None
    text: str | None = None
    files: tuple[OutputFile, ...] = ()
    structured_output: dict[str, Any] | None = field(default=None, compare=False)

    @property
    def is_multi_file(self) -> bool:
        return len(self.files) > 1
