"""Generation Httpx Adapter - 调用外部生成服务的HTTP实现.

职责:
- 把 GenerationRequest 序列化为 camelCase JSON 并 POST 给生成服务
- 用 pydantic 解析响应体
- 把 httpx 异常与非 2xx 响应翻译为领域层 ExecutionError 子类

适用场景:
- 生产环境
- 测试时注入带 MockTransport 的 AsyncClient
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from motif_engine.config import settings
from motif_engine.domain.exceptions import (
    GenerationNetworkError,
    GenerationServiceError,
    GenerationTimeoutError,
    RateLimitError,
)
from motif_engine.domain.value_objects.generation import (
    GenerationRequest,
    GenerationResponse,
    OutputFile,
)

logger = logging.getLogger(__name__)


class _OutputImage(BaseModel):
    url: str


class _OutputFilePayload(BaseModel):
    content: str
    language: str | None = None
    filename: str | None = None


class _StructuredOutput(BaseModel):
    model_config = ConfigDict(extra="allow")

    files: list[_OutputFilePayload] = Field(default_factory=list)


class GenerationPayload(BaseModel):
    """生成服务的响应体"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool = True
    output_image: _OutputImage | None = Field(default=None, alias="outputImage")
    text: str | None = None
    structured_output: dict[str, Any] | None = Field(default=None, alias="structuredOutput")
    error: str | None = None
    message: str | None = None


class GenerationHttpxAdapter:
    """生成服务 HTTP 客户端.

    参数:
        base_url: 生成服务地址, 默认取配置
        timeout: 单次调用超时(秒), 默认取配置
        client: 外部提供的 AsyncClient(测试注入 MockTransport 时使用)
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = base_url or settings.generation_service_url
        self._timeout = timeout or settings.generation_timeout_seconds
        self._client = client

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """执行一次生成调用.

        异常:
            RateLimitError: HTTP 429
            GenerationServiceError: 其他非 2xx 响应或响应体不合法
            GenerationTimeoutError: 请求超时
            GenerationNetworkError: 网络错误
        """
        payload = request.to_payload()

        try:
            if self._client is not None:
                response = await self._client.post(self._url, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._url, json=payload)
        except httpx.TimeoutException as e:
            raise GenerationTimeoutError(
                f"Generation request timed out after {self._timeout}s"
            ) from e
        except httpx.TransportError as e:
            raise GenerationNetworkError(f"Network error calling generation service: {e}") from e

        body = _json_or_empty(response)

        if response.status_code == 429:
            logger.warning(f"生成服务限流: reset={body.get('reset')}")
            raise RateLimitError(_format_reset(body.get("reset")))

        if response.is_error:
            message = (
                body.get("error")
                or body.get("message")
                or f"HTTP {response.status_code}: Generation failed"
            )
            raise GenerationServiceError(str(message), status_code=response.status_code)

        try:
            parsed = GenerationPayload.model_validate(body)
        except ValidationError as e:
            raise GenerationServiceError(
                f"Malformed generation response: {e.error_count()} invalid fields",
                status_code=response.status_code,
            ) from e

        if not parsed.success:
            raise GenerationServiceError(
                parsed.error or parsed.message or "Generation failed",
                status_code=response.status_code,
            )

        return _to_response(parsed)


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _format_reset(reset: Any) -> str | None:
    """限流重置时间：毫秒时间戳转为本地时间，其他格式原样返回"""
    if reset is None or reset == "":
        return None
    if isinstance(reset, int | float):
        return datetime.fromtimestamp(reset / 1000).strftime("%H:%M:%S")
    return str(reset)


def _to_response(parsed: GenerationPayload) -> GenerationResponse:
    files: tuple[OutputFile, ...] = ()
    if parsed.structured_output is not None:
        try:
            structured = _StructuredOutput.model_validate(parsed.structured_output)
        except ValidationError:
            structured = _StructuredOutput()
        files = tuple(
            OutputFile(content=file.content, language=file.language, filename=file.filename)
            for file in structured.files
        )

    image_url = parsed.output_image.url if parsed.output_image else None
    if image_url is None and parsed.text is None:
        raise GenerationServiceError("Generation returned no output")

    return GenerationResponse(
        image_url=image_url,
        text=parsed.text,
        files=files,
        structured_output=parsed.structured_output,
    )
