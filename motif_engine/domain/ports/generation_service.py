"""生成服务抽象接口(Domain Port) - 隔离执行控制器与具体HTTP实现.

设计原则:
- 使用Protocol实现结构化子类型
- 不依赖任何具体HTTP库
- 失败统一以 ExecutionError 子类表达
"""

from typing import Protocol

from motif_engine.domain.value_objects.generation import GenerationRequest, GenerationResponse


class GenerationServicePort(Protocol):
    """外部生成服务接口(Domain Port)."""

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """执行一次生成调用.

        参数:
            request: 提示词、模型、上游图片与文本输入

        返回:
            图片 URL 或文本结果

        异常:
            RateLimitError: 服务限流(HTTP 429)
            GenerationServiceError: 其他非 2xx 响应
            GenerationNetworkError: 连接/传输失败
            GenerationTimeoutError: 调用超时
        """
        ...
