"""Pytest 全局配置与共享夹具

提供：
- notices / session / graph：领域服务的基础依赖
- FakeGenerationService：可编排响应与进行中状态的生成服务替身
- store：内存工作流存储
"""

import asyncio
from collections.abc import Callable

import pytest

from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.services.editing_session import EditingSession
from motif_engine.domain.services.graph_model import GraphModel
from motif_engine.domain.services.notice_bus import NoticeBus
from motif_engine.domain.value_objects.generation import GenerationRequest, GenerationResponse
from motif_engine.domain.value_objects.workflow_identity import WorkflowIdentity
from motif_engine.infrastructure.adapters.in_memory_workflow_store import InMemoryWorkflowStore

GENERATED_IMAGE_URL = "https://cdn.example.com/generated/output.png"


class FakeGenerationService:
    """生成服务替身

    - calls: 收到的全部请求
    - respond: 自定义响应函数（可抛异常）
    - gate: 设置后每次调用都会等待它被 set，用于模拟进行中的调用
    """

    def __init__(self) -> None:
        self.calls: list[GenerationRequest] = []
        self.respond: Callable[[GenerationRequest], GenerationResponse] = lambda request: (
            GenerationResponse(image_url=GENERATED_IMAGE_URL)
        )
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.calls.append(request)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        return self.respond(request)


@pytest.fixture
def notices() -> NoticeBus:
    return NoticeBus()


@pytest.fixture
def session() -> EditingSession:
    editing_session = EditingSession()
    editing_session.assign_identity(WorkflowIdentity(workflow_id="wf-test", owner_id="owner-1"))
    editing_session.initialized = True
    return editing_session


@pytest.fixture
def graph() -> GraphModel:
    return GraphModel(GraphSnapshot())


@pytest.fixture
def generation_service() -> FakeGenerationService:
    return FakeGenerationService()


@pytest.fixture
def store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()
