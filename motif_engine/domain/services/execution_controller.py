"""执行控制器 - 单节点运行与整图顺序运行

业务定义：
- run_node：校验 → 收集上游输入 → 状态置为 running → 调用一次生成服务 →
  把结果写入相连的输出节点 → 状态置为 complete；任何失败都把状态置为 error，
  以 NodeRunResult 返回，不向调用方抛出
- run_workflow：获取执行锁（已被持有则拒绝）→ 整图校验 → 依赖排序 →
  逐个运行生成器，遇到第一个失败即停止 → 无论如何释放执行锁 → 安排一次防抖保存
- stop_node / abort_all：取消进行中的生成调用，被取消的运行以 error 结束，不发错误提示；
  运行中的节点被删除时返回 NodeDeletedError

设计原则：
- 每次运行是一个 asyncio.Task，取消即 Task.cancel()
- 写状态之前和调用返回之后都重新确认节点仍然存在，节点被删除时结果直接丢弃
- 所有读写都通过 GraphModel，运行期间不持有图的私有副本
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from uuid import uuid4

from motif_engine.config import settings
from motif_engine.domain.entities.edge import Edge
from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.entities.node import CODE_LANGUAGES, Node
from motif_engine.domain.exceptions import (
    CycleDetectedError,
    ExecutionCancelledError,
    ExecutionError,
    GenerationNetworkError,
    GenerationTimeoutError,
    NodeDeletedError,
    RateLimitError,
    StructuralError,
)
from motif_engine.domain.ports.generation_service import GenerationServicePort
from motif_engine.domain.services import dependency_resolver, input_collector
from motif_engine.domain.services.editing_session import EditingSession
from motif_engine.domain.services.graph_model import GraphModel
from motif_engine.domain.services.notice_bus import NoticeBus
from motif_engine.domain.services.persistence_synchronizer import PersistenceSynchronizer
from motif_engine.domain.services.workflow_validator import WorkflowValidator
from motif_engine.domain.value_objects.execution_status import ExecutionStatus
from motif_engine.domain.value_objects.generation import GenerationRequest, GenerationResponse
from motif_engine.domain.value_objects.node_kind import NodeKind
from motif_engine.domain.value_objects.validation import ValidationResult

logger = logging.getLogger(__name__)

AUTO_NODE_VERTICAL_SPACING = 280


@dataclass(frozen=True)
class NodeRunResult:
    node_id: str
    status: ExecutionStatus
    image_url: str | None = None
    text: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status == ExecutionStatus.COMPLETE


class WorkflowOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"
    REJECTED = "rejected"


@dataclass(frozen=True)
class WorkflowRunResult:
    outcome: WorkflowOutcome
    completed_count: int = 0
    total_count: int = 0
    failed_node_id: str | None = None
    validation: ValidationResult | None = None
    error: Exception | None = None


class ExecutionController:
    def __init__(
        self,
        graph: GraphModel,
        session: EditingSession,
        generation_service: GenerationServicePort,
        notices: NoticeBus,
        *,
        validator: WorkflowValidator | None = None,
        persistence: PersistenceSynchronizer | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._graph = graph
        self._session = session
        self._service = generation_service
        self._notices = notices
        self._validator = validator or WorkflowValidator()
        self._persistence = persistence
        self._timeout = timeout_seconds or settings.generation_timeout_seconds
        self._tasks: dict[str, asyncio.Task[GenerationResponse]] = {}

    @property
    def running_node_ids(self) -> list[str]:
        return [node_id for node_id, task in self._tasks.items() if not task.done()]

    # ==================== 单节点 ====================

    async def run_node(self, node_id: str) -> NodeRunResult:
        validation = self._validator.validate_node(node_id, self._graph.read())
        if not validation.valid:
            description = ", ".join(issue.message for issue in validation.blocking)
            self._notices.error("Cannot run node", description)
            return NodeRunResult(
                node_id=node_id,
                status=self._current_status(node_id),
                error=StructuralError(description),
            )

        for warning in validation.warnings:
            self._notices.warning(warning.message, warning.details)

        snapshot = self._graph.read()
        node = snapshot.require_node(node_id)
        request = self._build_request(node, snapshot)

        if not self._set_status(node_id, ExecutionStatus.RUNNING):
            return self._deleted(node_id)

        previous = self._tasks.get(node_id)
        if previous is not None and not previous.done():
            logger.info(f"节点 {node_id} 重新运行，取消上一次调用")
            previous.cancel()

        task = asyncio.get_running_loop().create_task(self._service.generate(request))
        self._tasks[node_id] = task

        try:
            response = await asyncio.wait_for(task, timeout=self._timeout)
        except TimeoutError:
            logger.warning(f"节点 {node_id} 生成超时: {self._timeout} 秒")
            error = GenerationTimeoutError(f"Generation timed out after {int(self._timeout)} seconds")
            return self._fail(node_id, task, error)
        except asyncio.CancelledError:
            result = self._fail(node_id, task, ExecutionCancelledError(node_id))
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return result
        except ExecutionError as e:
            return self._fail(node_id, task, e)
        except Exception as e:
            logger.error(f"节点 {node_id} 生成出现未预期的异常: {e}", exc_info=True)
            return self._fail(node_id, task, ExecutionError(str(e)))
        finally:
            if self._tasks.get(node_id) is task:
                del self._tasks[node_id]

        if not self._graph.read().has_node(node_id):
            return self._deleted(node_id)

        return self._apply_response(node_id, response)

    def stop_node(self, node_id: str) -> bool:
        """取消某节点进行中的生成调用

        返回：
            是否真的取消了一个进行中的调用
        """
        task = self._tasks.get(node_id)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info(f"已请求停止节点: {node_id}")
        return True

    def abort_all(self) -> int:
        """取消全部进行中的生成调用（会话关闭时调用）"""
        cancelled = 0
        for node_id in list(self._tasks):
            if self.stop_node(node_id):
                cancelled += 1
        if cancelled:
            logger.info(f"已中止 {cancelled} 个进行中的生成调用")
        return cancelled

    def reset_node(self, node_id: str) -> bool:
        """complete/error → idle（重试前复位）"""
        node = self._graph.read().get_node(node_id)
        if node is None or not node.status.can_transition_to(ExecutionStatus.IDLE):
            return False
        return self._set_status(node_id, ExecutionStatus.IDLE)

    # ==================== 整图 ====================

    async def run_workflow(self) -> WorkflowRunResult:
        if not self._session.execution_lock.acquire():
            self._notices.info("Workflow is already running", "Please wait for the current run to finish")
            return WorkflowRunResult(outcome=WorkflowOutcome.REJECTED)

        try:
            return await self._run_workflow_locked()
        finally:
            self._session.execution_lock.release()
            logger.info("整图运行结束，执行锁已释放")
            if self._persistence is not None:
                self._persistence.schedule_save()

    async def _run_workflow_locked(self) -> WorkflowRunResult:
        snapshot = self._graph.read()
        validation = self._validator.validate_workflow(snapshot)

        if not validation.valid:
            first = validation.blocking[0]
            self._notices.error(first.message, first.details)
            return WorkflowRunResult(outcome=WorkflowOutcome.BLOCKED, validation=validation)

        for warning in validation.warnings:
            self._notices.warning(warning.message, warning.details)

        try:
            order = dependency_resolver.execution_order(snapshot)
        except CycleDetectedError as e:
            self._notices.error("Circular dependency detected", str(e))
            return WorkflowRunResult(outcome=WorkflowOutcome.BLOCKED, validation=validation, error=e)

        total = len(order)
        logger.info(f"开始整图运行: {total} 个节点, 顺序={[node.id for node in order]}")
        self._notices.info("Running workflow", f"Executing {total} node{'s' if total != 1 else ''}...")

        completed = 0
        for node in order:
            result = await self.run_node(node.id)
            if not result.ok:
                failed = self._graph.read().get_node(node.id)
                title = failed.title if failed else node.title
                self._notices.error(
                    "Workflow failed",
                    f"Failed at node {title}. {completed} of {total} nodes completed.",
                )
                return WorkflowRunResult(
                    outcome=WorkflowOutcome.FAILED,
                    completed_count=completed,
                    total_count=total,
                    failed_node_id=node.id,
                    validation=validation,
                    error=result.error,
                )
            completed += 1

        self._notices.success(
            "Workflow complete", f"Successfully generated {completed} node{'s' if completed != 1 else ''}"
        )
        return WorkflowRunResult(
            outcome=WorkflowOutcome.COMPLETED,
            completed_count=completed,
            total_count=total,
            validation=validation,
        )

    # ==================== 内部 ====================

    def _build_request(self, node: Node, snapshot: GraphSnapshot) -> GenerationRequest:
        inputs = input_collector.collect_inputs(node.id, snapshot)
        wants_text = node.data.get("output_type") == "text" or any(
            (target := snapshot.get_node(edge.target_node_id)) is not None
            and target.kind == NodeKind.CODE_OUTPUT
            for edge in snapshot.outgoing(node.id)
        )
        return GenerationRequest(
            prompt=node.data["prompt"],
            model=node.data["model"],
            images=inputs.images,
            text_inputs=inputs.text_inputs,
            target_language=input_collector.target_language(node.id, snapshot) if wants_text else None,
            session_id=self._session.workflow_id,
        )

    def _current_status(self, node_id: str) -> ExecutionStatus:
        node = self._graph.read().get_node(node_id)
        return node.status if node else ExecutionStatus.IDLE

    def _set_status(self, node_id: str, status: ExecutionStatus) -> bool:
        if not self._graph.read().has_node(node_id):
            return False
        self._graph.mutate(lambda snapshot: snapshot.update_node_data(node_id, status=status.value))
        return True

    def _fail(
        self,
        node_id: str,
        task: asyncio.Task[GenerationResponse],
        error: ExecutionError,
    ) -> NodeRunResult:
        if not self._graph.read().has_node(node_id):
            return self._deleted(node_id)

        # 被更新的一次运行替换时不覆盖它的状态
        superseded = self._tasks.get(node_id) not in (None, task)
        if not superseded:
            self._set_status(node_id, ExecutionStatus.ERROR)

        if isinstance(error, ExecutionCancelledError):
            # 用户主动取消或被重跑替换，不提示错误
            logger.info(f"节点运行已取消: {node_id}")
        else:
            logger.warning(f"节点运行失败: {node_id}, 错误={error}")
            self._notices.error(_failure_title(error), str(error))
        return NodeRunResult(node_id=node_id, status=ExecutionStatus.ERROR, error=error)

    def _deleted(self, node_id: str) -> NodeRunResult:
        logger.warning(f"节点在运行过程中被删除: {node_id}")
        self._notices.warning("Node was deleted during execution")
        return NodeRunResult(
            node_id=node_id, status=ExecutionStatus.ERROR, error=NodeDeletedError(node_id)
        )

    def _apply_response(self, node_id: str, response: GenerationResponse) -> NodeRunResult:
        snapshot = self._graph.read()
        image_output_ids: list[str] = []
        code_output_ids: list[str] = []

        for edge in snapshot.outgoing(node_id):
            target = snapshot.get_node(edge.target_node_id)
            if target is None:
                continue
            match target.kind:
                case NodeKind.STATIC_INPUT:
                    image_output_ids.append(target.id)
                case NodeKind.CODE_OUTPUT:
                    code_output_ids.append(target.id)
                case NodeKind.GENERATOR | NodeKind.TEXT_INPUT | NodeKind.NOTE | NodeKind.CAPTURE:
                    pass

        auto_nodes, auto_edges = self._auto_code_nodes(node_id, snapshot, code_output_ids, response)
        primary = response.files[0] if response.is_multi_file else None

        def apply(current: GraphSnapshot) -> GraphSnapshot:
            updated = current.update_node_data(node_id, status=ExecutionStatus.COMPLETE.value)
            if response.text is not None:
                updated = updated.update_node_data(node_id, last_text_output=response.text)

            if response.image_url:
                for output_id in image_output_ids:
                    updated = updated.update_node_data(output_id, image_url=response.image_url)

            if response.text is not None:
                for output_id in code_output_ids:
                    changes = {"content": response.text, "structured_output": response.structured_output}
                    if primary is not None:
                        changes["language"] = _code_language(primary.language)
                        if primary.filename:
                            changes["label"] = primary.filename
                    updated = updated.update_node_data(output_id, **changes)

            for auto_node in auto_nodes:
                updated = updated.add_node(auto_node)
            for auto_edge in auto_edges:
                updated = updated.add_edge(auto_edge)
            return updated

        self._graph.mutate(apply)

        if auto_nodes:
            plural = "s" if len(auto_nodes) > 1 else ""
            self._notices.info(
                f"Created {len(auto_nodes)} additional output{plural}",
                ", ".join(node.data.get("label", node.id) for node in auto_nodes),
            )

        title = self._graph.read().require_node(node_id).title
        variations = f" ({len(image_output_ids)} variations)" if len(image_output_ids) > 1 else ""
        files = f" ({len(response.files)} files)" if response.is_multi_file else ""
        self._notices.success("Generation complete", f'Node "{title}" completed{variations}{files}')
        logger.info(f"节点运行完成: {node_id}")

        return NodeRunResult(
            node_id=node_id,
            status=ExecutionStatus.COMPLETE,
            image_url=response.image_url,
            text=response.text,
        )

    def _auto_code_nodes(
        self,
        node_id: str,
        snapshot: GraphSnapshot,
        code_output_ids: list[str],
        response: GenerationResponse,
    ) -> tuple[list[Node], list[Edge]]:
        """多文件输出时，为第一个之外的文件在主代码节点下方创建新的代码节点"""
        if not response.is_multi_file or not code_output_ids:
            return [], []

        anchor = snapshot.require_node(code_output_ids[0])
        batch = uuid4().hex[:8]
        nodes: list[Node] = []
        edges: list[Edge] = []

        for index, file in enumerate(response.files[1:]):
            auto_node = Node.create_code(
                anchor.position.offset(dy=(index + 1) * AUTO_NODE_VERTICAL_SPACING),
                node_id=f"auto-{node_id}-{batch}-{index}",
                content=file.content,
                language=_code_language(file.language),
                label=file.filename or f"File {index + 2}",
            )
            nodes.append(auto_node)
            edges.append(Edge.create(node_id, auto_node.id))

        return nodes, edges


def _code_language(language: str | None) -> str:
    if language in CODE_LANGUAGES:
        return language
    return "text"


def _failure_title(error: ExecutionError) -> str:
    match error:
        case RateLimitError():
            return "Rate limit exceeded"
        case GenerationNetworkError():
            return "Network error"
        case _:
            return "Generation failed"
