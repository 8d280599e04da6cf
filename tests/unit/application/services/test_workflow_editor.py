"""测试：WorkflowEditor 编辑会话门面

业务背景：
- UI 外壳通过它完成新建/加载、编辑、连线、撤销/重做、运行
- 修改 → 历史 → 防抖保存的编排
- 整图运行期间拒绝结构性修改
"""

import asyncio

import pytest

from motif_engine.application.services.workflow_editor import WorkflowEditor
from motif_engine.domain.entities.edge import Edge
from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.entities.node import Node
from motif_engine.domain.exceptions import ConcurrencyRejection, NodeDeletedError, NotFoundError
from motif_engine.domain.services.execution_controller import WorkflowOutcome
from motif_engine.domain.services.notice_bus import NoticeLevel
from motif_engine.domain.value_objects.node_kind import NodeKind
from motif_engine.domain.value_objects.position import Position

DEBOUNCE = 0.02
GENERATED_URL = "https://cdn.example.com/generated/output.png"


@pytest.fixture
def editor(store, generation_service) -> WorkflowEditor:
    return WorkflowEditor(
        store,
        generation_service,
        debounce_seconds=DEBOUNCE,
        save_wait_timeout=1.0,
        generation_timeout=5.0,
    )


async def _settle() -> None:
    await asyncio.sleep(DEBOUNCE * 5)


def _titles(editor: WorkflowEditor, level: NoticeLevel) -> list[str]:
    return [notice.title for notice in editor.notices.notice_log if notice.level == level]


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_create_workflow_saves_initial_content(self, editor, store):
        initial = GraphSnapshot.of([Node.create_note(Position(0, 0), node_id="note")])

        workflow_id = await editor.create_workflow("owner-1", initial=initial)
        await _settle()

        assert workflow_id == editor.session.workflow_id
        assert store.node_ids(workflow_id) == ["note"]

    @pytest.mark.asyncio
    async def test_create_failure_keeps_editing_available(self, editor, store, monkeypatch):
        """测试：远端创建失败时返回 None，图仍可编辑，不保存"""

        async def refuse(owner_id, name):
            raise ConnectionError("offline")

        monkeypatch.setattr(store, "create_workflow", refuse)

        assert await editor.create_workflow("owner-1") is None
        assert editor.add_node(NodeKind.NOTE, Position(0, 0)) is not None
        await _settle()

        assert store.save_count == 0
        assert _titles(editor, NoticeLevel.ERROR) == ["Could not create workflow"]

    @pytest.mark.asyncio
    async def test_edits_before_identity_saved_after_create(self, store, generation_service):
        """测试：远端创建完成前的修改在身份就绪后保存"""
        release = asyncio.Event()
        original_create = store.create_workflow

        async def slow_create(owner_id, name):
            await release.wait()
            return await original_create(owner_id, name)

        store.create_workflow = slow_create
        editor = WorkflowEditor(store, generation_service, debounce_seconds=DEBOUNCE)

        creating = asyncio.create_task(editor.create_workflow("owner-1"))
        await asyncio.sleep(0)
        editor.add_node(NodeKind.NOTE, Position(0, 0))
        await _settle()
        assert store.save_count == 0

        release.set()
        workflow_id = await creating
        await _settle()

        assert len(store.node_ids(workflow_id)) == 1

    @pytest.mark.asyncio
    async def test_load_workflow(self, editor, store):
        workflow_id = await store.create_workflow("owner-1", "Saved")
        note = Node.create_note(Position(0, 0), node_id="note")
        await store.save_nodes(workflow_id, [note])

        snapshot = await editor.load_workflow(workflow_id, "owner-1")

        assert snapshot.node_ids() == ["note"]
        assert editor.graph.read().node_ids() == ["note"]
        assert editor.history.can_undo is False
        assert editor.persistence.is_dirty is False

    @pytest.mark.asyncio
    async def test_load_missing_workflow(self, editor):
        with pytest.raises(NotFoundError):
            await editor.load_workflow("missing", "owner-1")

    @pytest.mark.asyncio
    async def test_shutdown_flushes_pending_save(self, store, generation_service):
        editor = WorkflowEditor(store, generation_service, debounce_seconds=10.0)
        workflow_id = await editor.create_workflow("owner-1")
        editor.add_node(NodeKind.NOTE, Position(0, 0))

        await editor.shutdown()

        assert len(store.node_ids(workflow_id)) == 1


class TestEditing:
    @pytest.mark.asyncio
    async def test_add_update_move_with_history(self, editor):
        await editor.create_workflow("owner-1")

        node = editor.add_node(NodeKind.GENERATOR, Position(0, 0), prompt="a cat")
        assert editor.update_node_data(node.id, prompt="a dog") is True
        assert editor.move_node(node.id, Position(40, 50)) is True
        assert editor.update_node_data("ghost", prompt="x") is False

        current = editor.graph.read().require_node(node.id)
        assert current.data["prompt"] == "a dog"
        assert current.position == Position(40, 50)

        editor.undo()
        editor.undo()
        assert editor.graph.read().require_node(node.id).data["prompt"] == "a cat"
        editor.redo()
        assert editor.graph.read().require_node(node.id).data["prompt"] == "a dog"

    @pytest.mark.asyncio
    async def test_connect_validates_and_notifies(self, editor):
        await editor.create_workflow("owner-1")
        image = editor.add_node(NodeKind.STATIC_INPUT, Position(0, 0))
        code = editor.add_node(NodeKind.CODE_OUTPUT, Position(0, 0))
        prompt = editor.add_node(NodeKind.GENERATOR, Position(0, 0))

        assert editor.can_connect(image.id, code.id) is False
        rejected = editor.connect(image.id, code.id)
        assert rejected.error == "Cannot connect outputs directly"
        assert _titles(editor, NoticeLevel.ERROR) == ["Cannot connect outputs directly"]

        accepted = editor.connect(image.id, prompt.id)
        assert accepted.valid is True
        assert editor.graph.read().has_edge(image.id, prompt.id)

        assert editor.remove_edges([Edge.create(image.id, prompt.id).id]) is True
        assert editor.graph.read().edges == ()
        assert editor.remove_edges(["missing"]) is False

    @pytest.mark.asyncio
    async def test_delete_nodes_persists_and_clears_selection(self, editor, store):
        """测试：删除节点后立即保存，远端不再有被删除的节点"""
        workflow_id = await editor.create_workflow("owner-1")
        keep = editor.add_node(NodeKind.GENERATOR, Position(0, 0))
        doomed = editor.add_node(NodeKind.STATIC_INPUT, Position(0, 300))
        editor.connect(keep.id, doomed.id)
        await _settle()
        assert len(store.node_ids(workflow_id)) == 2
        editor.select_nodes([keep.id, doomed.id, "ghost"])

        assert await editor.delete_nodes([doomed.id]) is True

        assert store.node_ids(workflow_id) == [keep.id]
        assert store.edge_ids(workflow_id) == []
        assert editor.selected_node_ids == [keep.id]

        editor.undo()
        assert editor.graph.read().has_node(doomed.id)

    @pytest.mark.asyncio
    async def test_delete_unknown_nodes_is_noop(self, editor):
        await editor.create_workflow("owner-1")

        assert await editor.delete_nodes(["ghost"]) is False


class TestExecutionThroughEditor:
    @pytest.mark.asyncio
    async def test_run_workflow_then_save(self, editor, store, generation_service):
        workflow_id = await editor.create_workflow("owner-1")
        prompt = editor.add_node(NodeKind.GENERATOR, Position(0, 0), prompt="a cat")
        output = editor.add_node(NodeKind.STATIC_INPUT, Position(0, 300))
        editor.connect(prompt.id, output.id)

        result = await editor.run_workflow()
        await _settle()

        assert result.outcome == WorkflowOutcome.COMPLETED
        stored = await store.load_workflow(workflow_id)
        assert len(generation_service.calls) == 1
        assert stored.require_node(output.id).data["image_url"] == GENERATED_URL
        assert stored.require_node(prompt.id).data["status"] == "complete"

    @pytest.mark.asyncio
    async def test_structural_edits_rejected_while_running(self, editor, generation_service):
        """测试：整图运行期间拒绝增删节点、连线、撤销，数据修改仍然允许

        验收标准：
        - add_node/connect/undo/delete 被拒绝并给出 warning
        - run_node 返回 ConcurrencyRejection，不调用生成服务
        - update_node_data 成功
        """
        await editor.create_workflow("owner-1")
        prompt = editor.add_node(NodeKind.GENERATOR, Position(0, 0), prompt="a cat")
        output = editor.add_node(NodeKind.STATIC_INPUT, Position(0, 300))
        editor.connect(prompt.id, output.id)
        generation_service.gate = asyncio.Event()

        run = asyncio.create_task(editor.run_workflow())
        await generation_service.started.wait()

        assert editor.add_node(NodeKind.NOTE, Position(0, 0)) is None
        assert editor.connect(output.id, prompt.id).valid is False
        assert editor.undo() is False
        assert await editor.delete_nodes([output.id]) is False
        rejected = await editor.run_node(prompt.id)
        assert isinstance(rejected.error, ConcurrencyRejection)
        assert len(generation_service.calls) == 1
        assert editor.update_node_data(output.id, label="Hero") is True
        assert _titles(editor, NoticeLevel.WARNING).count("Workflow is running") == 4

        generation_service.gate.set()
        result = await run

        assert result.outcome == WorkflowOutcome.COMPLETED
        assert editor.add_node(NodeKind.NOTE, Position(0, 0)) is not None

    @pytest.mark.asyncio
    async def test_run_node_and_stop(self, editor, generation_service):
        await editor.create_workflow("owner-1")
        prompt = editor.add_node(NodeKind.GENERATOR, Position(0, 0), prompt="a cat")
        output = editor.add_node(NodeKind.STATIC_INPUT, Position(0, 300))
        editor.connect(prompt.id, output.id)
        generation_service.gate = asyncio.Event()

        run = asyncio.create_task(editor.run_node(prompt.id))
        await generation_service.started.wait()

        assert editor.stop_node(prompt.id) is True
        result = await run

        assert result.ok is False
        assert editor.graph.read().require_node(prompt.id).status.value == "error"

    @pytest.mark.asyncio
    async def test_delete_running_node(self, editor, store, generation_service):
        """测试：删除正在运行的节点，运行结果为 NodeDeletedError，远端不再保存该节点"""
        workflow_id = await editor.create_workflow("owner-1")
        prompt = editor.add_node(NodeKind.GENERATOR, Position(0, 0), prompt="a cat")
        output = editor.add_node(NodeKind.STATIC_INPUT, Position(0, 300))
        editor.connect(prompt.id, output.id)
        generation_service.gate = asyncio.Event()

        run = asyncio.create_task(editor.run_node(prompt.id))
        await generation_service.started.wait()
        assert await editor.delete_nodes([prompt.id]) is True
        result = await run

        assert isinstance(result.error, NodeDeletedError)
        assert _titles(editor, NoticeLevel.ERROR) == []
        assert store.node_ids(workflow_id) == [output.id]

    @pytest.mark.asyncio
    async def test_status_changes_not_recorded_in_history(self, editor):
        """测试：整图运行中的状态变化不进入撤销历史"""
        await editor.create_workflow("owner-1")
        prompt = editor.add_node(NodeKind.GENERATOR, Position(0, 0), prompt="a cat")
        output = editor.add_node(NodeKind.STATIC_INPUT, Position(0, 300))
        editor.connect(prompt.id, output.id)
        size_before = editor.history.size

        await editor.run_workflow()

        assert editor.history.size == size_before
