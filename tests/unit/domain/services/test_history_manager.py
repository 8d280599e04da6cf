"""测试：撤销/重做历史

业务背景：
- 历史是有界的快照序列 + 当前下标
- 入栈与恢复都深拷贝，历史条目与当前图互不影响
- 整图运行期间不记录历史
"""

import pytest

from motif_engine.domain.entities.node import Node
from motif_engine.domain.services.history_manager import HistoryManager
from motif_engine.domain.services.notice_bus import NoticeLevel
from motif_engine.domain.value_objects.position import Position


@pytest.fixture
def history(graph, session, notices) -> HistoryManager:
    manager = HistoryManager(graph, session, notices, max_history_size=5)
    manager.initialize(graph.read())
    return manager


def _add_note(graph, node_id: str) -> None:
    graph.mutate(lambda snapshot: snapshot.add_node(Node.create_note(Position(0, 0), node_id=node_id)))


class TestHistoryNavigation:
    def test_undo_then_redo_restores_state(self, graph, history):
        _add_note(graph, "a")
        history.push()

        assert history.undo() is True
        assert graph.read().node_ids() == []

        assert history.redo() is True
        assert graph.read().node_ids() == ["a"]

    def test_push_after_undo_discards_future(self, graph, history):
        """测试：撤销后再修改，原来的“未来”被丢弃"""
        _add_note(graph, "a")
        history.push()
        _add_note(graph, "b")
        history.push()

        history.undo()
        _add_note(graph, "c")
        history.push()

        assert history.can_redo is False
        assert graph.read().node_ids() == ["a", "c"]
        assert history.size == 3

    def test_boundaries_are_noops_with_notice(self, graph, history, notices):
        """测试：到达边界时 undo/redo 返回 False 并给出提示

        验收标准：
        - 模型不变
        - 发布 info 级提示
        """
        before = graph.read()

        assert history.undo() is False
        assert history.redo() is False

        assert graph.read() is before
        assert [(notice.level, notice.title) for notice in notices.notice_log] == [
            (NoticeLevel.INFO, "Nothing to undo"),
            (NoticeLevel.INFO, "Nothing to redo"),
        ]

    def test_index_stays_in_bounds(self, graph, history):
        for index in range(3):
            _add_note(graph, f"n{index}")
            history.push()

        for _ in range(10):
            history.undo()
        assert history.index == 0

        for _ in range(10):
            history.redo()
        assert history.index == history.size - 1


class TestHistoryBounds:
    def test_oldest_entry_evicted(self, graph, history):
        """测试：超过上限时淘汰最旧的快照"""
        for index in range(7):
            _add_note(graph, f"n{index}")
            history.push()

        assert history.size == 5
        assert history.index == 4

        while history.can_undo:
            history.undo()
        assert graph.read().node_ids() == ["n0", "n1", "n2"]


class TestHistoryIsolation:
    def test_entries_are_deep_copies(self, graph, history):
        """测试：修改当前图的节点 data 不影响历史条目"""
        _add_note(graph, "a")
        history.push()

        graph.read().require_node("a").data["content"] = "mutated in place"

        history.undo()
        history.redo()
        assert graph.read().require_node("a").data["content"] == ""

    def test_restored_snapshot_is_a_copy(self, graph, history):
        _add_note(graph, "a")
        history.push()
        history.undo()
        history.redo()

        graph.read().require_node("a").data["content"] = "edited after redo"
        history.undo()
        history.redo()

        assert graph.read().require_node("a").data["content"] == ""


class TestHistoryDuringExecution:
    def test_push_ignored_while_executing(self, graph, session, history):
        session.execution_lock.acquire()
        _add_note(graph, "a")

        assert history.push() is False
        assert history.size == 1

        session.execution_lock.release()
        assert history.push() is True
