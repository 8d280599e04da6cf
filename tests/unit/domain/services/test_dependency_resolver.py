"""测试：依赖解析与执行排序

业务背景：
- 生成器 G1 → 图片节点 → 生成器 G2：G2 依赖 G1
- 执行顺序依赖优先；并列节点按插入顺序
- 有环时抛出 CycleDetectedError，不截断、不死循环
"""

import pytest

from motif_engine.domain.entities.edge import Edge
from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.entities.node import Node
from motif_engine.domain.exceptions import CycleDetectedError
from motif_engine.domain.services.dependency_resolver import (
    execution_order,
    find_cycle,
    generator_dependencies,
    resolve_order,
)
from motif_engine.domain.value_objects.position import Position


def _generator(node_id: str) -> Node:
    return Node.create_generator(Position(0, 0), node_id=node_id, prompt=f"prompt for {node_id}")


def _image(node_id: str) -> Node:
    return Node.create_image(Position(0, 0), node_id=node_id)


def _ids(nodes: list[Node]) -> list[str]:
    return [node.id for node in nodes]


class TestGeneratorDependencies:
    def test_walks_through_pass_through_nodes(self):
        """测试：穿过图片/代码中转节点找到上游生成器"""
        snapshot = GraphSnapshot.of(
            [_generator("g1"), _image("img"), Node.create_code(Position(0, 0), node_id="code"), _generator("g2")],
            [Edge.create("g1", "img"), Edge.create("img", "g2"), Edge.create("code", "g2")],
        )

        assert generator_dependencies("g2", snapshot) == ["g1"]
        assert generator_dependencies("g1", snapshot) == []

    def test_direct_generator_edge(self):
        snapshot = GraphSnapshot.of([_generator("g1"), _generator("g2")], [Edge.create("g1", "g2")])

        assert generator_dependencies("g2", snapshot) == ["g1"]

    def test_static_inputs_are_not_dependencies(self):
        snapshot = GraphSnapshot.of(
            [Node.create_text_input(Position(0, 0), node_id="text"), _generator("g")],
            [Edge.create("text", "g")],
        )

        assert generator_dependencies("g", snapshot) == []


class TestExecutionOrder:
    def test_dependencies_run_first(self):
        """测试：G1 → img → G2，G2 插入在前也排在 G1 之后"""
        snapshot = GraphSnapshot.of(
            [_generator("g2"), _image("img"), _generator("g1")],
            [Edge.create("g1", "img"), Edge.create("img", "g2")],
        )

        assert _ids(execution_order(snapshot)) == ["g1", "g2"]

    def test_ties_broken_by_insertion_order(self):
        """测试：互不依赖的生成器按插入顺序执行"""
        snapshot = GraphSnapshot.of([_generator("c"), _generator("a"), _generator("b")])

        assert _ids(execution_order(snapshot)) == ["c", "a", "b"]

    def test_diamond(self):
        snapshot = GraphSnapshot.of(
            [_generator("root"), _generator("left"), _generator("right"), _generator("join")],
            [
                Edge.create("root", "left"),
                Edge.create("root", "right"),
                Edge.create("left", "join"),
                Edge.create("right", "join"),
            ],
        )

        assert _ids(execution_order(snapshot)) == ["root", "left", "right", "join"]

    def test_order_is_deterministic(self):
        snapshot = GraphSnapshot.of(
            [_generator("x"), _generator("y"), _generator("z")],
            [Edge.create("z", "x")],
        )

        first = _ids(execution_order(snapshot))
        second = _ids(execution_order(snapshot))

        assert first == second == ["y", "z", "x"]

    def test_non_generators_excluded(self):
        snapshot = GraphSnapshot.of([_image("img"), _generator("g"), Node.create_note(Position(0, 0))])

        assert _ids(execution_order(snapshot)) == ["g"]


class TestCycles:
    def test_cycle_through_image_nodes_raises(self):
        """测试：G1 → img1 → G2 → img2 → G1 构成环

        验收标准：
        - 抛出 CycleDetectedError
        - node_ids 包含参与环的生成器
        """
        snapshot = GraphSnapshot.of(
            [_generator("g1"), _image("img1"), _generator("g2"), _image("img2")],
            [
                Edge.create("g1", "img1"),
                Edge.create("img1", "g2"),
                Edge.create("g2", "img2"),
                Edge.create("img2", "g1"),
            ],
        )

        with pytest.raises(CycleDetectedError) as exc_info:
            execution_order(snapshot)

        assert set(exc_info.value.node_ids) == {"g1", "g2"}

    def test_self_dependency_through_pass_through_node(self):
        """测试：G → img → G 是自依赖"""
        snapshot = GraphSnapshot.of(
            [_generator("g"), _image("img")],
            [Edge.create("g", "img"), Edge.create("img", "g")],
        )

        with pytest.raises(CycleDetectedError) as exc_info:
            execution_order(snapshot)

        assert exc_info.value.node_ids == ["g"]

    def test_resolve_order_with_plain_dependency_map(self):
        nodes = [_generator("a"), _generator("b"), _generator("c")]
        deps = {"a": ["c"], "b": [], "c": ["b", "unknown"]}

        assert _ids(resolve_order(nodes, lambda node_id: deps[node_id])) == ["b", "c", "a"]

    def test_find_cycle_returns_closed_path_in_data_flow_order(self):
        deps = {"a": ["c"], "b": ["a"], "c": ["b"]}

        cycle = find_cycle(["a", "b", "c"], lambda node_id: deps[node_id])

        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"a", "b", "c"}
        # 数据流：c → a → b → c
        position = {node_id: index for index, node_id in enumerate(cycle[:-1])}
        assert (position["a"] - position["c"]) % 3 == 1

    def test_find_cycle_without_cycle(self):
        deps = {"a": [], "b": ["a"]}

        assert find_cycle(["a", "b"], lambda node_id: deps[node_id]) == []
