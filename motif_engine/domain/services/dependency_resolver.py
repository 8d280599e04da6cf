"""依赖解析与执行排序

业务定义：
- 生成器之间的依赖：某生成器的入边来自另一个生成器，或来自一个由生成器写入的
  中转节点（图片/代码输出），则它依赖那个生成器
- 执行顺序：所有依赖都排在被依赖者之前；同时就绪的节点按插入顺序排列

设计原则：
- Kahn 拓扑排序，同样的输入永远得到同样的顺序
- 存在环时抛出 CycleDetectedError，不静默截断，也不死循环
"""

from __future__ import annotations

import heapq
from collections.abc import Callable, Sequence

from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.entities.node import Node
from motif_engine.domain.exceptions import CycleDetectedError
from motif_engine.domain.value_objects.node_kind import NodeKind


def generator_dependencies(node_id: str, snapshot: GraphSnapshot) -> list[str]:
    """返回某节点直接依赖的上游生成器 ID（去重，保持发现顺序）

    从节点的入边向上游回溯，遇到生成器即记为依赖；遇到图片/代码等
    非可执行的中转节点则继续穿过它向上查找。
    """
    deps: list[str] = []
    seen: set[str] = set()
    frontier = [edge.source_node_id for edge in snapshot.incoming(node_id)]

    while frontier:
        source_id = frontier.pop(0)
        if source_id in seen:
            continue
        seen.add(source_id)

        source = snapshot.get_node(source_id)
        if source is None:
            continue

        match source.kind:
            case NodeKind.GENERATOR:
                deps.append(source.id)
            case NodeKind.STATIC_INPUT | NodeKind.CODE_OUTPUT:
                frontier.extend(edge.source_node_id for edge in snapshot.incoming(source.id))
            case NodeKind.TEXT_INPUT | NodeKind.CAPTURE | NodeKind.NOTE:
                pass

    return deps


def resolve_order(
    nodes: Sequence[Node],
    get_dependencies: Callable[[str], list[str]],
) -> list[Node]:
    """Kahn 拓扑排序（节点级别）

    参数：
        nodes: 待排序的节点，其顺序即插入顺序（决定并列时的先后）
        get_dependencies: 返回某节点依赖的节点 ID；不在 nodes 中的 ID 被忽略

    返回：
        依赖优先的节点列表

    抛出：
        CycleDetectedError: 存在环，node_ids 为无法排序的节点（按插入顺序）
    """
    index = {node.id: position for position, node in enumerate(nodes)}
    in_degree = {node.id: 0 for node in nodes}
    dependents: dict[str, list[str]] = {node.id: [] for node in nodes}

    for node in nodes:
        for dep_id in dict.fromkeys(get_dependencies(node.id)):
            if dep_id in index and dep_id != node.id:
                dependents[dep_id].append(node.id)
                in_degree[node.id] += 1
            elif dep_id == node.id:
                raise CycleDetectedError([node.id])

    ready = [index[node_id] for node_id, degree in in_degree.items() if degree == 0]
    heapq.heapify(ready)
    ordered: list[Node] = []

    while ready:
        node = nodes[heapq.heappop(ready)]
        ordered.append(node)

        for dependent_id in dependents[node.id]:
            in_degree[dependent_id] -= 1
            if in_degree[dependent_id] == 0:
                heapq.heappush(ready, index[dependent_id])

    if len(ordered) != len(nodes):
        remaining = [node.id for node in nodes if in_degree[node.id] > 0]
        cycle = find_cycle(remaining, get_dependencies)
        raise CycleDetectedError(cycle or remaining)

    return ordered


def execution_order(snapshot: GraphSnapshot) -> list[Node]:
    """整图运行时生成器的执行顺序"""
    generators = snapshot.nodes_of_kind(NodeKind.GENERATOR)
    return resolve_order(generators, lambda node_id: generator_dependencies(node_id, snapshot))


def find_cycle(
    node_ids: Sequence[str],
    get_dependencies: Callable[[str], list[str]],
) -> list[str]:
    """在给定节点范围内找出一条具体的环路径（首尾相同，按数据流方向），没有环时返回空列表"""
    scope = set(node_ids)
    visited: set[str] = set()

    for start in node_ids:
        if start in visited:
            continue

        path: list[str] = []
        on_path: set[str] = set()
        stack: list[tuple[str, list[str]]] = [(start, [d for d in get_dependencies(start) if d in scope])]
        path.append(start)
        on_path.add(start)

        while stack:
            current, pending = stack[-1]
            if not pending:
                stack.pop()
                path.pop()
                on_path.discard(current)
                visited.add(current)
                continue

            dep_id = pending.pop(0)
            if dep_id in on_path:
                # 路径沿依赖方向；反转后按数据流方向展示
                cycle = [*path[path.index(dep_id):], dep_id]
                return list(reversed(cycle))
            if dep_id in visited:
                continue

            path.append(dep_id)
            on_path.add(dep_id)
            stack.append((dep_id, [d for d in get_dependencies(dep_id) if d in scope]))

    return []
