"""连线规则引擎 - 判定一条候选边是否合法

业务规则（按顺序检查，返回第一条违例）：
1. 两个端点都必须存在
2. 不允许自连接
3. 同一对有序端点只能有一条边
4. 便签不参与任何连线
5. 输出节点（图片/代码）之间不能直接相连
6. 图片、代码、文本输入、捕获节点只能连向生成器
7. 生成器只能连向图片、代码或另一个生成器
8. 单输入类型（图片/代码）已有入边时拒绝第二条
9. 一个生成器只能有一个代码输出（图片输出可以有多个，用于变体）

设计原则：
- 纯函数：相同输入永远得到相同结果，拖拽时的宽松预判与松手时的权威判定一致
- 只返回结果值，不抛异常
"""

from motif_engine.domain.entities.graph import GraphSnapshot
from motif_engine.domain.value_objects.node_kind import NodeKind
from motif_engine.domain.value_objects.validation import ConnectionValidationResult

_GENERATOR_SOURCES = frozenset(
    {
        NodeKind.STATIC_INPUT,
        NodeKind.CODE_OUTPUT,
        NodeKind.TEXT_INPUT,
        NodeKind.CAPTURE,
        NodeKind.GENERATOR,
    }
)
_GENERATOR_TARGETS = frozenset({NodeKind.STATIC_INPUT, NodeKind.CODE_OUTPUT, NodeKind.GENERATOR})


def validate_connection(
    source_id: str,
    target_id: str,
    snapshot: GraphSnapshot,
) -> ConnectionValidationResult:
    source = snapshot.get_node(source_id)
    target = snapshot.get_node(target_id)

    if source is None or target is None:
        return ConnectionValidationResult.reject(
            "Invalid connection", "Source or target node not found"
        )

    if source_id == target_id:
        return ConnectionValidationResult.reject(
            "Cannot connect node to itself", "A node cannot connect to itself."
        )

    if snapshot.has_edge(source_id, target_id):
        return ConnectionValidationResult.reject(
            "Connection already exists", "These nodes are already connected."
        )

    if source.kind == NodeKind.NOTE or target.kind == NodeKind.NOTE:
        return ConnectionValidationResult.reject(
            "Sticky notes cannot be connected",
            "Sticky notes are annotations and do not take part in the workflow.",
        )

    if source.kind.is_output and target.kind.is_output:
        return ConnectionValidationResult.reject(
            "Cannot connect outputs directly",
            "Output nodes (images/code) can only connect to prompt nodes. "
            "Use a prompt node to transform or iterate on outputs.",
        )

    if source.kind != NodeKind.GENERATOR and target.kind != NodeKind.GENERATOR:
        return ConnectionValidationResult.reject(
            "Invalid connection target",
            f"{source.kind.display_name} nodes can only connect to prompt nodes.",
        )

    if target.kind == NodeKind.GENERATOR and source.kind not in _GENERATOR_SOURCES:
        return ConnectionValidationResult.reject(
            "Invalid connection source",
            "Prompt nodes can only receive connections from images, code, "
            "text inputs, captures, or other prompt nodes.",
        )

    if source.kind == NodeKind.GENERATOR and target.kind not in _GENERATOR_TARGETS:
        return ConnectionValidationResult.reject(
            "Invalid connection target",
            "Prompt nodes can only output to image, code, or other prompt nodes.",
        )

    if target.kind.accepts_single_input and snapshot.incoming(target_id):
        return ConnectionValidationResult.reject(
            "Node already has an input",
            f"{target.kind.display_name} nodes accept a single incoming connection.",
        )

    if source.kind == NodeKind.GENERATOR and target.kind == NodeKind.CODE_OUTPUT:
        has_code_output = any(
            (other := snapshot.get_node(edge.target_node_id)) is not None
            and other.kind == NodeKind.CODE_OUTPUT
            for edge in snapshot.outgoing(source_id)
        )
        if has_code_output:
            return ConnectionValidationResult.reject(
                "Prompt nodes can only have one code output",
                "For code generation, use one output per prompt. "
                "For image variations, you can connect multiple image outputs.",
            )

    return ConnectionValidationResult.ok()


def valid_targets_description(kind: NodeKind) -> str:
    """描述某类型节点可以连向哪些节点（用于连线失败时的提示）"""
    match kind:
        case NodeKind.GENERATOR:
            return "image, code, or prompt nodes"
        case NodeKind.STATIC_INPUT | NodeKind.CODE_OUTPUT | NodeKind.TEXT_INPUT | NodeKind.CAPTURE:
            return "prompt nodes"
        case NodeKind.NOTE:
            return "no nodes"
