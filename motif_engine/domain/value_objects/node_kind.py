"""NodeKind 枚举 - 画布节点类型

业务定义：
- STATIC_INPUT：图片节点，既可以作为静态输入，也可以承接生成器的图片输出
- GENERATOR：提示词节点，唯一可执行的类型，调用外部生成服务
- CODE_OUTPUT：代码节点，承接生成器的文本输出，也可以作为文本输入
- TEXT_INPUT：纯文本输入
- NOTE：便签，不参与数据流
- CAPTURE：网页动效捕获结果，作为生成器的上下文输入

设计原则：
- 继承 str：取值与前端 React Flow 的节点 type 字符串一致，序列化友好
- 类型集合封闭，所有判断使用穷举 match
"""

from __future__ import annotations

from enum import Enum


class NodeKind(str, Enum):
    STATIC_INPUT = "imageNode"
    GENERATOR = "promptNode"
    CODE_OUTPUT = "codeNode"
    TEXT_INPUT = "textInputNode"
    NOTE = "stickyNoteNode"
    CAPTURE = "captureNode"

    @property
    def is_executable(self) -> bool:
        match self:
            case NodeKind.GENERATOR:
                return True
            case (
                NodeKind.STATIC_INPUT
                | NodeKind.CODE_OUTPUT
                | NodeKind.TEXT_INPUT
                | NodeKind.NOTE
                | NodeKind.CAPTURE
            ):
                return False

    @property
    def is_output(self) -> bool:
        """能够承接生成器输出的类型"""
        match self:
            case NodeKind.STATIC_INPUT | NodeKind.CODE_OUTPUT:
                return True
            case NodeKind.GENERATOR | NodeKind.TEXT_INPUT | NodeKind.NOTE | NodeKind.CAPTURE:
                return False

    @property
    def accepts_single_input(self) -> bool:
        """只允许一条入边的类型（输出槽位）"""
        return self.is_output

    @property
    def id_prefix(self) -> str:
        match self:
            case NodeKind.STATIC_INPUT:
                return "image"
            case NodeKind.GENERATOR:
                return "prompt"
            case NodeKind.CODE_OUTPUT:
                return "code"
            case NodeKind.TEXT_INPUT:
                return "text-input"
            case NodeKind.NOTE:
                return "sticky-note"
            case NodeKind.CAPTURE:
                return "capture"

    @property
    def display_name(self) -> str:
        match self:
            case NodeKind.STATIC_INPUT:
                return "Image"
            case NodeKind.GENERATOR:
                return "Prompt"
            case NodeKind.CODE_OUTPUT:
                return "Code"
            case NodeKind.TEXT_INPUT:
                return "Text Input"
            case NodeKind.NOTE:
                return "Sticky Note"
            case NodeKind.CAPTURE:
                return "Capture"
