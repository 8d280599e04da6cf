"""Position / Size 值对象 - 节点在画布上的位置与尺寸

设计原则：
- 值对象：不可变，通过值比较相等性
- 允许负坐标（画布可以平移到负区域）
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Position:
    """Position 值对象

    示例：
    >>> Position(x=100, y=200) == Position(x=100, y=200)
    True
    """

    x: float
    y: float

    def offset(self, dx: float = 0, dy: float = 0) -> "Position":
        return Position(x=self.x + dx, y=self.y + dy)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class Size:
    width: float
    height: float
