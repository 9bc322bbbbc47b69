"""Geometric primitives: local bounds, affine transforms and pixel boxes."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

DEFAULT_FRAME_SIZE = 100.0


@dataclass(frozen=True, slots=True)
class Bounds:
    """IDML geometric bounds in item-local coordinates (top, left, bottom, right)."""

    top: float
    left: float
    bottom: float
    right: float

    @classmethod
    def default(cls) -> "Bounds":
        return cls(0.0, 0.0, DEFAULT_FRAME_SIZE, DEFAULT_FRAME_SIZE)

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center(self) -> Tuple[float, float]:
        return (self.left + self.right) / 2, (self.top + self.bottom) / 2


@dataclass(frozen=True, slots=True)
class Transform:
    """Affine matrix ``[a b c d tx ty]`` mapping local to parent coordinates."""

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    tx: float = 0.0
    ty: float = 0.0

    @classmethod
    def identity(cls) -> "Transform":
        return cls()

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        return self.a * x + self.c * y + self.tx, self.b * x + self.d * y + self.ty

    def then(self, outer: "Transform") -> "Transform":
        """Compose so that ``self`` applies first and ``outer`` second."""
        return Transform(
            a=outer.a * self.a + outer.c * self.b,
            b=outer.b * self.a + outer.d * self.b,
            c=outer.a * self.c + outer.c * self.d,
            d=outer.b * self.c + outer.d * self.d,
            tx=outer.a * self.tx + outer.c * self.ty + outer.tx,
            ty=outer.b * self.tx + outer.d * self.ty + outer.ty,
        )

    @property
    def rotation(self) -> float:
        """Rotation in degrees, normalized to (-180, 180]."""
        angle = math.degrees(math.atan2(self.b, self.a))
        return round(angle, 4) + 0.0

    @property
    def scale_x(self) -> float:
        return math.hypot(self.a, self.b)

    @property
    def scale_y(self) -> float:
        return math.hypot(self.c, self.d)


@dataclass(frozen=True, slots=True)
class Geometry:
    """Axis-aligned placement plus rotation about the center."""

    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    @property
    def area(self) -> float:
        return abs(self.width * self.height)

    def contains(self, x: float, y: float) -> bool:
        """Inclusive point containment."""
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height


@dataclass(frozen=True, slots=True)
class CoordinateOffset:
    """Delta added to spread coordinates so that every element lands at x, y >= 0."""

    x: float = 0.0
    y: float = 0.0
