# twist_core/building.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Literal

StructType = Literal["R", "DX"]
Direction = Literal["X", "Y"]


@dataclass(frozen=True)
class Point2D:
    x: float
    y: float

    def as_dict(self) -> dict:
        return {"x": self.x, "y": self.y}


def _points(points: list[Point2D]) -> list[dict]:
    return [p.as_dict() for p in points]


@dataclass
class StructInfo:
    """
    Story data of the lumped-mass model.
    z_level has mass_n + 1 entries (ground first); the per-story arrays have mass_n.
    """
    mass_n: int
    s_type: StructType = "R"
    z_level: list[float] = field(default_factory=list)
    weight: list[float] = field(default_factory=list)      # kN
    w_moment: list[float] = field(default_factory=list)    # kN*cm^2
    w_center: list[Point2D] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "massN": self.mass_n,
            "sType": self.s_type,
            "zLevel": list(self.z_level),
            "weight": list(self.weight),
            "wMoment": list(self.w_moment),
            "wCenter": _points(self.w_center),
        }


@dataclass
class Floor:
    layer: int
    pos: list[Point2D] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"layer": self.layer, "pos": _points(self.pos)}


@dataclass
class Column:
    layer: int
    pos: Point2D
    kx: float
    ky: float

    def as_dict(self) -> dict:
        return {"layer": self.layer, "pos": self.pos.as_dict(), "kx": self.kx, "ky": self.ky}


@dataclass
class WallChara:
    """Named wall property. k and c are per metre of wall when is_kc_unit_chara is set."""
    name: str
    k: float
    h: float = 0.0
    c: float = 0.0
    is_eigen_effect_k: bool = True
    is_kc_unit_chara: bool = False
    memo: str = ""

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "k": self.k,
            "h": self.h,
            "c": self.c,
            "isEigenEffectK": self.is_eigen_effect_k,
            "isKCUnitChara": self.is_kc_unit_chara,
            "memo": self.memo,
        }


@dataclass
class Wall:
    name: str
    layer: int
    pos: tuple[Point2D, Point2D]
    is_visible: bool = True

    @property
    def length(self) -> float:
        start, end = self.pos
        return math.hypot(end.x - start.x, end.y - start.y)

    @property
    def midpoint(self) -> Point2D:
        start, end = self.pos
        return Point2D((start.x + end.x) / 2.0, (start.y + end.y) / 2.0)

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "layer": self.layer,
            "pos": _points(list(self.pos)),
            "isVisible": self.is_visible,
        }


@dataclass
class MassDamper:
    """Tuned mass damper; freq (Hz) and h (damping ratio) are given per axis."""
    name: str
    layer: int
    pos: Point2D
    weight: float
    freq: Point2D
    h: Point2D

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "layer": self.layer,
            "pos": self.pos.as_dict(),
            "weight": self.weight,
            "freq": self.freq.as_dict(),
            "h": self.h.as_dict(),
        }


@dataclass
class BraceDamper:
    layer: int
    pos: Point2D
    direct: Direction
    k: float
    c: float
    width: float = 0.0
    height: float = 0.0
    is_light_pos: bool = False
    is_eigen_effect_k: bool = False

    def as_dict(self) -> dict:
        return {
            "layer": self.layer,
            "pos": self.pos.as_dict(),
            "direct": self.direct,
            "k": self.k,
            "c": self.c,
            "width": self.width,
            "height": self.height,
            "isLightPos": self.is_light_pos,
            "isEigenEffectK": self.is_eigen_effect_k,
        }


@dataclass
class DXPanel:
    layer: int
    direct: Direction
    pos: list[Point2D]
    k: float

    @property
    def centroid(self) -> Point2D | None:
        if not self.pos:
            return None
        n = len(self.pos)
        return Point2D(sum(p.x for p in self.pos) / n, sum(p.y for p in self.pos) / n)

    def as_dict(self) -> dict:
        return {"layer": self.layer, "direct": self.direct, "pos": _points(self.pos), "k": self.k}


@dataclass
class BuildingModel:
    struct_info: StructInfo | None = None
    floors: list[Floor] = field(default_factory=list)
    columns: list[Column] = field(default_factory=list)
    wall_chara_db: list[WallChara] = field(default_factory=list)
    walls: list[Wall] = field(default_factory=list)
    mass_dampers: list[MassDamper] = field(default_factory=list)
    brace_dampers: list[BraceDamper] = field(default_factory=list)
    dx_panels: list[DXPanel] = field(default_factory=list)

    @property
    def damper_count(self) -> int:
        return len(self.mass_dampers) + len(self.brace_dampers)

    def find_wall_chara(self, name: str) -> WallChara | None:
        for chara in self.wall_chara_db:
            if chara.name == name:
                return chara
        return None

    def as_dict(self) -> dict:
        return {
            "structInfo": self.struct_info.as_dict() if self.struct_info else None,
            "floors": [f.as_dict() for f in self.floors],
            "columns": [c.as_dict() for c in self.columns],
            "wallCharaDB": [w.as_dict() for w in self.wall_chara_db],
            "walls": [w.as_dict() for w in self.walls],
            "massDampers": [d.as_dict() for d in self.mass_dampers],
            "braceDampers": [d.as_dict() for d in self.brace_dampers],
            "dxPanels": [p.as_dict() for p in self.dx_panels],
        }
