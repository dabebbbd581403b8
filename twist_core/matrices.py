# twist_core/matrices.py
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field

import numpy as np

from .building import BuildingModel, Direction, Point2D, StructInfo, Wall
from .errors import ValidationError
from .settings import AnalysisOptions
from .units import CM_KN, UnitSystem

DOF_PER_STORY = 3
_AXES = ("DX", "DY", "RZ")


def dof_label(index: int) -> str:
    story = index // DOF_PER_STORY + 1
    return f"{_AXES[index % DOF_PER_STORY]}_{story}"


def dof_labels(story_count: int) -> tuple[str, ...]:
    return tuple(dof_label(i) for i in range(story_count * DOF_PER_STORY))


@dataclass(frozen=True)
class MassCenter:
    layer: int
    x: float
    y: float

    def as_dict(self) -> dict:
        return {"layer": self.layer, "x": self.x, "y": self.y}


@dataclass(frozen=True)
class BaseShapeInfo:
    story: int
    z_level: tuple[float, ...]
    mass_centers: tuple[MassCenter, ...]

    @classmethod
    def from_struct_info(cls, info: StructInfo) -> "BaseShapeInfo":
        return cls(
            story=info.mass_n,
            z_level=tuple(float(z) for z in info.z_level),
            mass_centers=tuple(
                MassCenter(layer=i + 1, x=c.x, y=c.y) for i, c in enumerate(info.w_center)
            ),
        )

    @classmethod
    def from_dict(cls, payload: dict) -> "BaseShapeInfo":
        return cls(
            story=int(payload["story"]),
            z_level=tuple(float(z) for z in payload["zLevel"]),
            mass_centers=tuple(
                MassCenter(layer=int(c["layer"]), x=float(c["x"]), y=float(c["y"]))
                for c in payload["massCenters"]
            ),
        )

    def as_dict(self) -> dict:
        return {
            "story": self.story,
            "zLevel": list(self.z_level),
            "massCenters": [c.as_dict() for c in self.mass_centers],
        }


@dataclass
class StoryContribution:
    """
    Per-story 3x3 stiffness/damping accumulated about the story mass center.

    An X-direction spring k at offset (dx, dy):  kxx += k, kxr -= k*dy, krr += k*dy^2
    A  Y-direction spring k at offset (dx, dy):  kyy += k, kyr += k*dx, krr += k*dx^2
    """
    kxx: float = 0.0
    kyy: float = 0.0
    kxr: float = 0.0
    kyr: float = 0.0
    krr: float = 0.0
    cxx: float = 0.0
    cyy: float = 0.0
    cxr: float = 0.0
    cyr: float = 0.0
    crr: float = 0.0

    def add(self, direction: Direction, k: float, c: float, position: Point2D, center: Point2D) -> None:
        dx = position.x - center.x
        dy = position.y - center.y
        if _usable(k):
            if direction == "X":
                self.kxx += k
                self.kxr += -k * dy
                self.krr += k * dy * dy
            else:
                self.kyy += k
                self.kyr += k * dx
                self.krr += k * dx * dx
        if _usable(c):
            if direction == "X":
                self.cxx += c
                self.cxr += -c * dy
                self.crr += c * dy * dy
            else:
                self.cyy += c
                self.cyr += c * dx
                self.crr += c * dx * dx

    def stiffness_block(self) -> np.ndarray:
        return _local_block(self.kxx, self.kyy, self.kxr, self.kyr, self.krr)

    def damping_block(self) -> np.ndarray:
        return _local_block(self.cxx, self.cyy, self.cxr, self.cyr, self.crr)


def _usable(value: float) -> bool:
    return math.isfinite(value) and value != 0.0


def _local_block(xx: float, yy: float, xr: float, yr: float, rr: float) -> np.ndarray:
    return np.array([
        [xx, 0.0, xr],
        [0.0, yy, yr],
        [xr, yr, rr],
    ], dtype=float)


def add_story_block(global_matrix: np.ndarray, story_index: int, block: np.ndarray) -> None:
    """
    Shear-building coupling of one story block into the global matrix.
        story 0 (above the ground):  K00 += k0
        story i > 0:                 Kii += ki, K(i-1)(i-1) += ki, Ki(i-1) = K(i-1)i -= ki
    The ground itself carries no degree of freedom.
    """
    i = story_index * DOF_PER_STORY
    global_matrix[i:i + 3, i:i + 3] += block
    if story_index == 0:
        return
    j = i - DOF_PER_STORY
    global_matrix[j:j + 3, j:j + 3] += block
    global_matrix[i:i + 3, j:j + 3] -= block
    global_matrix[j:j + 3, i:i + 3] -= block


@dataclass(frozen=True)
class AnalysisMatrices:
    """
    Fixed-shape M, K, C of a lumped-mass building (3 DOFs per story, story-major:
    DX_1, DY_1, RZ_1, DX_2, ...). Arrays are read-only copies.
    """
    story_count: int
    mass: np.ndarray
    stiffness: np.ndarray
    damping: np.ndarray
    base_shape: BaseShapeInfo
    dof_labels: tuple[str, ...]
    dof_count: int = field(init=False)

    def __post_init__(self):
        dof_count = self.story_count * DOF_PER_STORY
        object.__setattr__(self, "dof_count", dof_count)
        for name in ("mass", "stiffness", "damping"):
            matrix = np.array(getattr(self, name), dtype=float)
            if matrix.shape != (dof_count, dof_count):
                raise ValueError(
                    f"{name} must be {dof_count}x{dof_count} for {self.story_count} stories, got {matrix.shape}"
                )
            matrix.setflags(write=False)
            object.__setattr__(self, name, matrix)
        if len(self.dof_labels) != dof_count:
            raise ValueError("dof_labels length must match dof_count")

    def as_dict(self) -> dict:
        return {
            "storyCount": self.story_count,
            "dofCount": self.dof_count,
            "dofLabels": list(self.dof_labels),
            "M": self.mass.tolist(),
            "K": self.stiffness.tolist(),
            "C": self.damping.tolist(),
        }


class MatrixAssembler:
    """
    Builds M, K and the baseline C (dampers only, no Rayleigh terms) from a BuildingModel.

    Wall property damping (WallChara.c) is intentionally left out of C: legacy data sets
    disagree on its units, so walls damp only through Rayleigh damping.
    """

    def __init__(self, model: BuildingModel, options: AnalysisOptions | None = None,
                 units: UnitSystem = CM_KN):
        self.model = model
        self.options = options or AnalysisOptions()
        self.units = units

    def assemble(self) -> AnalysisMatrices:
        self.options.validate()
        info = self._checked_struct_info()
        n = info.mass_n
        g = self.units.gravity

        dofs = n * DOF_PER_STORY
        M = np.zeros((dofs, dofs), dtype=float)
        K = np.zeros((dofs, dofs), dtype=float)
        C = np.zeros((dofs, dofs), dtype=float)
        stories = [StoryContribution() for _ in range(n)]

        def add(story: int, direction: Direction, k: float, c: float, position: Point2D) -> None:
            stories[story].add(direction, k, c, position, info.w_center[story])

        for idx, column in enumerate(self.model.columns):
            story = self._story_index(column.layer, f"columns[{idx}]")
            add(story, "X", column.kx, 0.0, column.pos)
            add(story, "Y", column.ky, 0.0, column.pos)

        for idx, wall in enumerate(self.model.walls):
            story = self._story_index(wall.layer, f"walls[{idx}]")
            chara = self.model.find_wall_chara(wall.name)
            if chara is None:
                raise ValidationError(
                    f'Analysis: walls[{idx}].name "{wall.name}" was not found in wallCharaDB.',
                    field=f"walls[{idx}].name",
                )
            direction = _wall_direction(wall, idx)
            k = 0.0
            if chara.is_eigen_effect_k:
                k = chara.k * wall.length if chara.is_kc_unit_chara else chara.k
            add(story, direction, k, 0.0, wall.midpoint)

        for idx, panel in enumerate(self.model.dx_panels):
            story = self._story_index(panel.layer, f"dxPanels[{idx}]")
            centroid = panel.centroid
            if centroid is None:
                continue
            add(story, panel.direct, panel.k, 0.0, centroid)

        for idx, brace in enumerate(self.model.brace_dampers):
            story = self._story_index(brace.layer, f"braceDampers[{idx}]")
            k = brace.k if brace.is_eigen_effect_k else 0.0
            add(story, brace.direct, k, brace.c, brace.pos)

        for idx, damper in enumerate(self.model.mass_dampers):
            story = self._story_index(damper.layer, f"massDampers[{idx}]")
            m = damper.weight / g
            base = story * DOF_PER_STORY
            M[base, base] += m
            M[base + 1, base + 1] += m

            # tuned spring: k = 4*pi^2 * W * f^2 / (g * 100)
            kx = 4.0 * math.pi ** 2 * damper.weight * damper.freq.x ** 2 / (g * 100.0)
            ky = 4.0 * math.pi ** 2 * damper.weight * damper.freq.y ** 2 / (g * 100.0)
            cx = 2.0 * damper.h.x * math.sqrt(max(kx, 0.0) * max(m, 0.0))
            cy = 2.0 * damper.h.y * math.sqrt(max(ky, 0.0) * max(m, 0.0))
            add(story, "X", kx, cx, damper.pos)
            add(story, "Y", ky, cy, damper.pos)

        for i in range(n):
            base = i * DOF_PER_STORY
            M[base, base] += info.weight[i] / g
            M[base + 1, base + 1] += info.weight[i] / g
            M[base + 2, base + 2] += info.w_moment[i] / g

        for i, contribution in enumerate(stories):
            add_story_block(K, i, contribution.stiffness_block())
            add_story_block(C, i, contribution.damping_block())

        return AnalysisMatrices(
            story_count=n,
            mass=M,
            stiffness=K,
            damping=C,
            base_shape=BaseShapeInfo.from_struct_info(info),
            dof_labels=dof_labels(n),
        )

    def _checked_struct_info(self) -> StructInfo:
        info = self.model.struct_info
        if info is None:
            raise ValidationError("Analysis: structInfo is required.", field="structInfo")

        n = info.mass_n
        if isinstance(n, bool) or not isinstance(n, numbers.Integral) or n < 1:
            raise ValidationError(
                f"Analysis: structInfo.massN must be an integer >= 1 (got {n}).",
                field="structInfo.massN",
            )
        for name, values in (("weight", info.weight), ("wMoment", info.w_moment), ("wCenter", info.w_center)):
            if len(values) != n:
                raise ValidationError(
                    f"Analysis: structInfo.{name} length must match massN ({len(values)} != {n}).",
                    field=f"structInfo.{name}",
                )
        return info

    def _story_index(self, layer: int, item: str) -> int:
        n = self.model.struct_info.mass_n
        if int(layer) != layer or not 1 <= layer <= n:
            raise ValidationError(
                f"Analysis: {item}.layer must be between 1 and {n} (got {layer}).",
                field=f"{item}.layer",
            )
        return int(layer) - 1


def _wall_direction(wall: Wall, idx: int) -> Direction:
    # legacy convention: shared x -> X direction, shared y -> Y direction
    start, end = wall.pos
    if start.x == end.x and start.y == end.y:
        raise ValidationError(
            f"Analysis: walls[{idx}] must have non-zero length.", field=f"walls[{idx}].pos"
        )
    if start.x == end.x:
        return "X"
    if start.y == end.y:
        return "Y"
    raise ValidationError(
        f"Analysis: walls[{idx}] must be aligned to X or Y axis.", field=f"walls[{idx}].pos"
    )


def assemble_matrices(model: BuildingModel, options: AnalysisOptions | None = None,
                      units: UnitSystem = CM_KN) -> AnalysisMatrices:
    return MatrixAssembler(model, options, units).assemble()
