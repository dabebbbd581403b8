"""
Conversion of the legacy "NICE" JSON export into a BuildingModel.

The export uses Japanese keys and appends unit labels to some key names, e.g.
"層重量(kN)". Those labels are stripped before decoding. Story heights are not
part of the export, so every story gets UnitSystem.default_story_height.
"""
from __future__ import annotations

import json
import logging
import math

from twist_core.building import BuildingModel, Column, Floor, Point2D, StructInfo, Wall, WallChara
from twist_core.errors import ValidationError
from twist_core.units import CM_KN, UnitSystem

logger = logging.getLogger(__name__)

UNIT_LABELS = ("(kN)", "(cm)", "(kN･cm2)", "(kN/cm)", "(kN/cm/m)")
MIN_UNIT_STIFFNESS = 0.001


def clean_json_units(raw_json: str) -> str:
    text = raw_json
    for label in UNIT_LABELS:
        text = text.replace(label, "")
    return text


def wall_model_name(name: str, unit_stiffness: float) -> str:
    # the stiffness is encoded in the name so equal walls share one WallChara
    return f"{name}_{math.trunc(unit_stiffness * 1000.0)}"


def _fail(label: str, message: str) -> ValidationError:
    return ValidationError(f"NICE JSON: {label} {message}", field=label)


def _is_number(value) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float)) and math.isfinite(value)


def _entries(data: dict, section: str) -> list[dict]:
    value = data.get(section)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(e, dict) for e in value):
        raise _fail(section, "must be an array of objects.")
    return value


def _number(entry: dict, key: str, label: str) -> float:
    value = entry.get(key)
    if not _is_number(value):
        raise _fail(f"{label}.{key}", "must be a finite number.")
    return float(value)


def _layer(entry: dict, label: str) -> int:
    value = _number(entry, "階", label)
    if not value.is_integer():
        raise _fail(f"{label}.階", "must be an integer.")
    return int(value)


def _numbers(entry: dict, key: str, label: str, count: int | None = None) -> list[float]:
    value = entry.get(key)
    if (not isinstance(value, list) or (count is not None and len(value) != count)
            or not all(_is_number(v) for v in value)):
        raise _fail(f"{label}.{key}", f"must be an array of {count or 'finite'} numbers.")
    return [float(v) for v in value]


def convert_nice_json(raw_json: str, units: UnitSystem = CM_KN) -> BuildingModel:
    try:
        data = json.loads(clean_json_units(raw_json))
    except json.JSONDecodeError as err:
        raise ValidationError(f"NICE JSON: invalid JSON ({err.msg}).", field="document") from err
    if not isinstance(data, dict):
        raise _fail("document", "must be an object.")

    info = data.get("物件情報")
    if not isinstance(info, dict):
        raise _fail("物件情報", "must be an object.")
    story = _number(info, "建物階数", "物件情報")
    if not story.is_integer() or story < 1:
        raise _fail("物件情報.建物階数", "must be an integer >= 1.")
    story = int(story)

    eigen_by_story = {}
    for i, e in enumerate(_entries(data, "固有値解析諸元")):
        eigen_by_story[_layer(e, f"固有値解析諸元[{i}]")] = (i, e)

    z_level = [0.0]
    weight, w_moment, w_center = [], [], []
    z = 0.0
    for layer in range(1, story + 1):
        if layer not in eigen_by_story:
            logger.warning("NICE JSON: story %d has no eigen analysis data, skipped", layer)
            continue
        i, e = eigen_by_story[layer]
        label = f"固有値解析諸元[{i}]"
        z += units.default_story_height
        z_level.append(z)
        weight.append(_number(e, "層重量", label))
        w_moment.append(_number(e, "重量慣性モーメント", label))
        w_center.append(Point2D(*_numbers(e, "重心", label, 2)))

    charas: dict[str, WallChara] = {}
    walls = []
    for i, w in enumerate(_entries(data, "壁剛性情報")):
        label = f"壁剛性情報[{i}]"
        unit_stiffness = _number(w, "単位剛性", label)
        if unit_stiffness <= MIN_UNIT_STIFFNESS:
            continue
        if not isinstance(w.get("名前"), str):
            raise _fail(f"{label}.名前", "must be a string.")
        name = wall_model_name(w["名前"], unit_stiffness)
        if name not in charas:
            charas[name] = WallChara(
                name=name,
                k=int(name.rsplit("_", 1)[-1]) / 1000.0,
                is_eigen_effect_k=True,
                is_kc_unit_chara=True,
            )
        x1, y1, x2, y2 = _numbers(w, "位置", label, 4)
        walls.append(Wall(name=name, layer=_layer(w, label),
                          pos=(Point2D(x1, y1), Point2D(x2, y2)),
                          is_visible=False))

    floors = []
    for i, f in enumerate(_entries(data, "床情報")):
        label = f"床情報[{i}]"
        coords = _numbers(f, "座標", label)
        floors.append(Floor(
            layer=_layer(f, label),
            pos=[Point2D(coords[j], coords[j + 1]) for j in range(0, len(coords) - 1, 2)],
        ))
    floors.sort(key=lambda f: f.layer)

    columns = []
    for i, c in enumerate(_entries(data, "柱剛性情報")):
        label = f"柱剛性情報[{i}]"
        kx, ky = _numbers(c, "通り方向剛性", label, 2)
        columns.append(Column(layer=_layer(c, label), pos=Point2D(*_numbers(c, "位置", label, 2)), kx=kx, ky=ky))
    columns.sort(key=lambda c: c.layer)

    return BuildingModel(
        struct_info=StructInfo(mass_n=story, s_type="R", z_level=z_level, weight=weight,
                               w_moment=w_moment, w_center=w_center),
        floors=floors,
        columns=columns,
        wall_chara_db=list(charas.values()),
        walls=walls,
    )
