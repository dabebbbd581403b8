from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, AsyncIterator, Callable

from twist_core.building import (
    BraceDamper, BuildingModel, Column, DXPanel, Floor, MassDamper, Point2D,
    StructInfo, Wall, WallChara,
)
from twist_core.complex_modal import solve_complex
from twist_core.earthquakes import GroundWave
from twist_core.errors import ValidationError
from twist_core.modal import solve_real
from twist_core.response import solve_time_history
from twist_core.settings import AnalysisOptions, TimeHistoryOptions

logger = logging.getLogger(__name__)

BUILDING_MODEL_JSON_FORMAT = "twist-dynamics/building-model"
BUILDING_MODEL_JSON_VERSION = 1


def _fail(label: str, message: str) -> ValidationError:
    return ValidationError(f"BuildingModel JSON: {label} {message}", field=label)


def _number(value: Any, label: str) -> float:
    if isinstance(value, bool):
        raise _fail(label, "must be a finite number.")
    try:
        n = float(value)
    except (TypeError, ValueError):
        raise _fail(label, "must be a finite number.") from None
    if not math.isfinite(n):
        raise _fail(label, "must be a finite number.")
    return n


def _integer(value: Any, label: str) -> int:
    n = _number(value, label)
    if not n.is_integer():
        raise _fail(label, "must be an integer.")
    return int(n)


def _boolean(value: Any, label: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise _fail(label, "must be a boolean.")


def _name(value: Any, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise _fail(label, "must be a non-empty string.")
    return value


def _choice(value: Any, label: str, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise _fail(label, "must be " + " or ".join(f'"{c}"' for c in choices) + ".")
    return value


def _record(value: Any, label: str) -> dict:
    if not isinstance(value, dict):
        raise _fail(label, "must be an object.")
    return value


def _point(value: Any, label: str) -> Point2D:
    value = _record(value, label)
    return Point2D(_number(value.get("x"), f"{label}.x"), _number(value.get("y"), f"{label}.y"))


def _list(value: Any, label: str, item: Callable[[Any, str], Any]) -> list:
    if not isinstance(value, list):
        raise _fail(label, "must be an array.")
    return [item(v, f"{label}[{i}]") for i, v in enumerate(value)]


class BuildingModelFactory:
    """
    Reads the BuildingModel JSON document
        {"format": "twist-dynamics/building-model", "version": 1, "model": {...}}
    into a validated BuildingModel whose collections are sorted by layer.
    """

    @classmethod
    def from_document(cls, document: Any) -> BuildingModel:
        if not isinstance(document, dict):
            raise ValidationError("BuildingModel JSON: top-level JSON must be an object.", field="document")
        if not all(key in document for key in ("format", "version", "model")):
            raise ValidationError(
                "BuildingModel JSON: top-level object must include format, version, and model.",
                field="document",
            )
        if document["format"] != BUILDING_MODEL_JSON_FORMAT:
            raise ValidationError(
                f'BuildingModel JSON: format must be "{BUILDING_MODEL_JSON_FORMAT}".', field="format"
            )
        if _integer(document["version"], "version") != BUILDING_MODEL_JSON_VERSION:
            raise ValidationError(
                f"BuildingModel JSON: version must be {BUILDING_MODEL_JSON_VERSION}.", field="version"
            )
        return cls.from_model_dict(document["model"])

    @classmethod
    def from_model_dict(cls, payload: Any) -> BuildingModel:
        payload = _record(payload, "model")

        def collection(key: str, item: Callable[[Any, str], Any]) -> list:
            if payload.get(key) is None:
                return []
            return sorted(_list(payload[key], key, item), key=lambda e: e.layer)

        wall_chara_value = payload.get("wallCharaDB")
        model = BuildingModel(
            struct_info=cls._struct_info(payload.get("structInfo")),
            floors=collection("floors", cls._floor),
            columns=collection("columns", cls._column),
            wall_chara_db=[] if wall_chara_value is None else _list(wall_chara_value, "wallCharaDB", cls._wall_chara),
            walls=collection("walls", cls._wall),
            mass_dampers=collection("massDampers", cls._mass_damper),
            brace_dampers=collection("braceDampers", cls._brace_damper),
            dx_panels=collection("dxPanels", cls._dx_panel),
        )
        validate_building_model(model)
        return model

    @staticmethod
    def _struct_info(value: Any) -> StructInfo | None:
        if value is None:
            return None
        value = _record(value, "structInfo")
        return StructInfo(
            mass_n=_integer(value.get("massN"), "structInfo.massN"),
            s_type=_choice(value.get("sType", "R"), "structInfo.sType", ("R", "DX")),
            z_level=_list(value.get("zLevel"), "structInfo.zLevel", _number),
            weight=_list(value.get("weight"), "structInfo.weight", _number),
            w_moment=_list(value.get("wMoment"), "structInfo.wMoment", _number),
            w_center=_list(value.get("wCenter"), "structInfo.wCenter", _point),
        )

    @staticmethod
    def _floor(value: Any, label: str) -> Floor:
        value = _record(value, label)
        return Floor(layer=_integer(value.get("layer"), f"{label}.layer"),
                     pos=_list(value.get("pos"), f"{label}.pos", _point))

    @staticmethod
    def _column(value: Any, label: str) -> Column:
        value = _record(value, label)
        return Column(
            layer=_integer(value.get("layer"), f"{label}.layer"),
            pos=_point(value.get("pos"), f"{label}.pos"),
            kx=_number(value.get("kx"), f"{label}.kx"),
            ky=_number(value.get("ky"), f"{label}.ky"),
        )

    @staticmethod
    def _wall_chara(value: Any, label: str) -> WallChara:
        value = _record(value, label)
        memo = value.get("memo", "")
        if not isinstance(memo, str):
            raise _fail(f"{label}.memo", "must be a string.")
        return WallChara(
            name=_name(value.get("name"), f"{label}.name"),
            k=_number(value.get("k"), f"{label}.k"),
            h=_number(value.get("h", 0.0), f"{label}.h"),
            c=_number(value.get("c", 0.0), f"{label}.c"),
            is_eigen_effect_k=_boolean(value.get("isEigenEffectK"), f"{label}.isEigenEffectK"),
            is_kc_unit_chara=_boolean(value.get("isKCUnitChara"), f"{label}.isKCUnitChara"),
            memo=memo,
        )

    @staticmethod
    def _wall(value: Any, label: str) -> Wall:
        value = _record(value, label)
        pos = _list(value.get("pos"), f"{label}.pos", _point)
        if len(pos) != 2:
            raise _fail(f"{label}.pos", "must contain exactly 2 points.")
        return Wall(
            name=_name(value.get("name"), f"{label}.name"),
            layer=_integer(value.get("layer"), f"{label}.layer"),
            pos=(pos[0], pos[1]),
            is_visible=_boolean(value.get("isVisible", True), f"{label}.isVisible"),
        )

    @staticmethod
    def _mass_damper(value: Any, label: str) -> MassDamper:
        value = _record(value, label)
        return MassDamper(
            name=_name(value.get("name"), f"{label}.name"),
            layer=_integer(value.get("layer"), f"{label}.layer"),
            pos=_point(value.get("pos"), f"{label}.pos"),
            weight=_number(value.get("weight"), f"{label}.weight"),
            freq=_point(value.get("freq"), f"{label}.freq"),
            h=_point(value.get("h"), f"{label}.h"),
        )

    @staticmethod
    def _brace_damper(value: Any, label: str) -> BraceDamper:
        value = _record(value, label)
        return BraceDamper(
            layer=_integer(value.get("layer"), f"{label}.layer"),
            pos=_point(value.get("pos"), f"{label}.pos"),
            direct=_choice(value.get("direct"), f"{label}.direct", ("X", "Y")),
            k=_number(value.get("k"), f"{label}.k"),
            c=_number(value.get("c"), f"{label}.c"),
            width=_number(value.get("width", 0.0), f"{label}.width"),
            height=_number(value.get("height", 0.0), f"{label}.height"),
            is_light_pos=_boolean(value.get("isLightPos", False), f"{label}.isLightPos"),
            is_eigen_effect_k=_boolean(value.get("isEigenEffectK", False), f"{label}.isEigenEffectK"),
        )

    @staticmethod
    def _dx_panel(value: Any, label: str) -> DXPanel:
        value = _record(value, label)
        return DXPanel(
            layer=_integer(value.get("layer"), f"{label}.layer"),
            direct=_choice(value.get("direct"), f"{label}.direct", ("X", "Y")),
            pos=_list(value.get("pos"), f"{label}.pos", _point),
            k=_number(value.get("k"), f"{label}.k"),
        )


def validate_building_model(model: BuildingModel) -> None:
    """Document-level rules on top of what the assembler itself checks."""
    info = model.struct_info
    if info is None:
        raise ValidationError("BuildingModel JSON: structInfo is required.", field="structInfo")
    n = info.mass_n
    if n < 1:
        raise _fail("structInfo.massN", "must be an integer >= 1.")
    if len(info.z_level) != n + 1:
        raise _fail("structInfo.zLevel", "length must be massN + 1.")
    for key, values in (("weight", info.weight), ("wMoment", info.w_moment), ("wCenter", info.w_center)):
        if len(values) != n:
            raise _fail(f"structInfo.{key}", "length must equal massN.")
    if any(b < a for a, b in zip(info.z_level, info.z_level[1:])):
        raise _fail("structInfo.zLevel", "must be monotonic non-decreasing.")

    def check_layers(key: str, items: list, max_layer: int) -> None:
        for i, item in enumerate(items):
            if not 1 <= item.layer <= max_layer:
                raise _fail(f"{key}[{i}].layer", f"must be between 1 and {max_layer}, got {item.layer}.")

    check_layers("floors", model.floors, n + 1)
    check_layers("columns", model.columns, n)
    check_layers("walls", model.walls, n)
    check_layers("massDampers", model.mass_dampers, n)
    check_layers("braceDampers", model.brace_dampers, n)
    check_layers("dxPanels", model.dx_panels, n)

    for i, floor in enumerate(model.floors):
        if len(floor.pos) < 3:
            raise _fail(f"floors[{i}].pos", "must contain at least 3 points.")
    for i, panel in enumerate(model.dx_panels):
        if len(panel.pos) < 2:
            raise _fail(f"dxPanels[{i}].pos", "must contain at least 2 points.")
    for i, wall in enumerate(model.walls):
        start, end = wall.pos
        if start.x == end.x and start.y == end.y:
            raise _fail(f"walls[{i}]", "must have non-zero length.")
        if start.x != end.x and start.y != end.y:
            raise _fail(f"walls[{i}]", "must be aligned to X or Y axis (diagonal is not allowed).")

    names = set()
    for i, chara in enumerate(model.wall_chara_db):
        if chara.name in names:
            raise _fail(f"wallCharaDB[{i}].name", f'is duplicated: "{chara.name}".')
        names.add(chara.name)
    for i, wall in enumerate(model.walls):
        if wall.name not in names:
            raise _fail(f"walls[{i}].name", f'"{wall.name}" is not found in wallCharaDB.')


class GroundWaveFactory:
    @staticmethod
    def from_payload(payload: Any) -> GroundWave:
        if not isinstance(payload, dict):
            raise ValidationError("Resp analysis: wave must be an object.", field="wave")
        dt = payload.get("dt")
        if isinstance(dt, bool) or not isinstance(dt, (int, float)):
            raise ValidationError("Resp analysis: wave.dt must be a positive number.", field="wave.dt")
        acc_x = GroundWaveFactory._samples(payload.get("accX"), "wave.accX")
        acc_y = payload.get("accY")
        if acc_y is None:
            acc_y = [0.0] * len(acc_x)
        else:
            acc_y = GroundWaveFactory._samples(acc_y, "wave.accY")
        time = payload.get("time")
        if time is None:
            wave = GroundWave.uniform(float(dt), acc_x, acc_y)
        else:
            wave = GroundWave(dt=float(dt), time=GroundWaveFactory._samples(time, "wave.time"),
                              acc_x=acc_x, acc_y=acc_y)
        wave.validate()
        return wave

    @staticmethod
    def _samples(value: Any, label: str) -> list[float]:
        if not isinstance(value, list):
            raise ValidationError(f"Resp analysis: {label} must be an array.", field=label)
        samples = []
        for i, v in enumerate(value):
            if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
                raise ValidationError(
                    f"Resp analysis: {label}[{i}] must be a finite number (got {v!r}).", field=label
                )
            samples.append(float(v))
        return samples


class ModalService:
    def run(self, model: BuildingModel, options: AnalysisOptions | None = None) -> dict:
        logger.info("Real eigen analysis: %d stories", model.struct_info.mass_n if model.struct_info else 0)
        modal, matrices = solve_real(model, options)
        logger.info("Real eigen analysis finished: %d modes, f1=%.4f Hz",
                    modal.mode_count, modal.frequencies_hz[0])
        resp = modal.as_dict()
        resp["M_matrix"] = matrices.mass.tolist()
        resp["K_matrix"] = matrices.stiffness.tolist()
        resp["C_matrix"] = matrices.damping.tolist()
        return resp


class ComplexModalService:
    def run(self, model: BuildingModel, options: AnalysisOptions | None = None) -> dict:
        modal, complex_result = solve_complex(model, options)
        logger.info("Complex eigen analysis finished: %d damped modes", len(complex_result.modes))
        return {"modal": modal.as_dict(), "complex": complex_result.as_dict()}


class TimeHistoryService:
    def run(self, model: BuildingModel, wave: GroundWave, options: TimeHistoryOptions | None = None) -> dict:
        logger.info("Time history analysis: %d steps, dt=%g", wave.step_count, wave.dt)
        resp = solve_time_history(model, wave, options)
        logger.info("Time history analysis finished: max |DX_R| = %.4g", resp.column_max_abs[resp.header.index("DX_R")])
        return resp.as_dict()

    async def stream(self, model: BuildingModel, wave: GroundWave, options: TimeHistoryOptions | None = None,
                     chunk_size: int = 200) -> AsyncIterator[dict]:
        """Runs the analysis, then hands the rows out in chunks (INIT, DATA..., DONE)."""
        if chunk_size < 1:
            raise ValidationError("chunk_size must be >= 1.", field="chunkSize")
        resp = solve_time_history(model, wave, options)
        yield {
            "type": "INIT",
            "meta": resp.meta.as_dict(),
            "header": list(resp.header),
            "steps": len(resp.records),
        }
        for start in range(0, len(resp.records), chunk_size):
            yield {
                "type": "DATA",
                "offset": start,
                "rows": resp.records[start:start + chunk_size].tolist(),
            }
            await asyncio.sleep(0)
        yield {"type": "DONE", "columnMaxAbs": resp.column_max_abs.tolist()}
