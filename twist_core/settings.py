from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from .errors import ValidationError


def _option(payload: dict, key: str, default: float) -> float:
    value: Any = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Analysis: {key} must be a number (got {value!r}).", field=key)
    return float(value)


@dataclass
class AnalysisOptions:
    default_damping_ratio: float = 0.02

    @classmethod
    def from_dict(cls, payload: dict | None) -> "AnalysisOptions":
        payload = payload or {}
        return cls(default_damping_ratio=_option(payload, "defaultDampingRatio", 0.02))

    def validate(self) -> None:
        ratio = self.default_damping_ratio
        if not math.isfinite(ratio) or ratio < 0.0:
            raise ValidationError(
                f"Analysis: defaultDampingRatio must be >= 0 (got {ratio}).",
                field="defaultDampingRatio",
            )


@dataclass
class TimeHistoryOptions(AnalysisOptions):
    beta: float = 0.25
    gamma: float = 0.5

    @classmethod
    def from_dict(cls, payload: dict | None) -> "TimeHistoryOptions":
        payload = payload or {}
        return cls(
            default_damping_ratio=_option(payload, "defaultDampingRatio", 0.02),
            beta=_option(payload, "beta", 0.25),
            gamma=_option(payload, "gamma", 0.5),
        )

    def validate(self) -> None:
        super().validate()
        if not self.beta > 0.0:
            raise ValidationError(f"Resp analysis: beta must be > 0 (got {self.beta}).", field="beta")
        if not self.gamma > 0.0:
            raise ValidationError(f"Resp analysis: gamma must be > 0 (got {self.gamma}).", field="gamma")
