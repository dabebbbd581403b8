# twist_core/earthquakes.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .errors import ValidationError
from .units import CM_KN, UnitSystem

_FIELDS = {"time": "wave.time", "acc_x": "wave.accX", "acc_y": "wave.accY"}


def _samples(values, name: str) -> np.ndarray:
    try:
        return np.array(values, dtype=float)
    except (TypeError, ValueError) as err:
        raise ValidationError(
            f"Resp analysis: {_FIELDS[name]} must contain only numbers ({err}).", field=_FIELDS[name]
        ) from err


@dataclass(frozen=True)
class GroundWave:
    """Uniformly sampled ground acceleration (cm/s^2) in X and Y."""
    dt: float
    time: np.ndarray
    acc_x: np.ndarray
    acc_y: np.ndarray

    def __post_init__(self):
        for name in ("time", "acc_x", "acc_y"):
            values = _samples(getattr(self, name), name)
            values.setflags(write=False)
            object.__setattr__(self, name, values)

    @classmethod
    def uniform(cls, dt: float, acc_x: Sequence[float], acc_y: Sequence[float] | None = None) -> "GroundWave":
        acc_x = _samples(acc_x, "acc_x")
        acc_y = np.zeros_like(acc_x) if acc_y is None else _samples(acc_y, "acc_y")
        return cls(dt=float(dt), time=np.arange(acc_x.size) * dt, acc_x=acc_x, acc_y=acc_y)

    @property
    def step_count(self) -> int:
        return len(self.time)

    def validate(self) -> None:
        if not math.isfinite(self.dt) or self.dt <= 0.0:
            raise ValidationError(f"Resp analysis: wave.dt must be a positive number (got {self.dt}).",
                                  field="wave.dt")
        for name in ("time", "acc_x", "acc_y"):
            values = getattr(self, name)
            if values.ndim != 1 or not np.all(np.isfinite(values)):
                raise ValidationError(
                    f"Resp analysis: {_FIELDS[name]} must be a flat array of finite numbers.",
                    field=_FIELDS[name],
                )
        n = len(self.time)
        if n < 2:
            raise ValidationError("Resp analysis: wave must include at least 2 time points.", field="wave.time")
        if len(self.acc_x) != n or len(self.acc_y) != n:
            raise ValidationError(
                f"Resp analysis: wave arrays must have the same length "
                f"(time={n}, accX={len(self.acc_x)}, accY={len(self.acc_y)}).",
                field="wave.accX" if len(self.acc_x) != n else "wave.accY",
            )

    def as_dict(self) -> dict:
        return {
            "dt": self.dt,
            "time": self.time.tolist(),
            "accX": self.acc_x.tolist(),
            "accY": self.acc_y.tolist(),
        }


def get_el_centro_record():
    """
    Returns (times, accelerations_in_g) for El Centro 1940 (N-S component).
    Data is simplified for this project (captured peaks).
    """
    # [Time (s), Accel (g)]
    data = np.array([
        [0.00, 0.000], [0.50, 0.010], [1.00, 0.040], [1.40, -0.05],
        [1.80, -0.09], [2.00, 0.150], [2.14, 0.319], [2.40, -0.12],  # Peak ~0.32g
        [2.80, -0.25], [3.20, 0.180], [3.70, -0.15], [4.20, 0.120],
        [4.80, -0.10], [5.50, 0.060], [7.00, -0.04], [9.00, 0.020],
        [12.0, 0.000], [30.0, 0.000]
    ])
    return data[:, 0], data[:, 1]


def el_centro_wave(dt: float = 0.02, duration: float = 15.0, direction: str = "X",
                   scaling_factor: float = 1.0, units: UnitSystem = CM_KN) -> GroundWave:
    """
    The simplified El Centro record interpolated onto a uniform step and converted
    from g to the model's acceleration unit. The other axis is left at rest.
    """
    if direction not in ("X", "Y"):
        raise ValidationError(f'direction must be "X" or "Y" (got {direction!r}).', field="direction")
    t_data, a_data_g = get_el_centro_record()
    steps = int(math.floor(duration / dt)) + 1
    time = np.arange(steps) * dt
    acc = np.interp(time, t_data, a_data_g, right=0.0) * units.gravity * scaling_factor
    rest = np.zeros_like(acc)
    if direction == "X":
        return GroundWave(dt=dt, time=time, acc_x=acc, acc_y=rest)
    return GroundWave(dt=dt, time=time, acc_x=rest, acc_y=acc)
