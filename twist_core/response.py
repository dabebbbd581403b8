# twist_core/response.py
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.linalg import LinAlgError, cho_factor, cho_solve

from .building import BuildingModel
from .earthquakes import GroundWave
from .errors import NumericalError
from .matrices import DOF_PER_STORY, BaseShapeInfo
from .modal import ModalAnalyzer, influence_vector
from .settings import TimeHistoryOptions
from .units import CM_KN, UnitSystem


def ground_load(M: np.ndarray, r_x: np.ndarray, r_y: np.ndarray, ag_x: float, ag_y: float) -> np.ndarray:
    """
    Inertia load of a ground acceleration:
    F(t) = -M * (r_x * ag_x(t) + r_y * ag_y(t))
    """
    return -(M @ (r_x * ag_x + r_y * ag_y))


def response_header(story_count: int) -> tuple[str, ...]:
    header = ["Time(s)", "DX_1", "DY_1", "θZ_1", "AX_1", "AY_1"]
    for i in range(2, story_count + 1):
        header += [f"AX_{i}", f"DX_{i}", f"AY_{i}", f"DY_{i}", f"AθZ_{i}", f"DθZ_{i}"]
    header += ["AX_R", "DX_R", "AY_R", "DY_R", "AθZ_R", "DθZ_R"]
    return tuple(header)


def response_row(time: float, story_count: int, u: np.ndarray, acc: np.ndarray) -> list[float]:
    row = [time, u[0], u[1], u[2], acc[0], acc[1]]
    for i in range(1, story_count):
        b = i * DOF_PER_STORY
        row += [acc[b], u[b], acc[b + 1], u[b + 1], acc[b + 2], u[b + 2]]
    roof = (story_count - 1) * DOF_PER_STORY
    row += [acc[roof], u[roof], acc[roof + 1], u[roof + 1], acc[roof + 2], u[roof + 2]]
    return [float(v) for v in row]


@dataclass(frozen=True)
class RespMeta:
    mass_count: int
    dt: float
    damper_count: int

    def as_dict(self) -> dict:
        return {"massCount": self.mass_count, "dt": self.dt, "damperCount": self.damper_count}


@dataclass(frozen=True)
class RespResult:
    base_shape: BaseShapeInfo
    meta: RespMeta
    header: tuple[str, ...]
    records: np.ndarray          # one row per time step, columns as in header
    column_max_abs: np.ndarray

    def column(self, label: str) -> np.ndarray:
        return self.records[:, self.header.index(label)]

    def as_dict(self) -> dict:
        return {
            "baseShape": self.base_shape.as_dict(),
            "meta": self.meta.as_dict(),
            "header": list(self.header),
            "records": self.records.tolist(),
            "columnMaxAbs": self.column_max_abs.tolist(),
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "RespResult":
        meta = payload["meta"]
        return cls(
            base_shape=BaseShapeInfo.from_dict(payload["baseShape"]),
            meta=RespMeta(int(meta["massCount"]), float(meta["dt"]), int(meta["damperCount"])),
            header=tuple(payload["header"]),
            records=np.array(payload["records"], dtype=float),
            column_max_abs=np.array(payload["columnMaxAbs"], dtype=float),
        )


class TimeHistoryAnalyzer:
    """
    Newmark-beta integration of  M u'' + C u' + K u = -M r ag(t)  from rest, with C
    including Rayleigh damping. Reports relative displacements and absolute accelerations.
    """

    def __init__(self, model: BuildingModel, wave: GroundWave,
                 options: TimeHistoryOptions | None = None, units: UnitSystem = CM_KN):
        self.model = model
        self.wave = wave
        self.options = options or TimeHistoryOptions()
        self.units = units

    def run(self) -> RespResult:
        self.wave.validate()
        self.options.validate()

        _, matrices = ModalAnalyzer(self.model, self.options, self.units).run()
        M, C, K = matrices.mass, matrices.damping, matrices.stiffness
        n = matrices.story_count
        m_diag = np.diag(M)
        # Cholesky accepts tiny positive masses, but the initial acceleration divides by them
        if np.any(np.abs(m_diag) < 1e-12):
            raise NumericalError("Resp analysis: mass matrix diagonal includes zero value.")

        dt = self.wave.dt
        beta = self.options.beta
        gamma = self.options.gamma

        a0 = 1.0 / (beta * dt ** 2)
        a1 = gamma / (beta * dt)
        a2 = 1.0 / (beta * dt)
        a3 = 1.0 / (2.0 * beta) - 1.0
        a4 = gamma / beta - 1.0
        a5 = dt * (gamma / (2.0 * beta) - 1.0)

        K_hat = K + a1 * C + a0 * M
        try:
            K_hat_factor = cho_factor(K_hat, lower=True)
        except LinAlgError as err:
            raise NumericalError(f"Resp analysis: effective stiffness is not positive definite ({err}).") from err

        r_x = influence_vector(n, "X")
        r_y = influence_vector(n, "Y")
        acc_x = self.wave.acc_x
        acc_y = self.wave.acc_y

        u = np.zeros(matrices.dof_count)
        v = np.zeros(matrices.dof_count)
        # initial acceleration from equilibrium at t = 0
        p0 = ground_load(M, r_x, r_y, acc_x[0], acc_y[0])
        a = (p0 - C @ v - K @ u) / m_diag

        rows = []
        for step, t in enumerate(self.wave.time):
            if step > 0:
                F = ground_load(M, r_x, r_y, acc_x[step], acc_y[step])
                term_M = a0 * u + a2 * v + a3 * a
                term_C = a1 * u + a4 * v + a5 * a
                P_hat = F + M @ term_M + C @ term_C

                u_next = cho_solve(K_hat_factor, P_hat)
                a_next = a0 * (u_next - u) - a2 * v - a3 * a
                v_next = v + dt * ((1.0 - gamma) * a + gamma * a_next)
                u, v, a = u_next, v_next, a_next

            absolute = a.copy()
            absolute[0::DOF_PER_STORY] += acc_x[step]
            absolute[1::DOF_PER_STORY] += acc_y[step]
            rows.append(response_row(t, n, u, absolute))

        header = response_header(n)
        if any(len(row) != len(header) for row in rows):
            raise NumericalError("Resp analysis: internal row length mismatch.")

        records = np.array(rows, dtype=float)
        return RespResult(
            base_shape=matrices.base_shape,
            meta=RespMeta(mass_count=n, dt=dt, damper_count=self.model.damper_count),
            header=header,
            records=records,
            column_max_abs=np.max(np.abs(records), axis=0),
        )


def solve_time_history(model: BuildingModel, wave: GroundWave, options: TimeHistoryOptions | None = None,
                       units: UnitSystem = CM_KN) -> RespResult:
    return TimeHistoryAnalyzer(model, wave, options, units).run()
