# twist_core/complex_modal.py
from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from scipy.linalg import LinAlgError, eig

from .building import BuildingModel
from .errors import NumericalError
from .matrices import BaseShapeInfo, dof_label
from .modal import ModalAnalyzer, ModalResult
from .settings import AnalysisOptions
from .units import CM_KN, UnitSystem

EIGEN_EPS = 1e-9


def build_state_matrix(M: np.ndarray, K: np.ndarray, C: np.ndarray) -> np.ndarray:
    """
    First-order form of  M x'' + C x' + K x = 0  with state z = [x, x']:
        A = [   0        I   ]
            [ -M^-1 K  -M^-1 C ]
    """
    n = M.shape[0]
    try:
        M_inv_K = np.linalg.solve(M, K)
        M_inv_C = np.linalg.solve(M, C)
    except LinAlgError as err:
        raise NumericalError(f"Complex analysis: mass matrix is singular ({err}).") from err

    A = np.zeros((2 * n, 2 * n), dtype=float)
    A[:n, n:] = np.eye(n)
    A[n:, :n] = -M_inv_K
    A[n:, n:] = -M_inv_C
    return A


def normalize_complex_mode(values: np.ndarray) -> np.ndarray:
    """Divides by the largest modulus; flips sign when the first non-negligible entry has a negative real part."""
    amplitudes = np.abs(values)
    max_amp = float(amplitudes.max()) if values.size else 0.0
    if max_amp < 1e-15:
        return values.copy()
    sign = 1.0
    nonzero = np.flatnonzero(amplitudes > 1e-12)
    if nonzero.size and values[nonzero[0]].real < 0:
        sign = -1.0
    return values / max_amp * sign


def damping_ratio_percent(lam: complex) -> float:
    magnitude = abs(lam)
    if magnitude < EIGEN_EPS:
        return 0.0
    return -lam.real / magnitude * 100.0


@dataclass(frozen=True)
class ComplexModeVector:
    component: str
    amplitude: float
    phase_rad: float
    real: float
    imag: float

    @classmethod
    def from_value(cls, component: str, value: complex) -> "ComplexModeVector":
        return cls(
            component=component,
            amplitude=abs(value),
            phase_rad=math.atan2(value.imag, value.real),
            real=value.real,
            imag=value.imag,
        )

    def as_dict(self) -> dict:
        return {
            "component": self.component,
            "amplitude": self.amplitude,
            "phaseRad": self.phase_rad,
            "complexReal": self.real,
            "complexImag": self.imag,
        }


@dataclass(frozen=True)
class ComplexMode:
    mode: int
    frequency_hz: float
    damping_ratio_percent: float
    eigenvalue: complex
    vectors: tuple[ComplexModeVector, ...]

    def as_dict(self) -> dict:
        return {
            "mode": self.mode,
            "frequencyHz": self.frequency_hz,
            "dampingRatioPercent": self.damping_ratio_percent,
            "eigenValueReal": self.eigenvalue.real,
            "eigenValueImag": self.eigenvalue.imag,
            "vectors": [v.as_dict() for v in self.vectors],
        }


@dataclass(frozen=True)
class ComplexModalResult:
    base_shape: BaseShapeInfo
    modes: tuple[ComplexMode, ...]

    def as_dict(self) -> dict:
        return {"baseShape": self.base_shape.as_dict(), "modes": [m.as_dict() for m in self.modes]}

    @classmethod
    def from_dict(cls, payload: dict) -> "ComplexModalResult":
        modes = tuple(
            ComplexMode(
                mode=int(m["mode"]),
                frequency_hz=float(m["frequencyHz"]),
                damping_ratio_percent=float(m["dampingRatioPercent"]),
                eigenvalue=complex(m["eigenValueReal"], m["eigenValueImag"]),
                vectors=tuple(
                    ComplexModeVector(
                        component=v["component"],
                        amplitude=float(v["amplitude"]),
                        phase_rad=float(v["phaseRad"]),
                        real=float(v["complexReal"]),
                        imag=float(v["complexImag"]),
                    )
                    for v in m["vectors"]
                ),
            )
            for m in payload["modes"]
        )
        return cls(base_shape=BaseShapeInfo.from_dict(payload["baseShape"]), modes=modes)


class ComplexModalAnalyzer:
    """
    Damped (complex) modes of the Rayleigh-damped system, including any dampers that
    make the damping non-proportional. Each eigenvalue pair a +/- bi gives one mode:
        f = |b| / 2pi [Hz],   h = -a / |lambda| * 100 [%]
    """

    def __init__(self, model: BuildingModel, options: AnalysisOptions | None = None,
                 units: UnitSystem = CM_KN):
        self.model = model
        self.options = options or AnalysisOptions()
        self.units = units

    def run(self) -> tuple[ModalResult, ComplexModalResult]:
        modal, matrices = ModalAnalyzer(self.model, self.options, self.units).run()
        n = matrices.dof_count
        A = build_state_matrix(matrices.mass, matrices.stiffness, matrices.damping)

        try:
            lambdas, vectors = eig(A)
        except LinAlgError as err:
            raise NumericalError(f"Complex analysis: eigensolver failed to converge ({err}).") from err

        found = []
        for i, lam in enumerate(lambdas):
            if not np.isfinite(lam) or lam.imag <= EIGEN_EPS:
                continue
            frequency = abs(lam.imag) / (2.0 * np.pi)
            if frequency <= 0.0:
                continue
            found.append((frequency, complex(lam), normalize_complex_mode(vectors[:n, i])))

        if not found:
            raise NumericalError("Complex analysis: no valid complex mode was found.")

        found.sort(key=lambda item: item[0])
        modes = tuple(
            ComplexMode(
                mode=index + 1,
                frequency_hz=frequency,
                damping_ratio_percent=damping_ratio_percent(lam),
                eigenvalue=lam,
                vectors=tuple(
                    ComplexModeVector.from_value(dof_label(d), complex(value))
                    for d, value in enumerate(shape)
                ),
            )
            for index, (frequency, lam, shape) in enumerate(found[:n])
        )
        return modal, ComplexModalResult(base_shape=matrices.base_shape, modes=modes)


def solve_complex(model: BuildingModel, options: AnalysisOptions | None = None,
                  units: UnitSystem = CM_KN) -> tuple[ModalResult, ComplexModalResult]:
    return ComplexModalAnalyzer(model, options, units).run()
