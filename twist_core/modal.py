# twist_core/modal.py
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.linalg import LinAlgError, cholesky, solve_triangular

from .building import BuildingModel
from .errors import NumericalError
from .matrices import DOF_PER_STORY, AnalysisMatrices, BaseShapeInfo, MatrixAssembler
from .rayleigh import apply_rayleigh_damping
from .settings import AnalysisOptions
from .units import CM_KN, UnitSystem

EIGEN_MIN = 1e-10
_SHAPE_AXES = ("δx", "δy", "θz")


def solve_generalized_eigen(M: np.ndarray, K: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    K phi = w^2 M phi through M = L L^T:
        A = L^-1 K L^-T  (symmetric),  A q = w^2 q,  phi = L^-T q

    Returns the eigenvalues above EIGEN_MIN in ascending order and the matching
    mass-normalized vectors (columns, phi^T M phi = 1).
    """
    M = np.asarray(M, dtype=float)
    K = np.asarray(K, dtype=float)
    try:
        L = cholesky(M, lower=True)
    except LinAlgError as err:
        raise NumericalError(f"Eigen analysis: mass matrix is not positive definite ({err}).") from err

    L_inv = solve_triangular(L, np.eye(M.shape[0]), lower=True)
    A = L_inv @ K @ L_inv.T
    try:
        w2, Q = np.linalg.eigh(A)
    except LinAlgError as err:
        raise NumericalError(f"Eigen analysis: eigensolver did not converge ({err}).") from err

    keep = [i for i in np.argsort(w2) if np.isfinite(w2[i]) and w2[i] > EIGEN_MIN]
    if not keep:
        raise NumericalError("Eigen analysis: no positive eigenvalue was found.")

    PHI = L_inv.T @ Q[:, keep]
    for j in range(PHI.shape[1]):
        v = PHI[:, j]
        PHI[:, j] = v / np.sqrt(max(float(v @ M @ v), 1e-18))
    return w2[keep], PHI


def readable_mode(mode: np.ndarray) -> np.ndarray:
    """Scales a mode so its largest |entry| is 1 and its first non-negligible entry is >= 0."""
    max_abs = float(np.max(np.abs(mode))) if mode.size else 0.0
    if max_abs < 1e-12:
        return mode.copy()
    return mode / max_abs * display_sign(mode)


def display_sign(mode: np.ndarray) -> float:
    max_abs = float(np.max(np.abs(mode))) if mode.size else 0.0
    if max_abs < 1e-12:
        return 1.0
    scaled = mode / max_abs
    nonzero = np.flatnonzero(np.abs(scaled) > 1e-10)
    if nonzero.size == 0:
        return 1.0
    return 1.0 if scaled[nonzero[0]] >= 0 else -1.0


def mode_shape_labels(story_count: int) -> tuple[str, ...]:
    # roof first, the way the legacy modal table lists stories
    return tuple(
        f"M{story}-{axis}" for story in range(story_count, 0, -1) for axis in _SHAPE_AXES
    )


def influence_vector(story_count: int, direction: str) -> np.ndarray:
    r = np.zeros(story_count * DOF_PER_STORY)
    r[(0 if direction == "X" else 1)::DOF_PER_STORY] = 1.0
    return r


@dataclass(frozen=True)
class ModalResult:
    frequencies_hz: np.ndarray
    participation_factor_x: np.ndarray
    participation_factor_y: np.ndarray
    effective_mass_ratio_x: np.ndarray
    effective_mass_ratio_y: np.ndarray
    mode_labels: tuple[str, ...]
    mode_shapes: np.ndarray          # one row per label, one column per mode
    base_shape: BaseShapeInfo

    @property
    def mode_count(self) -> int:
        return len(self.frequencies_hz)

    @property
    def periods(self) -> np.ndarray:
        return 1.0 / self.frequencies_hz

    @property
    def omegas(self) -> np.ndarray:
        return 2.0 * np.pi * self.frequencies_hz

    def shape(self, label: str) -> np.ndarray:
        return self.mode_shapes[self.mode_labels.index(label)]

    def as_dict(self) -> dict:
        return {
            "baseShape": self.base_shape.as_dict(),
            "frequenciesHz": self.frequencies_hz.tolist(),
            "participationFactorX": self.participation_factor_x.tolist(),
            "participationFactorY": self.participation_factor_y.tolist(),
            "effectiveMassRatioX": self.effective_mass_ratio_x.tolist(),
            "effectiveMassRatioY": self.effective_mass_ratio_y.tolist(),
            "eigenVectors": [
                {"label": label, "values": row.tolist()}
                for label, row in zip(self.mode_labels, self.mode_shapes)
            ],
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "ModalResult":
        rows = payload["eigenVectors"]
        return cls(
            frequencies_hz=np.array(payload["frequenciesHz"], dtype=float),
            participation_factor_x=np.array(payload["participationFactorX"], dtype=float),
            participation_factor_y=np.array(payload["participationFactorY"], dtype=float),
            effective_mass_ratio_x=np.array(payload["effectiveMassRatioX"], dtype=float),
            effective_mass_ratio_y=np.array(payload["effectiveMassRatioY"], dtype=float),
            mode_labels=tuple(row["label"] for row in rows),
            mode_shapes=np.array([row["values"] for row in rows], dtype=float),
            base_shape=BaseShapeInfo.from_dict(payload["baseShape"]),
        )


class ModalAnalyzer:
    """
    Real (classically damped) modal analysis.

    run() returns the modal result together with the matrices whose damping already
    includes Rayleigh terms calibrated on the two lowest frequencies, ready for the
    complex-mode and time-history analyses.
    """

    def __init__(self, model: BuildingModel, options: AnalysisOptions | None = None,
                 units: UnitSystem = CM_KN):
        self.model = model
        self.options = options or AnalysisOptions()
        self.units = units

    def run(self) -> tuple[ModalResult, AnalysisMatrices]:
        matrices = MatrixAssembler(self.model, self.options, self.units).assemble()
        M = matrices.mass
        n = matrices.story_count

        w2, PHI = solve_generalized_eigen(M, matrices.stiffness)
        w_n = np.sqrt(w2)

        r_x = influence_vector(n, "X")
        r_y = influence_vector(n, "Y")
        total_x = float(r_x @ M @ r_x)
        total_y = float(r_y @ M @ r_y)

        readable = np.zeros_like(PHI)
        gamma_x = np.zeros(PHI.shape[1])
        gamma_y = np.zeros(PHI.shape[1])
        for j in range(PHI.shape[1]):
            # participation factors share the sign of the displayed shape
            phi = PHI[:, j] * display_sign(PHI[:, j])
            readable[:, j] = readable_mode(PHI[:, j])
            gamma_x[j] = phi @ M @ r_x
            gamma_y[j] = phi @ M @ r_y

        # table rows run from the roof down
        order = [
            (story - 1) * DOF_PER_STORY + axis
            for story in range(n, 0, -1) for axis in range(DOF_PER_STORY)
        ]

        result = ModalResult(
            frequencies_hz=w_n / (2.0 * np.pi),
            participation_factor_x=gamma_x,
            participation_factor_y=gamma_y,
            effective_mass_ratio_x=gamma_x ** 2 / total_x if total_x > 0 else np.zeros_like(gamma_x),
            effective_mass_ratio_y=gamma_y ** 2 / total_y if total_y > 0 else np.zeros_like(gamma_y),
            mode_labels=mode_shape_labels(n),
            mode_shapes=readable[order, :],
            base_shape=matrices.base_shape,
        )

        damped = apply_rayleigh_damping(matrices, w_n, self.options.default_damping_ratio)
        return result, damped


def solve_real(model: BuildingModel, options: AnalysisOptions | None = None,
               units: UnitSystem = CM_KN) -> tuple[ModalResult, AnalysisMatrices]:
    return ModalAnalyzer(model, options, units).run()
