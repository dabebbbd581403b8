from __future__ import annotations

import dataclasses
from typing import Sequence

import numpy as np

from .matrices import AnalysisMatrices


def rayleigh_coefficients(omegas: Sequence[float], zeta: float) -> tuple[float, float]:
    """
    C = alpha*M + beta*K, matching zeta exactly at the two lowest circular frequencies:
        alpha = 2*zeta*w1*w2/(w1 + w2),  beta = 2*zeta/(w1 + w2)
    With a single usable frequency only the mass term is kept: alpha = 2*zeta*w1.
    """
    if zeta <= 0.0:
        return 0.0, 0.0
    w = [float(v) for v in omegas if np.isfinite(v) and v > 1e-12]
    if not w:
        return 0.0, 0.0
    if len(w) == 1:
        return 2.0 * zeta * w[0], 0.0

    w1, w2 = w[0], w[1]
    alpha = 2.0 * zeta * w1 * w2 / (w1 + w2)
    beta = 2.0 * zeta / (w1 + w2)
    return alpha, beta


def apply_rayleigh_damping(matrices: AnalysisMatrices, omegas: Sequence[float], zeta: float) -> AnalysisMatrices:
    """Returns a copy of matrices whose damping includes alpha*M + beta*K. The input is untouched."""
    alpha, beta = rayleigh_coefficients(omegas, zeta)
    damping = matrices.damping + alpha * matrices.mass + beta * matrices.stiffness
    return dataclasses.replace(matrices, damping=damping)


def modal_damping(C: np.ndarray, M: np.ndarray, phi: np.ndarray, omegas: Sequence[float]) -> np.ndarray:
    """Equivalent damping ratio of each real mode: phi^T C phi / (2 w phi^T M phi)."""
    zetas = []
    for i, w in enumerate(omegas):
        v = phi[:, i]
        zetas.append(float(v @ C @ v) / (2.0 * w * float(v @ M @ v)))
    return np.array(zetas)
