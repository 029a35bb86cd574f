"""
Reference path polynomial.

Waypoints are fitted in vehicle-local frame with a low degree polynomial
y = c0 + c1 x + c2 x^2 + ... (coefficients in ascending order). The
polynomial is evaluated both numerically and on CasADi symbols, so every
operation here sticks to arithmetic that both support.
"""

from dataclasses import dataclass
from typing import Any, List, Sequence

import casadi as cs
import numpy as np

from trackmpc.exceptions import DegenerateFitError, InsufficientWaypointsError


def _terms(coeffs: Any) -> List[Any]:
    """Coefficients as a list; numpy scalars become floats so they mix with SX."""
    return [float(c) if isinstance(c, np.generic) else c for c in (coeffs[i] for i in range(coeffs.shape[0]))]


def polyeval(coeffs: Any, x: Any) -> Any:
    """Evaluate ascending-order coefficients at ``x`` (Horner's scheme)."""
    c = _terms(coeffs)
    result = c[-1]
    for i in range(len(c) - 2, -1, -1):
        result = result * x + c[i]
    return result


def _atan(value: Any) -> Any:
    if isinstance(value, (cs.SX, cs.MX)):
        return cs.atan(value)
    return np.arctan(value)


@dataclass(frozen=True, eq=False)
class ReferencePolynomial:
    """Polynomial with ascending-order ``coefficients``.

    ``coefficients`` is a numpy array for a fitted path, or a CasADi column
    vector when the solver builds its symbolic problem.
    """
    coefficients: Any

    @property
    def degree(self) -> int:
        return self.coefficients.shape[0] - 1

    def evaluate(self, x: Any) -> Any:
        return polyeval(self.coefficients, x)

    def derivative(self, x: Any) -> Any:
        """First derivative dy/dx at ``x``."""
        c = _terms(self.coefficients)
        n = len(c)
        if n == 1:
            return 0.0 * x
        result = (n - 1) * c[n - 1]
        for i in range(n - 2, 0, -1):
            result = result * x + i * c[i]
        return result

    def tangent_angle(self, x: Any) -> Any:
        """Direction of the path tangent at ``x`` [rad]."""
        return _atan(self.derivative(x))

    def __call__(self, x: Any) -> Any:
        return self.evaluate(x)


def fit_polynomial(xs: Sequence[float], ys: Sequence[float], degree: int) -> ReferencePolynomial:
    """Least-squares fit of a ``degree`` polynomial through (xs, ys).

    Raises:
        InsufficientWaypointsError: fewer than ``degree + 1`` points, or the
            coordinate sequences differ in length.
        DegenerateFitError: rank deficient design matrix or non-finite result.
    """
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)

    if xs.ndim != 1 or ys.ndim != 1 or xs.shape != ys.shape:
        raise InsufficientWaypointsError(min(xs.size, ys.size), degree)
    if xs.size < degree + 1:
        raise InsufficientWaypointsError(xs.size, degree)
    if not (np.all(np.isfinite(xs)) and np.all(np.isfinite(ys))):
        raise DegenerateFitError("waypoints contain non-finite values")

    design = np.vander(xs, degree + 1, increasing=True)
    try:
        coeffs, _, rank, _ = np.linalg.lstsq(design, ys, rcond=None)
    except np.linalg.LinAlgError as e:
        raise DegenerateFitError(str(e)) from e

    if rank < degree + 1:
        raise DegenerateFitError(f"design matrix has rank {rank}, need {degree + 1}")
    if not np.all(np.isfinite(coeffs)):
        raise DegenerateFitError("fit produced non-finite coefficients")

    return ReferencePolynomial(coeffs)
