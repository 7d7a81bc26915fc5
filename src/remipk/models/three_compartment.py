# src/remipk/models/three_compartment.py
import numpy as np

from ..types import PKParameters


def system_matrix(p: PKParameters) -> np.ndarray:
    """
    Linear part of the mammillary model with effect site, x = [A1, A2, A3, Ce]:

      dA1/dt = R(t) - (k10+k12+k13)*A1 + k21*A2 + k31*A3
      dA2/dt = k12*A1 - k21*A2
      dA3/dt = k13*A1 - k31*A3
      dCe/dt = ke0*(A1/V1 - Ce)

    A1..A3 are masses (mg); Ce is a concentration (ug/mL == mg/L), hence the
    ke0/V1 coupling term.
    """
    return np.array([
        [-(p.k10 + p.k12 + p.k13), p.k21, p.k31, 0.0],
        [p.k12, -p.k21, 0.0, 0.0],
        [p.k13, 0.0, -p.k31, 0.0],
        [p.ke0 / p.V1, 0.0, 0.0, -p.ke0],
    ], dtype=float)


def three_compartment_effect_site(t, y, M, rate_mg_min):
    """
    Right-hand side for a segment with constant infusion.

    Parameters:
      t           : current time (min), unused because the segment is autonomous
      y           : state vector [A1, A2, A3, Ce]
      M           : 4x4 matrix from system_matrix()
      rate_mg_min : infusion into the central compartment (mg/min)
    """
    dy = M @ y
    dy[0] += rate_mg_min
    return dy


def rk4_step(y: np.ndarray, h: float, M: np.ndarray, rate_mg_min: float) -> np.ndarray:
    """One classical 4-stage Runge-Kutta step of size h."""
    k1 = three_compartment_effect_site(0.0, y, M, rate_mg_min)
    k2 = three_compartment_effect_site(0.0, y + 0.5 * h * k1, M, rate_mg_min)
    k3 = three_compartment_effect_site(0.0, y + 0.5 * h * k2, M, rate_mg_min)
    k4 = three_compartment_effect_site(0.0, y + h * k3, M, rate_mg_min)
    return y + (h / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)
