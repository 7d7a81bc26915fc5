# src/remipk/parameters.py
"""
Masui 2022 remimazolam parameter model.

    V1 = th1 * (ABW/Wstd)            V2 = th2 * (ABW/Wstd)
    V3 = (th3 + th_age*(age - age_std)) * (ABW/Wstd)
    CL = (th4 + th_sex*sex + th_asa*asa) * (ABW/Wstd)**0.75
    Q2 = th5 * (ABW/Wstd)**0.75      Q3 = th6 * (ABW/Wstd)**0.75

ke0 follows Masui & Hagihira 2022: the log of ke0 (1/h) is an intercept plus
four Gaussian basis functions of age, total body weight, height and BMI, plus
linear sex and ASA terms.
"""
from __future__ import annotations

import logging
import math

from .config import DEFAULT_CONFIG, EngineConfig, GaussianBasis, MasuiCoefficients
from .errors import ParameterOutOfRangeError
from .types import PKParameters, Patient

logger = logging.getLogger(__name__)


def ideal_body_weight(patient: Patient, coef: MasuiCoefficients = MasuiCoefficients()) -> float:
    """Devine-type IBW (kg); the male offset applies when sex == 0."""
    return (coef.ibw_constant
            + coef.ibw_height_coefficient * (patient.height_cm - coef.ibw_height_offset_cm)
            + coef.ibw_male_offset * (1 - int(patient.sex)))


def adjusted_body_weight(patient: Patient, coef: MasuiCoefficients = MasuiCoefficients()) -> float:
    """IBW moved part of the way toward actual weight (kg)."""
    ibw = ideal_body_weight(patient, coef)
    return ibw + coef.abw_fraction * (patient.weight_kg - ibw)


def _gaussian(basis: GaussianBasis, x: float) -> float:
    return basis.amplitude * math.exp(-0.5 * ((x - basis.mean) / basis.sd) ** 2)


def compute_ke0(patient: Patient, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """
    Effect-site equilibration rate constant in 1/min.

    Raises ParameterOutOfRangeError when the value is outside
    config.envelope.ke0_per_min; the value is never clamped.
    """
    c = config.ke0
    log_ke0 = (c.intercept
               + _gaussian(c.age, float(patient.age))
               + _gaussian(c.weight, patient.weight_kg)
               + _gaussian(c.height, patient.height_cm)
               + _gaussian(c.bmi, patient.bmi)
               + c.sex_effect * int(patient.sex)
               + c.asa_effect * int(patient.asa_class))
    ke0 = math.exp(log_ke0) / c.per_hour_to_per_minute

    lo, hi = config.envelope.ke0_per_min
    if not (lo < ke0 < hi):
        raise ParameterOutOfRangeError("ke0", ke0, lo, hi)
    return ke0


def compute_pk_parameters(patient: Patient, config: EngineConfig = DEFAULT_CONFIG) -> PKParameters:
    """
    Derive patient-specific volumes, clearances and ke0.

    Pure and deterministic. Volumes and clearances are checked against
    config.envelope as well, so a unit slip in the coefficients fails loudly.
    """
    m = config.masui
    ibw = ideal_body_weight(patient, m)
    abw = adjusted_body_weight(patient, m)
    size = abw / m.standard_weight_kg
    size_cl = size ** m.clearance_exponent

    V1 = m.theta1 * size
    V2 = m.theta2 * size
    V3 = (m.theta3 + m.theta_age * (patient.age - m.standard_age_y)) * size
    CL = (m.theta4 + m.theta_sex * int(patient.sex) + m.theta_asa * int(patient.asa_class)) * size_cl
    Q2 = m.theta5 * size_cl
    Q3 = m.theta6 * size_cl

    env = config.envelope
    for name, value in (("V1", V1), ("V2", V2), ("V3", V3)):
        _check_open(name, value, env.volume_L)
    for name, value in (("CL", CL), ("Q2", Q2), ("Q3", Q3)):
        _check_open(name, value, env.clearance_L_per_min)

    ke0 = compute_ke0(patient, config)

    params = PKParameters(V1=V1, V2=V2, V3=V3, CL=CL, Q2=Q2, Q3=Q3, ke0=ke0,
                          weight_kg=float(patient.weight_kg), ibw_kg=ibw, abw_kg=abw)
    logger.debug("PK parameters for %s: %s", patient.id, params.as_dict())
    return params


def _check_open(name: str, value: float, bounds: tuple[float, float]) -> None:
    lo, hi = bounds
    if not (math.isfinite(value) and lo < value < hi):
        raise ParameterOutOfRangeError(name, value, lo, hi)
