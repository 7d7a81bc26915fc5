# src/remipk/config.py
"""
Engine configuration.

Every coefficient, bound and format the engine needs lives on an immutable
EngineConfig that callers pass in explicitly. Override single values with
dataclasses.replace, e.g.

    cfg = replace(DEFAULT_CONFIG,
                  integrator=replace(DEFAULT_CONFIG.integrator, step_min=0.05))
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple


class IntegrationMethod(str, Enum):
    """Numerical method used for the plasma/effect-site ODE system."""
    RK4 = "rk4"        # fixed-step classical Runge-Kutta
    LSODA = "lsoda"    # scipy solve_ivp, automatic stiff/non-stiff switching
    RK45 = "rk45"      # scipy solve_ivp, Dormand-Prince


@dataclass(frozen=True)
class GaussianBasis:
    """amplitude * exp(-0.5 * ((x - mean) / sd)**2)"""
    amplitude: float
    mean: float
    sd: float


@dataclass(frozen=True)
class MasuiCoefficients:
    """
    Fixed effects of the Masui 2022 remimazolam population PK model.

    theta1..theta6 : V1, V2, V3 (L) and CL, Q2, Q3 (L/min) at the standard weight
    theta_age      : V3 change per year away from the standard age
    theta_sex      : CL shift for female patients
    theta_asa      : CL shift for ASA III-IV
    """
    theta1: float = 3.57
    theta2: float = 11.3
    theta3: float = 27.2
    theta4: float = 1.03
    theta5: float = 1.10
    theta6: float = 0.401
    theta_age: float = 0.308
    theta_sex: float = 0.146
    theta_asa: float = -0.184

    standard_weight_kg: float = 67.3
    standard_age_y: float = 54.0
    clearance_exponent: float = 0.75

    # Ideal / adjusted body weight
    ibw_constant: float = 45.4
    ibw_height_coefficient: float = 0.89
    ibw_height_offset_cm: float = 152.4
    ibw_male_offset: float = 4.5
    abw_fraction: float = 0.4


@dataclass(frozen=True)
class Ke0Coefficients:
    """Log-linear ke0 regression (Masui & Hagihira 2022), result in 1/h before rescaling."""
    intercept: float = -9.06
    age: GaussianBasis = GaussianBasis(5.44, 30.0, 15.0)
    weight: GaussianBasis = GaussianBasis(2.1, 70.0, 20.0)
    height: GaussianBasis = GaussianBasis(1.8, 165.0, 15.0)
    bmi: GaussianBasis = GaussianBasis(1.2, 22.0, 5.0)
    sex_effect: float = 0.15
    asa_effect: float = 0.08
    per_hour_to_per_minute: float = 60.0


@dataclass(frozen=True)
class ParameterEnvelope:
    """Open intervals a derived parameter must fall in."""
    ke0_per_min: Tuple[float, float] = (1e-6, 2.0)
    volume_L: Tuple[float, float] = (0.0, 1000.0)
    clearance_L_per_min: Tuple[float, float] = (0.0, 50.0)


@dataclass(frozen=True)
class ValidationLimits:
    """Closed ranges for caller-supplied input."""
    age_y: Tuple[int, int] = (18, 100)
    weight_kg: Tuple[float, float] = (30.0, 200.0)
    height_cm: Tuple[float, float] = (120.0, 220.0)
    bmi: Tuple[float, float] = (12.0, 50.0)

    time_min: Tuple[float, float] = (0.0, 1440.0)
    bolus_mg: Tuple[float, float] = (0.0, 100.0)
    continuous_mg_kg_h: Tuple[float, float] = (0.0, 20.0)

    # schedule review: a rate jump larger than this within the window is flagged
    rapid_change_window_min: float = 5.0
    rapid_change_mg_kg_h: float = 1.0


@dataclass(frozen=True)
class IntegratorSettings:
    method: IntegrationMethod = IntegrationMethod.LSODA
    step_min: float = 0.1              # RK4 step, solve_ivp max_step
    rtol: float = 1e-8
    atol: float = 1e-10
    sample_interval_min: float = 1.0
    horizon_extension_min: float = 240.0
    annotation_tolerance_min: float = 0.5

    # alternative effect-site estimators
    discrete_substep_min: float = 0.1
    taylor_threshold: float = 1e-3


@dataclass(frozen=True)
class DisplayFormats:
    concentration_decimals: int = 3
    bolus_decimals: int = 1
    continuous_decimals: int = 2
    time_decimals: int = 0
    csv_header: str = "Time(min),Bolus(mg),Continuous(mg/kg/hr),Cp(ug/mL),Ce(ug/mL)"
    csv_file_prefix: str = "RemimazolamPKPD"
    timestamp_format: str = "%Y%m%d%H%M"
    clock_format: str = "%H:%M"


@dataclass(frozen=True)
class EngineConfig:
    masui: MasuiCoefficients = field(default_factory=MasuiCoefficients)
    ke0: Ke0Coefficients = field(default_factory=Ke0Coefficients)
    envelope: ParameterEnvelope = field(default_factory=ParameterEnvelope)
    limits: ValidationLimits = field(default_factory=ValidationLimits)
    integrator: IntegratorSettings = field(default_factory=IntegratorSettings)
    formats: DisplayFormats = field(default_factory=DisplayFormats)


DEFAULT_CONFIG = EngineConfig()
