# src/remipk/types.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Optional

# All times are ELAPSED MINUTES from anesthesia start. Wall-clock times only
# appear at the edges (see clock.py).


class Sex(IntEnum):
    """Regression coding: male=0, female=1."""
    MALE = 0
    FEMALE = 1


class AsaClass(IntEnum):
    """ASA physical status, collapsed to the two regression categories."""
    CLASS_1_2 = 0
    CLASS_3_4 = 1


@dataclass(frozen=True)
class Patient:
    """
    Demographics used as regression inputs.

    id               : opaque identifier
    age              : years
    weight_kg        : total body weight
    height_cm        : height
    sex              : Sex.MALE / Sex.FEMALE
    asa_class        : AsaClass.CLASS_1_2 / AsaClass.CLASS_3_4
    anesthesia_start : wall-clock instant that elapsed minute 0 refers to
    """
    id: str
    age: int
    weight_kg: float
    height_cm: float
    sex: Sex = Sex.MALE
    asa_class: AsaClass = AsaClass.CLASS_1_2
    anesthesia_start: datetime = field(default_factory=lambda: datetime.now().replace(second=0, microsecond=0))

    @property
    def bmi(self) -> float:
        return self.weight_kg / (self.height_cm / 100.0) ** 2


@dataclass(frozen=True)
class DoseEvent:
    """
    One scheduling instruction.

    time_min           : elapsed minutes since anesthesia start (usually whole minutes)
    bolus_mg           : instantaneous dose added at time_min (0 for none)
    continuous_mg_kg_h : infusion rate in effect from time_min until superseded
    """
    time_min: float
    bolus_mg: float = 0.0
    continuous_mg_kg_h: float = 0.0

    def continuous_rate_mg_min(self, weight_kg: float) -> float:
        """Infusion rate converted to mg/min for a patient of the given weight."""
        return self.continuous_mg_kg_h * weight_kg / 60.0


@dataclass(frozen=True)
class BolusEntry:
    time_min: float
    amount_mg: float


@dataclass(frozen=True)
class InfusionStep:
    """Rate (mg/kg/hr) that applies from time_min onward."""
    time_min: float
    rate_mg_kg_h: float


@dataclass(frozen=True)
class PKParameters:
    """
    Patient-specific three-compartment parameters.

    V1, V2, V3 : compartment volumes (L)
    CL         : systemic clearance (L/min)
    Q2, Q3     : inter-compartmental clearances (L/min)
    ke0        : effect-site equilibration rate constant (1/min)
    weight_kg  : total body weight used to convert infusion rates
    ibw_kg, abw_kg : ideal and adjusted body weight behind the scaling
    """
    V1: float
    V2: float
    V3: float
    CL: float
    Q2: float
    Q3: float
    ke0: float
    weight_kg: float
    ibw_kg: float
    abw_kg: float

    @property
    def k10(self) -> float:
        return self.CL / self.V1

    @property
    def k12(self) -> float:
        return self.Q2 / self.V1

    @property
    def k13(self) -> float:
        return self.Q3 / self.V1

    @property
    def k21(self) -> float:
        return self.Q2 / self.V2

    @property
    def k31(self) -> float:
        return self.Q3 / self.V3

    def as_dict(self) -> dict[str, float]:
        return {
            "V1": self.V1, "V2": self.V2, "V3": self.V3,
            "CL": self.CL, "Q2": self.Q2, "Q3": self.Q3,
            "k10": self.k10, "k12": self.k12, "k13": self.k13,
            "k21": self.k21, "k31": self.k31, "ke0": self.ke0,
            "weight_kg": self.weight_kg, "ibw_kg": self.ibw_kg, "abw_kg": self.abw_kg,
        }


@dataclass(frozen=True)
class SystemState:
    """
    Integration variables.

    a1, a2, a3 : drug mass in central / fast / slow compartment (mg)
    ce         : effect-site concentration (ug/mL), not a mass
    """
    a1: float = 0.0
    a2: float = 0.0
    a3: float = 0.0
    ce: float = 0.0

    def to_vector(self) -> list[float]:
        return [self.a1, self.a2, self.a3, self.ce]

    @classmethod
    def from_vector(cls, y) -> "SystemState":
        return cls(float(y[0]), float(y[1]), float(y[2]), float(y[3]))

    @property
    def total_mass_mg(self) -> float:
        return self.a1 + self.a2 + self.a3


class ResultKind(str, Enum):
    """Tag selecting which payload a SimulationResult carries."""
    STANDARD = "standard"
    EFFECT_SITE_COMPARISON = "effect_site_comparison"


@dataclass(frozen=True)
class TimePoint:
    """
    One sampled output row.

    dose_event is the event scheduled at (within tolerance of) this sample,
    kept only to annotate the output.
    """
    time_min: float
    plasma_ug_ml: float
    effect_site_ug_ml: float
    dose_event: Optional[DoseEvent] = None
