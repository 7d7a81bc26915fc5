from datetime import datetime

import pytest

from remipk.types import AsaClass, DoseEvent, Patient, Sex


@pytest.fixture
def standard_patient():
    """54 y, 67.3 kg, 170 cm male, ASA I-II: the model's reference covariates."""
    return Patient(id="P001", age=54, weight_kg=67.3, height_cm=170.0,
                   sex=Sex.MALE, asa_class=AsaClass.CLASS_1_2,
                   anesthesia_start=datetime(2024, 5, 1, 8, 0))


@pytest.fixture
def young_patient():
    """Covariates near the ke0 basis centres, so ke0 is large enough to see Ce move."""
    return Patient(id="P002", age=30, weight_kg=70.0, height_cm=165.0,
                   sex=Sex.FEMALE, asa_class=AsaClass.CLASS_1_2,
                   anesthesia_start=datetime(2024, 5, 1, 8, 0))


@pytest.fixture
def patient_70kg():
    return Patient(id="P070", age=45, weight_kg=70.0, height_cm=175.0,
                   anesthesia_start=datetime(2024, 5, 1, 8, 0))


@pytest.fixture
def single_bolus_10mg():
    return [DoseEvent(time_min=0.0, bolus_mg=10.0, continuous_mg_kg_h=0.0)]


@pytest.fixture
def stepped_schedule():
    """5 mg bolus, then 1.0 -> 2.0 mg/kg/hr, stopped at 60 min."""
    return [
        DoseEvent(0.0, 5.0, 0.0),
        DoseEvent(5.0, 0.0, 1.0),
        DoseEvent(30.0, 0.0, 2.0),
        DoseEvent(60.0, 0.0, 0.0),
    ]
