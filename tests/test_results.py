from dataclasses import replace
from datetime import datetime

import numpy as np
import pytest

from remipk.errors import InvalidInputError
from remipk.results import SimulationResult, parse_csv
from remipk.simulate import simulate
from remipk.types import DoseEvent, ResultKind

HEADER = "Time(min),Bolus(mg),Continuous(mg/kg/hr),Cp(ug/mL),Ce(ug/mL)"


@pytest.fixture
def stepped_result(patient_70kg, stepped_schedule):
    return simulate(patient_70kg, stepped_schedule, duration=120)


def test_csv_layout(stepped_result):
    lines = stepped_result.to_csv().splitlines()
    assert lines[0] == HEADER
    assert len(lines) == len(stepped_result.time_points) + 1
    assert lines[1].startswith("0,5.0,0.00,")
    assert lines[11].split(",")[:3] == ["10", "0.0", "1.00"]
    assert lines[46].split(",")[:3] == ["45", "0.0", "2.00"]
    assert lines[61].split(",")[2] == "0.00"


def test_csv_round_trip(stepped_result):
    cols = parse_csv(stepped_result.to_csv())
    assert np.allclose(cols["Time(min)"], stepped_result.times)
    assert np.allclose(cols["Cp(ug/mL)"], stepped_result.plasma, atol=5e-4 + 1e-12)
    assert np.allclose(cols["Ce(ug/mL)"], stepped_result.effect_site, atol=5e-4 + 1e-12)


def test_csv_is_stable(stepped_result, patient_70kg, stepped_schedule):
    again = simulate(patient_70kg, stepped_schedule, duration=120)
    assert again.to_csv() == stepped_result.to_csv()


def test_write_csv_with_metadata(stepped_result, tmp_path):
    now = datetime(2024, 5, 1, 9, 15)
    path = stepped_result.write_csv(tmp_path / "out.csv", now=now)
    text = path.read_text(encoding="utf-8")

    assert text.startswith("# Patient: P070, age 45, 70.0 kg, 175.0 cm, male, ASA I-II")
    assert "# Anesthesia start: 2024-05-01 08:00" in text
    assert "# Calculation method: lsoda" in text
    cols = parse_csv(text)
    assert len(cols["Ce(ug/mL)"]) == len(stepped_result.time_points)


def test_summaries(stepped_result):
    s = stepped_result.summary()
    assert s["max_cp_ug_ml"] == pytest.approx(stepped_result.plasma.max())
    assert s["duration_min"] == 120.0
    assert 0 <= s["tmax_ce_min"] <= 120
    assert s["auc_cp_ug_min_ml"] > 0


def test_clock_times(stepped_result):
    clocks = stepped_result.clock_times()
    assert clocks[0] == "08:00"
    assert clocks[75] == "09:15"


def test_export_filename(standard_patient):
    result = simulate(replace(standard_patient, id="P 001/x"), [DoseEvent(0, 5.0)], duration=10)
    now = datetime(2024, 5, 1, 8, 0)
    assert result.export_filename(now) == "RemimazolamPKPD_P_001_x_202405010800.csv"


def test_comparison_payload(standard_patient):
    result = simulate(standard_patient, [DoseEvent(0, 10.0)], duration=60, effect_site_methods="all")
    comp = result.comparison

    assert result.kind == ResultKind.EFFECT_SITE_COMPARISON
    assert comp.available_methods() == ("integrator", "discrete", "exponential", "hybrid")
    assert np.array_equal(comp.effect_site_by_method("integrator"), result.effect_site)
    assert comp.max_effect_site_by_method("hybrid") > 0
    with pytest.raises(KeyError):
        comp.effect_site_by_method("euler")

    rows = comp.compare_at_times([10.2, 30])
    assert len(rows) == 8
    assert rows[0].actual_time_min == 10.0 and rows[0].method == "integrator"

    lines = comp.to_csv().splitlines()
    assert lines[0] == ("Time(min),Cp(ug/mL),Ce_integrator(ug/mL),Ce_discrete(ug/mL),"
                        "Ce_exponential(ug/mL),Ce_hybrid(ug/mL)")
    assert len(lines) == 62

    now = datetime(2024, 5, 1, 8, 0)
    assert "_compare_" in result.export_filename(now)
    assert any(line.startswith("# Effect-site methods") for line in result.metadata_lines(now))


def test_kind_must_match_payload(standard_patient):
    result = simulate(standard_patient, [DoseEvent(0, 10.0)], duration=10)
    with pytest.raises(InvalidInputError):
        replace(result, kind=ResultKind.EFFECT_SITE_COMPARISON)
    with pytest.raises(InvalidInputError):
        SimulationResult(
            time_points=result.time_points, patient=result.patient, parameters=result.parameters,
            method=result.method, calculated_at=result.calculated_at, plan=result.plan,
            kind=ResultKind.STANDARD,
            comparison=simulate(standard_patient, [DoseEvent(0, 10.0)], duration=10,
                                effect_site_methods="hybrid").comparison,
        )


def test_parse_csv_rejects_empty():
    with pytest.raises(InvalidInputError):
        parse_csv("# only metadata\n")


def test_time_above_thresholds(stepped_result):
    cp = stepped_result.plasma
    assert stepped_result.time_above_plasma(0.0) == 120.0
    assert stepped_result.time_above_plasma(cp.max() + 1.0) == 0.0
    half = 0.5 * cp.max()
    assert stepped_result.time_above_plasma(half) == float(np.sum(cp[:-1] >= half))
    assert stepped_result.time_above_effect_site(0.0) == 120.0

    s = stepped_result.summary()
    assert s["tmax_cp_min"] == stepped_result.time_of_max_plasma()
    assert s["max_ce_ug_ml"] == stepped_result.max_effect_site_concentration()
