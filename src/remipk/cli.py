# src/remipk/cli.py
"""
Command-line front end.

    remipk simulate scenario.json -o out.csv --compare all
    remipk parameters scenario.json

A scenario file looks like

    {
      "patient": {"id": "P001", "age": 54, "weight_kg": 67.3, "height_cm": 170,
                  "sex": "male", "asa_class": "I-II", "anesthesia_start": "2024-05-01T08:00"},
      "doses": [
        {"time_min": 0, "bolus_mg": 12},
        {"clock": "08:05", "continuous_mg_kg_h": 1.0}
      ],
      "duration": 180
    }

Doses give either time_min (elapsed minutes) or clock (HH:MM, placed on the
anesthesia start date and rolled to the next day when it falls before it).
"""
import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .clock import ClockTranslator
from .config import IntegrationMethod
from .errors import InvalidInputError, RemiPKError
from .logutil import get_logger, setup_logging
from .parameters import compute_pk_parameters
from .simulate import simulate
from .types import AsaClass, DoseEvent, Patient, Sex
from .validation import review_schedule, validate_patient

logger = get_logger(__name__)

_SEX = {"male": Sex.MALE, "m": Sex.MALE, "0": Sex.MALE,
        "female": Sex.FEMALE, "f": Sex.FEMALE, "1": Sex.FEMALE}
_ASA = {"i-ii": AsaClass.CLASS_1_2, "1-2": AsaClass.CLASS_1_2, "0": AsaClass.CLASS_1_2,
        "iii-iv": AsaClass.CLASS_3_4, "3-4": AsaClass.CLASS_3_4, "1": AsaClass.CLASS_3_4}


def load_scenario(path) -> tuple[Patient, list[DoseEvent], Optional[float]]:
    """Read a scenario JSON file into (patient, dose events, duration)."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return parse_scenario(data)


def parse_scenario(data: dict) -> tuple[Patient, list[DoseEvent], Optional[float]]:
    try:
        patient = _parse_patient(data["patient"])
        clock = ClockTranslator(patient.anesthesia_start)
        events = [_parse_dose(d, clock) for d in data.get("doses", [])]
    except KeyError as exc:
        raise InvalidInputError(f"Scenario is missing field {exc.args[0]!r}") from exc
    duration = data.get("duration")
    return patient, events, None if duration is None else float(duration)


def _parse_patient(p: dict) -> Patient:
    sex = _lookup(_SEX, p.get("sex", "male"), "sex")
    asa = _lookup(_ASA, p.get("asa_class", "I-II"), "asa_class")
    start = p.get("anesthesia_start")
    kwargs = {}
    if start is not None:
        try:
            kwargs["anesthesia_start"] = datetime.fromisoformat(start)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"anesthesia_start must be ISO 8601 (got {start!r})") from exc
    return Patient(id=str(p["id"]), age=p["age"], weight_kg=p["weight_kg"], height_cm=p["height_cm"],
                   sex=sex, asa_class=asa, **kwargs)


def _parse_dose(d: dict, clock: ClockTranslator) -> DoseEvent:
    if "time_min" in d:
        t = d["time_min"]
    elif "clock" in d:
        t = clock.clock_string_to_minutes(d["clock"])
    else:
        raise InvalidInputError(f"Dose {d!r} needs time_min or clock")
    return DoseEvent(time_min=t, bolus_mg=d.get("bolus_mg", 0.0),
                     continuous_mg_kg_h=d.get("continuous_mg_kg_h", 0.0))


def _lookup(table: dict, value, name: str):
    key = str(value).strip().lower()
    if key not in table:
        raise InvalidInputError(f"Unknown {name} {value!r}")
    return table[key]


def cmd_simulate(args) -> int:
    patient, events, duration = load_scenario(args.scenario)
    if args.duration is not None:
        duration = args.duration

    for msg in validate_patient(patient).messages + review_schedule(events).messages:
        logger.warning(msg)

    result = simulate(patient, events, duration, method=args.method, effect_site_methods=args.compare)
    summary = result.summary()
    logger.info("Max Cp %.3f ug/mL at %.0f min, max Ce %.3f ug/mL at %.0f min",
                summary["max_cp_ug_ml"], summary["tmax_cp_min"],
                summary["max_ce_ug_ml"], summary["tmax_ce_min"])

    csv_text = result.comparison.to_csv(result.formats) if result.comparison is not None else result.to_csv()
    if args.output:
        out = Path(args.output)
        if out.is_dir():
            out = out / result.export_filename()
        out.write_text("\n".join(result.metadata_lines() + [csv_text]) + "\n", encoding="utf-8")
        print(out)
    else:
        print(csv_text)
    return 0


def cmd_parameters(args) -> int:
    patient, _, _ = load_scenario(args.scenario)
    params = compute_pk_parameters(patient)
    print(json.dumps(params.as_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="remipk", description="Remimazolam PK/PD simulator")
    parser.add_argument("--log-level", default="WARNING", type=str.upper,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="Simulate a scenario file and print or write CSV")
    sim.add_argument("scenario", help="Path to scenario JSON")
    sim.add_argument("-o", "--output", help="CSV file or directory to write")
    sim.add_argument("--duration", type=float, help="End of the simulation in minutes")
    sim.add_argument("--method", choices=[m.value for m in IntegrationMethod], default=None,
                     help="Integration method (default: lsoda)")
    sim.add_argument("--compare", choices=["discrete", "exponential", "hybrid", "all"], default=None,
                     help="Also compute alternative effect-site estimates")
    sim.set_defaults(func=cmd_simulate)

    par = sub.add_parser("parameters", help="Print the patient's PK parameters as JSON")
    par.add_argument("scenario", help="Path to scenario JSON")
    par.set_defaults(func=cmd_parameters)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    try:
        return args.func(args)
    except (RemiPKError, OSError, json.JSONDecodeError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
