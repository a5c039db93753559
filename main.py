import argparse
import datetime
import json
import logging
import re
import sys

from compliance.evaluator import DiagramComplianceEvaluator
from compliance.report import export_compliance_workbook
from core.components import diagram_from_dict, load_context_from_dict
from core.config import EngineConfig
from core.converters import ParseError, convert_length_unit, convert_power_to_amps
from core.models import CircuitSpec, ConductorMaterial, DeratingContext, InsulationRating
from standards.nec_logic import WireSizingSolver


def _value_and_unit(text, default_unit):
    match = re.match(r"([0-9\.]+)\s*([a-zA-Z]*)", text.strip())
    if not match:
        raise ValueError(f"Cannot read {text!r}")
    return float(match.group(1)), match.group(2) or default_unit


def get_circuit_input(config):
    print("\n--- Circuit Data ---")
    voltage = float(input("Voltage (V) [240]: ") or 240)
    phases = 3 if input("Phases (1 or 3) [1]: ").strip() == "3" else 1

    val, unit = _value_and_unit(input("Load (e.g. 40 A, 7.2 KW, 5 HP, 10 KVA): "), "A")
    pf = float(input("Power factor [1.0]: ") or 1.0)
    amps = convert_power_to_amps(val, unit, voltage, phases, pf)
    if amps is None:
        raise ValueError(f"Unknown power unit {unit!r}")

    is_motor = input("Is it a motor? (y/n) [n]: ").lower() == 'y'
    is_cont = False
    if not is_motor:
        is_cont = input("Continuous load (>3h)? (y/n) [n]: ").lower() == 'y'

    material = ConductorMaterial.ALUMINUM if input("Material (1) Copper (2) Aluminum [1]: ").strip() == "2" \
        else ConductorMaterial.COPPER

    print("Conductor temperature rating:")
    print("1. 60°C (TW, UF)")
    print("2. 75°C (THWN, RH...) - Standard")
    print("3. 90°C (THHN, THWN-2, XHHW-2)")
    t_choice = input("Option [2]: ").strip()
    rating = {"1": InsulationRating.TEMP_60, "3": InsulationRating.TEMP_90}.get(t_choice, InsulationRating.TEMP_75)

    try:
        count = int(input("Current-carrying conductors in raceway (NEC 310.15(C)(1)) [3]: ") or 3)
    except ValueError:
        count = 3
    try:
        ambient = float(input(f"Ambient temperature (°C) [{config.default_ambient_c:g}]: ") or config.default_ambient_c)
    except ValueError:
        ambient = config.default_ambient_c

    l_val, l_unit = _value_and_unit(input("One-way length (e.g. 50 ft, 15 m): ") or "0", "ft")
    length_ft = convert_length_unit(l_val, l_unit)

    return CircuitSpec(
        load_amps=amps,
        voltage=voltage,
        length_ft=length_ft,
        material=material,
        insulation_rating=rating,
        max_voltage_drop_percent=config.max_voltage_drop_percent,
        phases=phases,
        derating=DeratingContext(conductor_count=count, ambient_temp_c=ambient,
                                 is_continuous=is_cont, is_motor=is_motor),
    )


def run_size(args, config):
    print("==========================================================")
    print(" NEC WIRE SIZING")
    print("==========================================================")
    solver = WireSizingSolver(config=config)

    while True:
        try:
            circuit = get_circuit_input(config)
        except (ValueError, ParseError) as e:
            print(f"Input error: {e}. Try again.")
            continue

        result = solver.solve(circuit)
        label = solver.table.spec(result.gauge).label
        print("-" * 80)
        print(f"{'Conductor':<12} | {'Ampacity':<9} | {'Required':<9} | {'Breaker':<8} | {'EGC':<6} | {'% VD':<6}")
        print("-" * 80)
        warn = " (!)" if result.voltage_drop_percent > config.max_voltage_drop_percent else ""
        print(f"{label:<12} | {result.ampacity:<9.1f} | {result.required_ampacity:<9.1f} | "
              f"{str(result.breaker_rating or '-'):<8} | {str(result.grounding_conductor or '-'):<6} | "
              f"{result.voltage_drop_percent:<6.2f}{warn}")
        print(result.reference_notes)
        for v in result.violations:
            print(f"  [{v.severity.value.upper()}] {v.code} NEC {v.section}: {v.description}")

        if input("\nSize another circuit? (y/n): ").lower() != 'y':
            break
    return 0


def run_check(args, config):
    with open(args.diagram, encoding="utf-8") as f:
        diagram = diagram_from_dict(json.load(f))
    loads = None
    if args.loads:
        with open(args.loads, encoding="utf-8") as f:
            loads = load_context_from_dict(json.load(f))

    evaluator = DiagramComplianceEvaluator(config=config)
    result = evaluator.evaluate(diagram, loads)

    print(f"Diagram: {diagram.name or diagram.id}")
    print(f"Status:  {result.summary()}")
    print("-" * 100)
    print(f"{'Target':<16} | {'Code':<16} | {'Section':<16} | {'Severity':<8} | {'Description'}")
    print("-" * 100)
    for target, bucket in list(result.component_violations.items()) + list(result.connection_violations.items()):
        for v in bucket:
            print(f"{target:<16} | {v.code:<16} | {v.section:<16} | {v.severity.value:<8} | {v.description}")
    for v in result.system_violations:
        print(f"{'(system)':<16} | {v.code:<16} | {v.section:<16} | {v.severity.value:<8} | {v.description}")
    print("-" * 100)

    if result.recommendations:
        print("\nRecommendations:")
        for rec in result.recommendations:
            print(f" - {rec}")

    if args.excel:
        filename = args.excel
        if filename == "auto":
            filename = f"NEC_Compliance_{datetime.datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
        export_compliance_workbook(result, filename, diagram_name=diagram.name or diagram.id)
        print(f"\n[INFO] Excel report written: {filename}")

    return 0 if result.overall_compliance else 1


def build_parser():
    parser = argparse.ArgumentParser(description="NEC wire sizing and single-line diagram compliance")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("size", help="Size a branch circuit interactively")

    check = sub.add_parser("check", help="Check a diagram JSON file")
    check.add_argument("diagram", help="Diagram snapshot (JSON)")
    check.add_argument("--loads", help="Load calculation summary (JSON)")
    check.add_argument("--excel", nargs="?", const="auto", help="Write an Excel report")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s: %(message)s')
    config = EngineConfig.from_env()

    if args.command == "check":
        try:
            return run_check(args, config)
        except (OSError, ValueError) as e:
            logging.error("Cannot check %s: %s", args.diagram, e)
            return 2
    return run_size(args, config)


if __name__ == "__main__":
    sys.exit(main())
