import logging
import math
from typing import List, Optional, Tuple

from core.config import DEFAULT_CONFIG, EngineConfig
from core.converters import ParseError, parse_wire_size
from core.models import CircuitSpec, ConductorMaterial, InsulationRating, Severity, Violation, WireSizingResult
from standards.derating import adjusted_load, derate
from standards.nec_tables import (DEFAULT_TABLE, RESISTIVITY_K, ConductorSpec, ConductorTable,
                                  grounding_conductor_for, next_standard_breaker)

logger = logging.getLogger(__name__)

# NEC 210.19 / 240.4(D): smallest conductor on a 240V branch circuit above 15A
MIN_SIZE_240V = "12"
MIN_SIZE_240V_LOAD = 15.0
# Aluminum below this size is permitted but flagged (NEC 310.106)
MIN_ALUMINUM_BRANCH_SIZE = "10"


class WireSizingSolver:
    """Smallest standard conductor meeting derated ampacity and voltage drop.

    Never raises for bad circuit data: the caller always gets a usable
    (possibly non-compliant) result.
    """

    def __init__(self, table: ConductorTable = DEFAULT_TABLE, config: EngineConfig = DEFAULT_CONFIG):
        self.table = table
        self.config = config

    # ------------------------------------------------------------------
    # Formulas
    # ------------------------------------------------------------------
    def voltage_drop(self, gauge: str, circuit: CircuitSpec) -> Tuple[float, float]:
        """Returns (volts, percent). Vdrop = k * K * I * L / CM"""
        spec = self.table.spec(gauge)
        k = math.sqrt(3) if circuit.phases == 3 else 2.0
        vd_volts = (k * RESISTIVITY_K[circuit.material] * circuit.load_amps * circuit.length_ft) / spec.circular_mils
        vd_percent = (vd_volts / circuit.voltage) * 100.0
        return vd_volts, vd_percent

    def required_load(self, circuit: CircuitSpec) -> float:
        return adjusted_load(circuit.load_amps, circuit.derating.is_continuous, circuit.derating.is_motor)

    def _min_size_applies(self, circuit: CircuitSpec) -> bool:
        return circuit.voltage == 240 and circuit.load_amps > MIN_SIZE_240V_LOAD

    def _input_violations(self, circuit: CircuitSpec) -> List[Violation]:
        fields = (
            ("nominal voltage", circuit.voltage),
            ("load current", circuit.load_amps),
            ("run length", circuit.length_ft),
            ("maximum voltage drop", circuit.max_voltage_drop_percent),
        )
        problems = [f"{name} must be a finite number (got {value})"
                    for name, value in fields if value is None or not math.isfinite(value)]
        if not problems:
            if circuit.voltage <= 0:
                problems.append(f"nominal voltage must be positive (got {circuit.voltage})")
            if circuit.load_amps < 0:
                problems.append(f"load current cannot be negative (got {circuit.load_amps})")
            if circuit.length_ft < 0:
                problems.append(f"run length cannot be negative (got {circuit.length_ft})")
        return [Violation(
            code="INPUT-002",
            section="310.15",
            description=f"Circuit cannot be sized: {p}",
            severity=Severity.ERROR,
            remediation="Correct the circuit's electrical parameters",
        ) for p in problems]

    # ------------------------------------------------------------------
    # Solve
    # ------------------------------------------------------------------
    def solve(self, circuit: CircuitSpec) -> WireSizingResult:
        bad_input = self._input_violations(circuit)
        if bad_input:
            largest = self.table.largest()
            return WireSizingResult(
                gauge=largest.gauge, ampacity=0.0, voltage_drop=0.0, voltage_drop_percent=0.0,
                violations=tuple(bad_input), is_compliant=False,
            )

        i_req = self.required_load(circuit)
        min_size = self._min_size_applies(circuit)
        # A drop above the critical limit is an error whatever the circuit allows
        vd_limit = min(circuit.max_voltage_drop_percent, self.config.critical_voltage_drop_percent)

        for spec in self.table:
            if min_size and self.table.compare(spec.gauge, MIN_SIZE_240V) < 0:
                continue

            base = spec.ampacity_for(circuit.material, circuit.insulation_rating)
            derating = derate(base, circuit.derating, circuit.insulation_rating)

            # CHECK 1: Derated ampacity vs adjusted load
            if derating.derated_ampacity < i_req:
                continue

            # CHECK 2: Voltage drop at actual load current
            vd, vd_pct = self.voltage_drop(spec.gauge, circuit)
            if vd_pct > vd_limit:
                continue

            residual = self._conductor_violations(circuit, spec.gauge, best=None)
            return self._result(circuit, spec, derating, vd, vd_pct, residual,
                                compliant=not any(v.is_error for v in residual))

        # Nothing qualifies: hand back the largest conductor, flagged
        largest = self.table.largest()
        base = largest.ampacity_for(circuit.material, circuit.insulation_rating)
        derating = derate(base, circuit.derating, circuit.insulation_rating)
        vd, vd_pct = self.voltage_drop(largest.gauge, circuit)
        residual = self._conductor_violations(circuit, largest.gauge, best=None)
        residual.append(Violation(
            code="WIRE-007",
            section="310.15",
            description=(f"No standard conductor up to {largest.label} satisfies {i_req:.1f}A "
                         f"with {circuit.max_voltage_drop_percent}% maximum voltage drop"),
            severity=Severity.ERROR,
            remediation="Use parallel conductors, shorten the run or reduce the load",
            calculation={"requiredLoad": i_req, "largestGauge": largest.gauge,
                         "deratedAmpacity": derating.derated_ampacity, "voltageDropPercent": vd_pct},
        ))
        logger.debug("Wire sizing exhausted table for %.1fA at %sV over %sft", i_req, circuit.voltage, circuit.length_ft)
        return self._result(circuit, largest, derating, vd, vd_pct, residual, compliant=False)

    def _result(self, circuit, spec: ConductorSpec, derating, vd, vd_pct, violations, compliant) -> WireSizingResult:
        i_req = self.required_load(circuit)
        breaker = next_standard_breaker(i_req)
        cable_type_str = {
            InsulationRating.TEMP_60: "TW/UF (60°C)",
            InsulationRating.TEMP_75: "THWN (75°C)",
            InsulationRating.TEMP_90: "THHN/THWN-2 (90°C)",
        }[circuit.insulation_rating]
        return WireSizingResult(
            gauge=spec.gauge,
            ampacity=derating.derated_ampacity,
            voltage_drop=vd,
            voltage_drop_percent=vd_pct,
            violations=tuple(violations),
            is_compliant=compliant,
            base_ampacity=derating.base_ampacity,
            derating_factor=derating.total_factor,
            required_ampacity=i_req,
            breaker_rating=breaker,
            grounding_conductor=grounding_conductor_for(breaker) if breaker else None,
            reference_notes=(f"Type: {cable_type_str} {circuit.material.value} | Derating: {derating.total_factor:.2f} "
                             f"(Temp {derating.ambient_factor} * Grp {derating.conductor_count_factor})"),
        )

    # ------------------------------------------------------------------
    # Check an assigned conductor
    # ------------------------------------------------------------------
    def check_conductor(self, circuit: CircuitSpec, wire_size) -> List[Violation]:
        """Violations for a conductor already drawn on the diagram."""
        try:
            gauge = parse_wire_size(wire_size)
        except ParseError as e:
            return [Violation(
                code="INPUT-001",
                section="310.15",
                description=f"Invalid wire size: {e}",
                severity=Severity.ERROR,
                remediation="Specify a standard NEC wire size (14 AWG through 500 kcmil)",
            )]
        if not self.table.contains(gauge):
            return [Violation(
                code="WIRE-001",
                section="310.15",
                description=f"Invalid wire size: {gauge}",
                severity=Severity.ERROR,
                remediation=f"Use standard NEC wire sizes ({self.table.gauges()[0]} AWG through {self.table.largest().label})",
            )]

        bad_input = self._input_violations(circuit)
        if bad_input:
            return bad_input
        return self._conductor_violations(circuit, gauge, best=self.solve(circuit))

    def _conductor_violations(self, circuit: CircuitSpec, gauge: str, best: Optional[WireSizingResult]) -> List[Violation]:
        violations = []
        spec = self.table.spec(gauge)
        i_req = self.required_load(circuit)
        base = spec.ampacity_for(circuit.material, circuit.insulation_rating)
        derating = derate(base, circuit.derating, circuit.insulation_rating)

        if best is not None and best.is_compliant:
            size_hint = f"Use minimum {self.table.spec(best.gauge).label} {circuit.material.value} conductor"
        else:
            size_hint = "No single standard conductor qualifies; use parallel conductors or reduce the load"

        # NEC 210.19 - ampacity after derating
        if derating.derated_ampacity < i_req:
            violations.append(Violation(
                code="WIRE-003",
                section="210.19",
                description=f"Wire ampacity ({derating.derated_ampacity:.1f}A) insufficient for load ({i_req:.1f}A)",
                severity=Severity.ERROR,
                remediation=size_hint,
                calculation={
                    "baseAmpacity": base,
                    "conductorDerate": derating.conductor_count_factor,
                    "tempDerate": derating.ambient_factor,
                    "deratedAmpacity": derating.derated_ampacity,
                    "requiredLoad": i_req,
                },
            ))

        # NEC 110.14(C)
        if circuit.insulation_rating is InsulationRating.TEMP_60 and circuit.load_amps > 100:
            violations.append(Violation(
                code="WIRE-004",
                section="110.14",
                description="60°C rated wire not recommended for loads over 100A",
                severity=Severity.WARNING,
                remediation="Use 75°C or 90°C rated wire",
                calculation={"load": circuit.load_amps, "limit": 100},
            ))

        if self._min_size_applies(circuit) and self.table.compare(gauge, MIN_SIZE_240V) < 0:
            violations.append(Violation(
                code="WIRE-005",
                section="210.19",
                description=f"{spec.label} wire not permitted for 240V circuits over {MIN_SIZE_240V_LOAD:.0f}A",
                severity=Severity.ERROR,
                remediation=f"Use minimum {MIN_SIZE_240V} AWG wire for 240V circuits",
                calculation={"gauge": gauge, "minimumGauge": MIN_SIZE_240V, "load": circuit.load_amps},
            ))

        if circuit.material is ConductorMaterial.ALUMINUM and self.table.compare(gauge, MIN_ALUMINUM_BRANCH_SIZE) < 0:
            violations.append(Violation(
                code="WIRE-006",
                section="310.106",
                description="Aluminum wire smaller than 10 AWG not recommended for branch circuits",
                severity=Severity.WARNING,
                remediation="Use copper wire for branch circuits 12 AWG and smaller",
                calculation={"gauge": gauge},
            ))

        vd, vd_pct = self.voltage_drop(gauge, circuit)
        vd_calc = {
            "voltageDrop": vd,
            "voltageDropPercent": vd_pct,
            "maxDropPercent": circuit.max_voltage_drop_percent,
            "distance": circuit.length_ft,
            "load": circuit.load_amps,
        }
        if vd_pct > circuit.max_voltage_drop_percent:
            hint = f"Consider {self.table.spec(best.gauge).label}" if best is not None and best.is_compliant else "Consider parallel conductors"
            violations.append(Violation(
                code="VD-001",
                section="210.19",
                description=f"Voltage drop ({vd_pct:.2f}%) exceeds {circuit.max_voltage_drop_percent}% limit",
                severity=Severity.WARNING,
                remediation=f"Use larger wire size or reduce circuit length. {hint}",
                calculation=vd_calc,
            ))
        if vd_pct > self.config.critical_voltage_drop_percent:
            violations.append(Violation(
                code="VD-002",
                section="210.19",
                description=f"Excessive voltage drop ({vd_pct:.2f}%) may cause equipment malfunction",
                severity=Severity.ERROR,
                remediation="Increase wire size significantly or relocate equipment closer to source",
                calculation=vd_calc,
            ))

        return violations


DEFAULT_SOLVER = WireSizingSolver()


def solve_wire_size(circuit: CircuitSpec) -> WireSizingResult:
    return DEFAULT_SOLVER.solve(circuit)
