"""NEC rule base for single-line diagrams.

Each rule checks one requirement across the whole diagram and tags its
violations with the component / connection ids they concern.

Violation codes:
    INPUT-001..003   unreadable diagram data (reported by the evaluator)
    WIRE-001..007    conductor sizing (standards.nec_logic)
    VD-001..002      voltage drop (standards.nec_logic)
    NEC-<art>-<sec>-NNN  rule findings below
"""

from typing import Optional, Tuple

from core.components import (EMERGENCY_SOURCE_TYPES, EVSE_TYPES, INVERTER_TYPES, PANEL_TYPES,
                             POWER_CONNECTION_TYPES, SERVICE_DISCONNECT_TYPES, BREAKER_TYPES)
from core.converters import ParseError, parse_amps, parse_wire_size
from core.models import CircuitSpec, ConductorMaterial, DeratingContext, LoadContext, RuleCategory, Severity
from core.rules import ValidationRule
from core.specs import infer_circuit, parse_component_spec, wire_size_of
from standards.derating import CONTINUOUS_LOAD_FACTOR, derated_ampacity
from standards.nec_logic import WireSizingSolver
from standards.nec_tables import BREAKER_RATINGS, next_standard_breaker

GROUNDING_ELECTRODE_TYPE = "grounding_electrode"
RAPID_SHUTDOWN_TYPES = ("rapid_shutdown", "rapid_shutdown_device")
TRANSFER_SWITCH_TYPES = ("transfer_switch", "ats", "automatic_transfer_switch")
DIRECTORY_PANEL_TYPES = ("main_panel", "sub_panel")

MIN_WORKING_SPACE_IN = 36        # 0-150V to ground, condition 1
INTERCONNECTION_LIMIT = 1.2      # 120% of busbar
DEFAULT_EVSE_VOLTAGE = 240.0     # Level 2


# ---------------------------------------------------------------------------
# Component rules
# ---------------------------------------------------------------------------
class ServiceDisconnectRule(ValidationRule):
    id = "service-disconnect-required"
    title = "Service Disconnect Location"
    section = "230.70"
    category = RuleCategory.COMPONENT

    def evaluate(self, diagram, loads=None):
        if diagram.components_of(*SERVICE_DISCONNECT_TYPES):
            return []
        return [self.violation(
            "NEC-230-70-001",
            "Service disconnect is required and must be readily accessible",
            remediation="Add service disconnect component to diagram",
        )]


class BreakerStandardRatingRule(ValidationRule):
    id = "breaker-standard-ratings"
    title = "Circuit Breaker Standard Ratings"
    section = "240.6(A)"
    category = RuleCategory.COMPONENT

    def evaluate(self, diagram, loads=None):
        violations = []
        for component in diagram.components_of(*BREAKER_TYPES):
            spec, _ = parse_component_spec(component)
            rating = spec.rating_amps
            if not rating or rating <= 0:
                continue
            if rating not in BREAKER_RATINGS:
                nearest = next_standard_breaker(rating)
                violations.append(self.violation(
                    "NEC-240-6-001",
                    f"Non-standard breaker rating: {rating:g}A",
                    remediation=(f"Use the standard {nearest}A rating" if nearest
                                 else "Use a standard ampere rating closest to calculated load"),
                    calculation={"currentValue": rating, "requiredValue": nearest},
                    component_ids=(component.id,),
                ))
        return violations


class WorkingSpaceRule(ValidationRule):
    id = "panel-working-space"
    title = "Working Space Requirements"
    section = "110.26(A)"
    category = RuleCategory.COMPONENT

    def evaluate(self, diagram, loads=None):
        violations = []
        for component in diagram.components_of(*PANEL_TYPES):
            spec, _ = parse_component_spec(component)
            clearance = getattr(spec, "front_clearance_in", None)
            if clearance is None:
                continue
            if spec.voltage is not None and spec.voltage <= 50:
                continue
            if clearance < MIN_WORKING_SPACE_IN:
                violations.append(self.violation(
                    "NEC-110-26-001",
                    f"{component.name or component.type} has {clearance:g} in of working space (minimum {MIN_WORKING_SPACE_IN} in)",
                    remediation="Provide at least 3 feet of clear working space in front of the equipment",
                    calculation={"currentValue": clearance, "requiredValue": MIN_WORKING_SPACE_IN},
                    component_ids=(component.id,),
                ))
        return violations


class CircuitDirectoryRule(ValidationRule):
    id = "panel-circuit-directory"
    title = "Circuit Directory Required"
    section = "408.36"
    category = RuleCategory.COMPONENT
    default_severity = Severity.WARNING

    def evaluate(self, diagram, loads=None):
        violations = []
        for component in diagram.components_of(*DIRECTORY_PANEL_TYPES):
            spec, _ = parse_component_spec(component)
            if not spec.circuit_directory:
                violations.append(self.violation(
                    "NEC-408-36-001",
                    f"{component.name or component.type} has no circuit directory",
                    remediation="Provide a legible circuit directory identifying each circuit",
                    component_ids=(component.id,),
                ))
        return violations


# ---------------------------------------------------------------------------
# Connection rules
# ---------------------------------------------------------------------------
class EVSEContinuousLoadRule(ValidationRule):
    id = "evse-continuous-load"
    title = "EVSE Continuous Load Factor"
    section = "625.17"
    category = RuleCategory.CONNECTION

    def __init__(self, solver: WireSizingSolver):
        self.solver = solver

    def _nameplate_circuit(self, rating: float, voltage: Optional[float]) -> CircuitSpec:
        config = self.solver.config
        return CircuitSpec(
            load_amps=rating,
            voltage=voltage or DEFAULT_EVSE_VOLTAGE,
            length_ft=config.default_run_length_ft,
            material=config.default_material,
            insulation_rating=config.default_rating,
            max_voltage_drop_percent=config.max_voltage_drop_percent,
            derating=DeratingContext(
                conductor_count=config.default_conductor_count,
                ambient_temp_c=config.default_ambient_c,
                is_continuous=True,
            ),
        )

    def _conductor_ampacity(self, connection, circuit) -> Optional[float]:
        raw = wire_size_of(connection)
        if raw is not None:
            try:
                gauge = parse_wire_size(raw)
            except ParseError:
                return None
            if not self.solver.table.contains(gauge):
                return None
            base = self.solver.table.ampacity(gauge, circuit.material, circuit.insulation_rating)
            return derated_ampacity(base, circuit.derating, circuit.insulation_rating)
        declared = connection.spec("ampacity")
        if declared in (None, ""):
            return None
        try:
            return parse_amps(declared)
        except ParseError:
            return None

    def evaluate(self, diagram, loads=None):
        violations = []
        for evse in diagram.components_of(*EVSE_TYPES):
            spec, _ = parse_component_spec(evse)
            rating = spec.load_current
            if not rating or rating <= 0:
                continue
            required = rating * CONTINUOUS_LOAD_FACTOR

            for connection in diagram.connections_for(evse.id):
                if connection.type not in POWER_CONNECTION_TYPES:
                    continue
                circuit, _ = infer_circuit(diagram, connection, self.solver.config)
                if circuit is None:
                    circuit = self._nameplate_circuit(rating, spec.voltage)
                ampacity = self._conductor_ampacity(connection, circuit)
                if ampacity is None or ampacity >= required:
                    continue

                best = self.solver.solve(circuit)
                if best.is_compliant:
                    remediation = (f"Increase wire size to minimum {self.solver.table.spec(best.gauge).label} "
                                   f"to handle {required:.0f}A continuous load")
                else:
                    remediation = f"Use parallel conductors rated for {required:.0f}A continuous load"
                violations.append(self.violation(
                    "NEC-625-17-001",
                    f"EVSE circuit requires 125% continuous load factor: {required:.0f}A minimum, conductor rated {ampacity:.1f}A",
                    remediation=remediation,
                    calculation={"currentValue": ampacity, "requiredValue": required,
                                 "nameplateCurrent": rating, "minimumGauge": best.gauge},
                    component_ids=(evse.id,),
                    connection_ids=(connection.id,),
                ))
        return violations


class WireColorCodingRule(ValidationRule):
    id = "wire-color-coding"
    title = "Wire Color Coding Standards"
    section = "200.6"
    category = RuleCategory.CONNECTION
    default_severity = Severity.WARNING

    def evaluate(self, diagram, loads=None):
        violations = []
        for connection in diagram.connections:
            if connection.type == "ground":
                marking = " ".join(str(connection.spec(k, "")) for k in ("color", "identification", "material")).lower()
                if "green" not in marking and "bare" not in marking:
                    violations.append(self.violation(
                        "NEC-200-6-001",
                        "Ground wires should be identified with green color coding",
                        remediation="Add green color identification for grounding conductors",
                        connection_ids=(connection.id,),
                    ))
            elif connection.type == "power" and (connection.voltage or 0) >= 480:
                if not connection.spec("phaseIdentification") and not connection.spec("colorCode"):
                    violations.append(self.violation(
                        "NEC-200-6-002",
                        "High voltage circuits require proper phase identification",
                        remediation="Add phase color coding (brown/orange/yellow for 480V)",
                        connection_ids=(connection.id,),
                    ))
        return violations


class GroundingElectrodeConductorRule(ValidationRule):
    id = "grounding-electrode-conductor-size"
    title = "Grounding Electrode Conductor Size"
    section = "250.66"
    category = RuleCategory.CONNECTION

    MIN_SIZE = {ConductorMaterial.COPPER: "8", ConductorMaterial.ALUMINUM: "6"}

    def __init__(self, solver: WireSizingSolver):
        self.table = solver.table

    def evaluate(self, diagram, loads=None):
        violations = []
        electrodes = {c.id for c in diagram.components_of(GROUNDING_ELECTRODE_TYPE)}
        for connection in diagram.connections:
            if connection.type != "ground":
                continue
            if connection.from_id not in electrodes and connection.to_id not in electrodes:
                continue
            raw = wire_size_of(connection)
            try:
                gauge = parse_wire_size(raw)
            except ParseError:
                continue
            if not self.table.contains(gauge):
                continue
            material = ConductorMaterial.ALUMINUM if "alum" in str(connection.spec("material", "")).lower() else ConductorMaterial.COPPER
            minimum = self.MIN_SIZE[material]
            if self.table.compare(gauge, minimum) < 0:
                violations.append(self.violation(
                    "NEC-250-66-001",
                    f"Grounding electrode conductor {gauge} AWG is smaller than {minimum} AWG {material.value}",
                    remediation=f"Use minimum {minimum} AWG {material.value} grounding electrode conductor",
                    calculation={"currentValue": gauge, "requiredValue": minimum},
                    connection_ids=(connection.id,),
                ))
        return violations


# ---------------------------------------------------------------------------
# System rules
# ---------------------------------------------------------------------------
class GroundingElectrodeRule(ValidationRule):
    id = "grounding-electrode-required"
    title = "Grounding Electrode System"
    section = "250.50"
    category = RuleCategory.SYSTEM

    def evaluate(self, diagram, loads=None):
        if diagram.components_of(GROUNDING_ELECTRODE_TYPE):
            return []
        return [self.violation(
            "NEC-250-50-001",
            "Grounding electrode system is required for all electrical services",
            remediation="Add grounding electrode component (rod, plate, or concrete-encased electrode)",
        )]


class RapidShutdownRule(ValidationRule):
    id = "solar-rapid-shutdown"
    title = "Solar PV Rapid Shutdown"
    section = "690.12"
    category = RuleCategory.SYSTEM
    default_severity = Severity.WARNING

    def evaluate(self, diagram, loads=None):
        arrays = diagram.components_of("pv_array")
        if not arrays:
            return []
        for component in diagram.components:
            if component.type in RAPID_SHUTDOWN_TYPES:
                return []
            spec, _ = parse_component_spec(component)
            if spec.rapid_shutdown:
                return []
        return [self.violation(
            "NEC-690-12-001",
            "PV systems require rapid shutdown devices or system",
            remediation="Add rapid shutdown device or verify system compliance with NEC 690.12",
            component_ids=tuple(a.id for a in arrays),
        )]


class InterconnectionRule(ValidationRule):
    id = "solar-120-percent-rule"
    title = "Solar 120% Interconnection Rule"
    section = "705.12(B)(3)(2)"
    category = RuleCategory.SYSTEM

    def evaluate(self, diagram, loads=None):
        inverters = [parse_component_spec(c)[0] for c in diagram.components_of(*INVERTER_TYPES)]
        if not inverters:
            return []
        solar_breakers = sum(inv.ocpd_amps for inv in inverters)

        violations = []
        for panel in diagram.components_of("main_panel"):
            spec, _ = parse_component_spec(panel)
            max_allowed = spec.bus_rating_amps * INTERCONNECTION_LIMIT
            total = spec.main_ocpd_amps + solar_breakers
            if total > max_allowed:
                headroom = max(0.0, max_allowed - spec.main_ocpd_amps)
                violations.append(self.violation(
                    "NEC-705-12-001",
                    f"Solar interconnection exceeds 120% rule: {total:g}A > {max_allowed:g}A",
                    remediation=(f"Reduce solar breakers to {headroom:g}A total, derate the main breaker "
                                 f"or upgrade the busbar"),
                    calculation={"currentValue": total, "requiredValue": max_allowed,
                                 "busRating": spec.bus_rating_amps, "mainBreaker": spec.main_ocpd_amps,
                                 "solarBreakers": solar_breakers},
                    component_ids=(panel.id,) + tuple(inv.component_id for inv in inverters),
                ))
        return violations


class EmergencyTransferRule(ValidationRule):
    id = "emergency-transfer-switch"
    title = "Emergency Source Requirements"
    section = "700.12"
    category = RuleCategory.SYSTEM

    def evaluate(self, diagram, loads=None):
        sources = [c for c in diagram.components_of(*EMERGENCY_SOURCE_TYPES)
                   if parse_component_spec(c)[0].emergency]
        if not sources or diagram.components_of(*TRANSFER_SWITCH_TYPES):
            return []
        return [self.violation(
            "NEC-700-12-001",
            "Emergency systems require automatic transfer equipment",
            remediation="Add an automatic transfer switch between the emergency source and emergency loads",
            component_ids=tuple(c.id for c in sources),
        )]


class ServiceCapacityRule(ValidationRule):
    id = "service-capacity"
    title = "Service Capacity"
    section = "230.42"
    category = RuleCategory.SYSTEM
    default_severity = Severity.WARNING

    def evaluate(self, diagram, loads: Optional[LoadContext] = None):
        if loads is None or loads.total_load_amps <= 0:
            return []
        service = loads.service_rating_amps
        if service is None:
            panels = diagram.components_of("main_panel")
            if not panels:
                return []
            service = parse_component_spec(panels[0])[0].bus_rating_amps
        if loads.total_load_amps <= service:
            return []
        return [self.violation(
            "NEC-230-42-001",
            f"Total calculated load ({loads.total_load_amps:.1f}A) exceeds the {service:g}A service",
            remediation="Consider upgrading electrical service or implementing load management",
            calculation={"currentValue": loads.total_load_amps, "requiredValue": service},
        )]


def build_rule_base(solver: WireSizingSolver) -> Tuple[ValidationRule, ...]:
    """The ordered rule base. Order only affects the order violations are reported in."""
    return (
        ServiceDisconnectRule(),
        BreakerStandardRatingRule(),
        WorkingSpaceRule(),
        CircuitDirectoryRule(),
        EVSEContinuousLoadRule(solver),
        WireColorCodingRule(),
        GroundingElectrodeConductorRule(solver),
        GroundingElectrodeRule(),
        RapidShutdownRule(),
        InterconnectionRule(),
        EmergencyTransferRule(),
        ServiceCapacityRule(),
    )
