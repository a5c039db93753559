"""Typed views of component specification maps.

Diagrams arrive with free-form string-keyed specifications. Each component is
parsed once into the variant for its type; values that cannot be read become
input-shape violations instead of exceptions, and the field is left unset.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from .components import (BREAKER_TYPES, EMERGENCY_SOURCE_TYPES, EVSE_TYPES, INVERTER_TYPES, MOTOR_TYPES,
                         PANEL_TYPES, POWER_CONNECTION_TYPES, Diagram, DiagramComponent, DiagramConnection)
from .config import DEFAULT_CONFIG, EngineConfig
from .converters import (ParseError, convert_power_to_amps, parse_amps, parse_bool, parse_length_ft,
                         parse_number, parse_temperature_rating, parse_voltage)
from .models import (CircuitSpec, ConductorMaterial, DeratingContext, InsulationRating, Severity,
                     Violation)

DEFAULT_BUS_RATING = 200.0


@dataclass(frozen=True)
class ComponentSpec:
    component_id: str
    kind: str
    rating_amps: Optional[float] = None
    voltage: Optional[float] = None
    current: Optional[float] = None
    rapid_shutdown: bool = False
    continuous: bool = False
    motor: bool = False

    @property
    def load_current(self) -> Optional[float]:
        return self.current if self.current is not None else self.rating_amps


@dataclass(frozen=True)
class GenericSpec(ComponentSpec):
    pass


@dataclass(frozen=True)
class BreakerSpec(ComponentSpec):
    pass


@dataclass(frozen=True)
class PanelSpec(ComponentSpec):
    bus_rating_amps: float = DEFAULT_BUS_RATING
    main_breaker_amps: Optional[float] = None
    front_clearance_in: Optional[float] = None
    circuit_directory: bool = False

    @property
    def main_ocpd_amps(self) -> float:
        # Main breaker typically equals the bus rating
        return self.main_breaker_amps if self.main_breaker_amps is not None else self.bus_rating_amps


@dataclass(frozen=True)
class InverterSpec(ComponentSpec):
    breaker_amps: Optional[float] = None

    @property
    def ocpd_amps(self) -> float:
        if self.breaker_amps is not None:
            return self.breaker_amps
        return self.rating_amps or 0.0


@dataclass(frozen=True)
class EVSESpec(ComponentSpec):
    continuous: bool = True         # NEC 625.41


@dataclass(frozen=True)
class PVArraySpec(ComponentSpec):
    pass


@dataclass(frozen=True)
class EmergencySourceSpec(ComponentSpec):
    emergency: bool = False


@dataclass(frozen=True)
class MotorSpec(ComponentSpec):
    motor: bool = True


class _SpecReader:
    def __init__(self, component: DiagramComponent):
        self.component = component
        self.violations: List[Violation] = []

    def read(self, keys: Tuple[str, ...], parser: Callable[[Any], Any], code: str = "INPUT-002") -> Any:
        for key in keys:
            raw = self.component.spec(key)
            if raw is None or raw == "":
                continue
            try:
                return parser(raw)
            except ParseError as e:
                self.reject(key, raw, e, code)
                return None
        return None

    def reject(self, key: str, raw: Any, error: Any, code: str = "INPUT-002") -> None:
        self.violations.append(Violation(
            code=code,
            section="110.3(B)",
            description=f"{self.component.name or self.component.type} has unreadable '{key}': {error}",
            severity=Severity.ERROR,
            remediation=f"Enter a valid value for '{key}'",
            calculation={"field": key, "value": str(raw)},
            component_ids=(self.component.id,),
        ))

    def flag(self, *keys: str) -> bool:
        value = self.read(keys, parse_bool, code="INPUT-003")
        return bool(value)


def _power_current(reader: _SpecReader, voltage: Optional[float]) -> Optional[float]:
    raw = reader.component.spec("power")
    if raw is None or raw == "" or not voltage:
        return None
    try:
        value = parse_number(raw)
    except ParseError:
        return reader.read(("power",), parse_number, code="INPUT-003")
    unit = str(raw).strip().lstrip("0123456789.+- ") or "W"
    phases = reader.read(("phases",), parse_number, code="INPUT-003") or 1
    pf = reader.read(("powerFactor",), parse_number, code="INPUT-003") or 1.0
    amps = convert_power_to_amps(value, unit, voltage, int(phases), pf)
    if amps is None:
        reader.reject("power", raw, f"unknown power unit {unit!r}")
    return amps


def parse_component_spec(component: DiagramComponent) -> Tuple[ComponentSpec, List[Violation]]:
    reader = _SpecReader(component)

    common = dict(
        component_id=component.id,
        kind=component.type,
        rating_amps=reader.read(("rating",), parse_amps),
        voltage=reader.read(("voltage",), parse_voltage),
        rapid_shutdown=reader.flag("rapidShutdown") or "rapid shutdown" in component.name.lower(),
    )
    current = reader.read(("current", "amps"), parse_amps)
    if current is None:
        current = _power_current(reader, common["voltage"])
    common["current"] = current

    t = component.type
    if t in BREAKER_TYPES:
        spec = BreakerSpec(continuous=reader.flag("continuous"), **common)
    elif t in PANEL_TYPES:
        bus = reader.read(("busRating",), parse_amps)
        spec = PanelSpec(
            bus_rating_amps=bus or common["rating_amps"] or DEFAULT_BUS_RATING,
            main_breaker_amps=reader.read(("mainBreaker", "mainBreakerRating"), parse_amps),
            front_clearance_in=reader.read(("frontClearance",), parse_number, code="INPUT-003"),
            circuit_directory=reader.flag("circuitDirectory"),
            **common)
    elif t in INVERTER_TYPES:
        spec = InverterSpec(breaker_amps=reader.read(("breakerRating", "ocpd"), parse_amps), **common)
    elif t in EVSE_TYPES:
        spec = EVSESpec(**common)
    elif t == "pv_array":
        spec = PVArraySpec(**common)
    elif t in EMERGENCY_SOURCE_TYPES:
        emergency = reader.flag("emergency") or str(component.spec("systemType", "")).lower() == "emergency"
        spec = EmergencySourceSpec(emergency=emergency, **common)
    elif t in MOTOR_TYPES:
        spec = MotorSpec(**common)
    else:
        spec = GenericSpec(continuous=reader.flag("continuous"), motor=reader.flag("motor"), **common)

    return spec, reader.violations


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------
WIRE_SIZE_KEYS = ("wireSize", "conductorSize", "wireGauge")


def wire_size_of(connection: DiagramConnection) -> Optional[Any]:
    for key in WIRE_SIZE_KEYS:
        value = connection.spec(key)
        if value not in (None, ""):
            return value
    return None


def _connection_violation(connection: DiagramConnection, key: str, raw: Any, error: ParseError) -> Violation:
    return Violation(
        code="INPUT-003",
        section="110.3(B)",
        description=f"Connection {connection.id} has unreadable '{key}': {error}",
        severity=Severity.ERROR,
        remediation=f"Enter a valid value for '{key}'",
        calculation={"field": key, "value": str(raw)},
        connection_ids=(connection.id,),
    )


def infer_circuit(diagram: Diagram, connection: DiagramConnection,
                  config: EngineConfig = DEFAULT_CONFIG) -> Tuple[Optional[CircuitSpec], List[Violation]]:
    """CircuitSpec for a power connection, or None when current/voltage can't be inferred."""
    if connection.type not in POWER_CONNECTION_TYPES:
        return None, []

    violations: List[Violation] = []

    def read(key: str, parser: Callable[[Any], Any], default: Any) -> Any:
        raw = connection.spec(key)
        if raw is None or raw == "":
            return default
        try:
            return parser(raw)
        except (ParseError, ValueError) as e:
            violations.append(_connection_violation(connection, key, raw, ParseError(str(e))))
            return default

    endpoint_specs = [parse_component_spec(c)[0] for c in diagram.endpoints(connection) if c is not None]
    # Load side first: connections are drawn source -> load
    endpoint_specs.reverse()

    current = connection.current
    if current is None:
        for spec in endpoint_specs:
            if spec.kind in PANEL_TYPES or spec.kind in BREAKER_TYPES:
                continue
            if spec.load_current:
                current = spec.load_current
                break

    voltage = connection.voltage
    if voltage is None:
        voltage = next((s.voltage for s in endpoint_specs if s.voltage), None)

    if current is None or voltage is None:
        return None, violations

    material = read("material", lambda v: ConductorMaterial(str(v).strip().lower()), config.default_material)
    rating = read("insulation", lambda v: InsulationRating(parse_temperature_rating(v)), config.default_rating)
    length = read("length", parse_length_ft, None)
    if length is None:
        length = read("distance", parse_length_ft, config.default_run_length_ft)
    ambient = read("ambientTemp", parse_number, config.default_ambient_c)
    count = read("conduitFill", lambda v: int(parse_number(v)), config.default_conductor_count)
    max_vd = read("maxVoltageDrop", parse_number, config.max_voltage_drop_percent)
    phases = read("phases", lambda v: int(parse_number(v)), 1)

    continuous = read("continuous", parse_bool, False) or any(s.continuous for s in endpoint_specs)
    motor = read("motor", parse_bool, False) or any(s.motor for s in endpoint_specs)

    circuit = CircuitSpec(
        load_amps=current,
        voltage=voltage,
        length_ft=length,
        material=material,
        insulation_rating=rating,
        max_voltage_drop_percent=max_vd,
        phases=3 if phases == 3 else 1,
        derating=DeratingContext(
            conductor_count=count,
            ambient_temp_c=ambient,
            is_continuous=continuous,
            is_motor=motor,
        ),
    )
    return circuit, violations
