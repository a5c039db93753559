from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .models import LoadContext

# Component types the rule base knows about. Anything else is carried as a
# generic component.
SERVICE_DISCONNECT_TYPES = ("service_disconnect", "main_disconnect")
BREAKER_TYPES = ("breaker", "circuit_breaker")
PANEL_TYPES = ("main_panel", "sub_panel", "switchgear")
INVERTER_TYPES = ("inverter", "solar_inverter")
EVSE_TYPES = ("evse_charger", "ev_charger", "evse_l1", "evse_l2", "evse_l3")
EMERGENCY_SOURCE_TYPES = ("generator", "ups", "battery_system")
MOTOR_TYPES = ("motor",)

POWER_CONNECTION_TYPES = ("power", "ac", "dc")


@dataclass(frozen=True)
class DiagramComponent:
    id: str
    type: str
    name: str = ""
    specifications: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "specifications", MappingProxyType(dict(self.specifications or {})))

    def spec(self, key: str, default: Any = None) -> Any:
        return self.specifications.get(key, default)

    def is_type(self, types: Tuple[str, ...]) -> bool:
        return self.type in types


@dataclass(frozen=True)
class DiagramConnection:
    id: str
    from_id: str
    to_id: str
    type: str = "power"
    voltage: Optional[float] = None
    current: Optional[float] = None
    specifications: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "specifications", MappingProxyType(dict(self.specifications or {})))

    def spec(self, key: str, default: Any = None) -> Any:
        return self.specifications.get(key, default)

    def touches(self, component_id: str) -> bool:
        return component_id in (self.from_id, self.to_id)


@dataclass(frozen=True)
class Diagram:
    id: str
    components: Tuple[DiagramComponent, ...] = ()
    connections: Tuple[DiagramConnection, ...] = ()
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "components", tuple(self.components))
        object.__setattr__(self, "connections", tuple(self.connections))

    def component(self, component_id: str) -> Optional[DiagramComponent]:
        for c in self.components:
            if c.id == component_id:
                return c
        return None

    def components_of(self, *types: str) -> List[DiagramComponent]:
        return [c for c in self.components if c.type in types]

    def connections_for(self, component_id: str) -> List[DiagramConnection]:
        return [conn for conn in self.connections if conn.touches(component_id)]

    def endpoints(self, connection: DiagramConnection) -> Tuple[Optional[DiagramComponent], Optional[DiagramComponent]]:
        return self.component(connection.from_id), self.component(connection.to_id)


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def diagram_from_dict(data: Dict[str, Any]) -> Diagram:
    """Build a Diagram snapshot from plain records (e.g. a saved JSON diagram).

    Connections accept either ``from``/``to`` or ``fromComponentId``/``toComponentId``.
    """
    components = []
    for idx, raw in enumerate(data.get("components") or []):
        if not raw.get("id"):
            raise ValueError(f"Component #{idx} has no id")
        components.append(DiagramComponent(
            id=str(raw["id"]),
            type=str(raw.get("type", "")),
            name=str(raw.get("name") or raw.get("label") or ""),
            specifications=raw.get("specifications") or raw.get("properties") or {},
        ))

    connections = []
    for idx, raw in enumerate(data.get("connections") or []):
        if not raw.get("id"):
            raise ValueError(f"Connection #{idx} has no id")
        connections.append(DiagramConnection(
            id=str(raw["id"]),
            from_id=str(raw.get("from") or raw.get("fromComponentId") or ""),
            to_id=str(raw.get("to") or raw.get("toComponentId") or ""),
            type=str(raw.get("type") or raw.get("wireType") or "power"),
            voltage=_optional_float(raw.get("voltage")),
            current=_optional_float(raw.get("current")),
            specifications=raw.get("specifications") or {},
        ))

    return Diagram(
        id=str(data.get("id", "")),
        name=str(data.get("name", "")),
        components=tuple(components),
        connections=tuple(connections),
    )


def load_context_from_dict(data: Optional[Dict[str, Any]]) -> Optional[LoadContext]:
    """LoadContext from a loads JSON document (camelCase or snake_case keys)."""
    if not data:
        return None

    def pick(*keys):
        for key in keys:
            value = _optional_float(data.get(key))
            if value is not None:
                return value
        return None

    return LoadContext(
        total_load_amps=pick("totalLoadAmps", "total_load_amps") or 0.0,
        continuous_load_amps=pick("continuousLoadAmps", "continuous_load_amps") or 0.0,
        service_rating_amps=pick("serviceRatingAmps", "service_rating_amps"),
    )
