from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


class ConductorMaterial(Enum):
    COPPER = "copper"
    ALUMINUM = "aluminum"


class InsulationRating(Enum):
    TEMP_60 = 60
    TEMP_75 = 75
    TEMP_90 = 90


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class RuleCategory(Enum):
    COMPONENT = "component"
    CONNECTION = "connection"
    SYSTEM = "system"


def _frozen_mapping(data: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True)
class DeratingContext:
    conductor_count: int = 3          # Current-carrying conductors in the raceway
    ambient_temp_c: float = 30.0
    is_continuous: bool = False       # >= 3h at max current
    is_motor: bool = False


@dataclass(frozen=True)
class CircuitSpec:
    load_amps: float
    voltage: float
    length_ft: float                  # One-way run
    material: ConductorMaterial = ConductorMaterial.COPPER
    insulation_rating: InsulationRating = InsulationRating.TEMP_75
    max_voltage_drop_percent: float = 3.0
    phases: int = 1
    derating: DeratingContext = field(default_factory=DeratingContext)

    @property
    def conduit_fill(self) -> int:
        return self.derating.conductor_count


@dataclass(frozen=True)
class LoadContext:
    """Aggregate load data supplied by the load calculator."""
    total_load_amps: float = 0.0
    continuous_load_amps: float = 0.0
    service_rating_amps: Optional[float] = None


@dataclass(frozen=True)
class Violation:
    code: str
    section: str
    description: str
    severity: Severity
    remediation: Optional[str] = None
    calculation: Mapping[str, Any] = field(default_factory=dict)
    rule_id: Optional[str] = None
    component_ids: Tuple[str, ...] = ()
    connection_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "calculation", _frozen_mapping(self.calculation))
        object.__setattr__(self, "component_ids", tuple(self.component_ids))
        object.__setattr__(self, "connection_ids", tuple(self.connection_ids))

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "section": self.section,
            "description": self.description,
            "severity": self.severity.value,
            "remediation": self.remediation,
            "calculation": dict(self.calculation),
            "rule_id": self.rule_id,
            "component_ids": list(self.component_ids),
            "connection_ids": list(self.connection_ids),
        }


@dataclass(frozen=True)
class WireSizingResult:
    gauge: str
    ampacity: float                   # Derated ampacity of the chosen gauge
    voltage_drop: float
    voltage_drop_percent: float
    violations: Tuple[Violation, ...] = ()
    is_compliant: bool = True
    base_ampacity: float = 0.0
    derating_factor: float = 1.0
    required_ampacity: float = 0.0
    breaker_rating: Optional[int] = None
    grounding_conductor: Optional[str] = None
    reference_notes: str = ""


@dataclass(frozen=True)
class ComplianceResult:
    overall_compliance: bool
    total_violations: int
    error_count: int
    warning_count: int
    info_count: int
    component_violations: Mapping[str, Tuple[Violation, ...]]
    connection_violations: Mapping[str, Tuple[Violation, ...]]
    system_violations: Tuple[Violation, ...]
    recommendations: Tuple[str, ...]
    score: float
    timestamp: datetime

    def all_violations(self) -> List[Violation]:
        found = []
        for bucket in self.component_violations.values():
            found.extend(bucket)
        for bucket in self.connection_violations.values():
            found.extend(bucket)
        found.extend(self.system_violations)
        return found

    def summary(self) -> str:
        if self.overall_compliance:
            return f"NEC compliant ({self.score:.0f}% score)"
        return f"{self.error_count} critical, {self.warning_count} warnings ({self.score:.0f}% score)"
