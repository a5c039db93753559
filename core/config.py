import os
from dataclasses import dataclass, fields, replace
from typing import Optional

from core.models import ConductorMaterial, InsulationRating


@dataclass(frozen=True)
class EngineConfig:
    # Real-time session
    debounce_seconds: float = 0.5
    cache_ttl_seconds: float = 5.0

    # Voltage drop limits (NEC 210.19(A) Informational Note)
    max_voltage_drop_percent: float = 3.0
    critical_voltage_drop_percent: float = 5.0

    # Defaults for connections that don't declare installation data
    default_run_length_ft: float = 50.0
    default_ambient_c: float = 30.0
    default_conductor_count: int = 3
    default_material: ConductorMaterial = ConductorMaterial.COPPER
    default_rating: InsulationRating = InsulationRating.TEMP_75

    # Score
    error_penalty: float = 20.0
    warning_penalty: float = 5.0
    complexity_credit: float = 5.0

    @classmethod
    def from_env(cls, prefix: str = "SLD_", base: Optional["EngineConfig"] = None) -> "EngineConfig":
        """Overrides numeric settings from environment, e.g. SLD_DEBOUNCE_SECONDS=0.25"""
        config = base or cls()
        overrides = {}
        for f in fields(cls):
            raw = os.environ.get(prefix + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            current = getattr(config, f.name)
            if isinstance(current, ConductorMaterial):
                overrides[f.name] = ConductorMaterial(raw.strip().lower())
            elif isinstance(current, InsulationRating):
                overrides[f.name] = InsulationRating(int(raw))
            elif isinstance(current, int):
                overrides[f.name] = int(raw)
            else:
                overrides[f.name] = float(raw)
        return replace(config, **overrides)


DEFAULT_CONFIG = EngineConfig()
