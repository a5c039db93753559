import math
import re
from typing import Any, Optional


class ParseError(ValueError):
    """Raised when a specification value cannot be read at the diagram boundary."""


_NUMBER_RE = re.compile(r"^\s*([-+]?[0-9]*\.?[0-9]+)\s*([a-zA-Z°]*)\s*$")
_GAUGE_RE = re.compile(r"^#?\s*([0-9]+(?:/0)?)\s*(awg|kcmil|mcm)?$")


def _split_value(raw: Any) -> tuple:
    if isinstance(raw, bool):
        raise ParseError(f"Expected a number, got {raw!r}")
    if isinstance(raw, (int, float)):
        value, unit = float(raw), ""
    elif raw is None:
        raise ParseError("Missing value")
    else:
        match = _NUMBER_RE.match(str(raw))
        if not match:
            raise ParseError(f"Cannot read a number from {raw!r}")
        value, unit = float(match.group(1)), match.group(2)
    if not math.isfinite(value):
        raise ParseError(f"Not a finite number: {raw!r}")
    return value, unit


def parse_number(raw: Any) -> float:
    value, _ = _split_value(raw)
    return value


def parse_amps(raw: Any) -> float:
    """'40A', '40 A', 40 -> 40.0"""
    value, unit = _split_value(raw)
    if unit and unit.upper() not in ("A", "AMP", "AMPS"):
        raise ParseError(f"Expected amps, got unit {unit!r}")
    if value < 0:
        raise ParseError(f"Negative current: {raw!r}")
    return value


def parse_voltage(raw: Any) -> float:
    value, unit = _split_value(raw)
    unit = unit.upper()
    if unit == "KV":
        value *= 1000.0
    elif unit and unit not in ("V", "VAC", "VDC"):
        raise ParseError(f"Expected volts, got unit {unit!r}")
    if value <= 0:
        raise ParseError(f"Voltage must be positive: {raw!r}")
    return value


def parse_wire_size(raw: Any) -> str:
    """Normalizes '#12', '12 AWG', '4/0', '250 kcmil', '250MCM' to table keys."""
    if raw is None or str(raw).strip() == "":
        raise ParseError("Missing wire size")
    text = str(raw).strip().lower().replace(" ", "")
    match = _GAUGE_RE.match(text)
    if not match:
        raise ParseError(f"Unrecognized wire size {raw!r}")
    return match.group(1)


def parse_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return False
    text = str(raw).strip().lower()
    if text in ("1", "true", "yes", "y", "si", "on"):
        return True
    if text in ("0", "false", "no", "n", "off", ""):
        return False
    raise ParseError(f"Cannot read a yes/no value from {raw!r}")


def convert_power_to_amps(val: float, unit: str, voltage: float, phases: int = 1, pf: float = 1.0) -> Optional[float]:
    """Line current for a power figure. Returns None for units it does not know."""
    unit = unit.strip().upper()
    factor = math.sqrt(3) if phases == 3 else 1.0

    if unit == "A":
        return val
    if unit == "W":
        return val / (voltage * factor * pf)
    if unit == "KW":
        return val * 1000.0 / (voltage * factor * pf)
    if unit == "HP":
        return val * 746.0 / (voltage * factor * pf)
    if unit == "VA":
        return val / (voltage * factor)
    if unit == "KVA":
        return val * 1000.0 / (voltage * factor)
    return None


def convert_length_unit(val: float, unit: str) -> float:
    """Returns length in feet."""
    unit = unit.strip().lower()
    if unit in ["", "ft", "feet", "foot", "'"]: return val
    if unit in ["m", "meter", "meters", "metre", "metres"]: return val * 3.28084
    if unit in ["yd", "yard", "yards"]: return val * 3.0
    raise ParseError(f"Unknown length unit {unit!r}")


def parse_length_ft(raw: Any) -> float:
    """'50', '50ft', '15 m' -> feet"""
    value, unit = _split_value(raw)
    if value < 0:
        raise ParseError(f"Negative length: {raw!r}")
    return convert_length_unit(value, unit)


def parse_temperature_rating(raw: Any) -> int:
    """'75C', '75°C', 75 -> 75"""
    value, unit = _split_value(raw)
    if unit and unit.upper().replace("°", "") not in ("C",):
        raise ParseError(f"Expected a Celsius rating, got {raw!r}")
    rating = int(value)
    if rating not in (60, 75, 90):
        raise ParseError(f"Insulation rating must be 60, 75 or 90 C, got {raw!r}")
    return rating
