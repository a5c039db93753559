from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from core.models import ConductorMaterial, InsulationRating


class ConductorTableError(RuntimeError):
    """The reference data is inconsistent. Fatal at startup."""


# Standard sizes, smallest first
WIRE_SIZES = ("14", "12", "10", "8", "6", "4", "3", "2", "1",
              "1/0", "2/0", "3/0", "4/0",
              "250", "300", "350", "400", "500")

# NEC Table 310.16 - Allowable Ampacities of Insulated Conductors
# Format: {SizeAWG: {TempRating: Amps}}
NEC_310_16_COPPER = {
    "14": {60: 15, 75: 20, 90: 25},
    "12": {60: 20, 75: 25, 90: 30},
    "10": {60: 30, 75: 35, 90: 40},
    "8":  {60: 40, 75: 50, 90: 55},
    "6":  {60: 55, 75: 65, 90: 75},
    "4":  {60: 70, 75: 85, 90: 95},
    "3":  {60: 85, 75: 100, 90: 115},
    "2":  {60: 95, 75: 115, 90: 130},
    "1":  {60: 110, 75: 130, 90: 145},
    "1/0": {60: 125, 75: 150, 90: 170},
    "2/0": {60: 145, 75: 175, 90: 195},
    "3/0": {60: 165, 75: 200, 90: 225},
    "4/0": {60: 195, 75: 230, 90: 260},
    "250": {60: 215, 75: 255, 90: 290},
    "300": {60: 240, 75: 285, 90: 320},
    "350": {60: 260, 75: 310, 90: 350},
    "400": {60: 280, 75: 335, 90: 380},
    "500": {60: 320, 75: 380, 90: 430},
}

# Aluminum / copper-clad aluminum. 14 AWG is not listed by the NEC; the
# calculator keeps the legacy values so small aluminum runs still size.
NEC_310_16_ALUMINUM = {
    "14": {60: 15, 75: 15, 90: 20},
    "12": {60: 15, 75: 20, 90: 25},
    "10": {60: 25, 75: 30, 90: 35},
    "8":  {60: 35, 75: 40, 90: 45},
    "6":  {60: 40, 75: 50, 90: 55},
    "4":  {60: 55, 75: 65, 90: 75},
    "3":  {60: 65, 75: 75, 90: 85},
    "2":  {60: 75, 75: 90, 90: 100},
    "1":  {60: 85, 75: 100, 90: 115},
    "1/0": {60: 100, 75: 120, 90: 135},
    "2/0": {60: 115, 75: 135, 90: 150},
    "3/0": {60: 130, 75: 155, 90: 175},
    "4/0": {60: 150, 75: 180, 90: 205},
    "250": {60: 170, 75: 205, 90: 230},
    "300": {60: 195, 75: 230, 90: 260},
    "350": {60: 210, 75: 250, 90: 280},
    "400": {60: 225, 75: 270, 90: 305},
    "500": {60: 260, 75: 310, 90: 350},
}

# NEC Chapter 9, Table 8 - Conductor area in circular mils
CIRCULAR_MILS = {
    "14": 4110, "12": 6530, "10": 10380, "8": 16510, "6": 26240,
    "4": 41740, "3": 52620, "2": 66360, "1": 83690,
    "1/0": 105600, "2/0": 133100, "3/0": 167800, "4/0": 211600,
    "250": 250000, "300": 300000, "350": 350000, "400": 400000, "500": 500000,
}

# Resistivity constant K (ohm-cmil/ft at 75C) for Vdrop = 2*K*I*L/CM
RESISTIVITY_K = {
    ConductorMaterial.COPPER: 12.9,
    ConductorMaterial.ALUMINUM: 21.2,
}

# NEC Table 310.15(B)(2)(a) - Ambient Temperature Correction Factors
# Based on 30C base ambient. None = conductor not permitted at that ambient.
# Format: {Band_Upper_Limit_C: {Insulation_Rating: Factor}}
TEMP_CORRECTION_FACTORS = {
    10: {60: 1.29, 75: 1.20, 90: 1.15},
    15: {60: 1.22, 75: 1.15, 90: 1.12},
    20: {60: 1.15, 75: 1.11, 90: 1.08},
    25: {60: 1.08, 75: 1.05, 90: 1.04},
    30: {60: 1.00, 75: 1.00, 90: 1.00},
    35: {60: 0.91, 75: 0.94, 90: 0.96},
    40: {60: 0.82, 75: 0.88, 90: 0.91},
    45: {60: 0.71, 75: 0.82, 90: 0.87},
    50: {60: 0.58, 75: 0.75, 90: 0.82},
    55: {60: 0.41, 75: 0.67, 90: 0.76},
    60: {60: None, 75: 0.58, 90: 0.71},
    65: {60: None, 75: 0.47, 90: 0.65},
    70: {60: None, 75: 0.33, 90: 0.58},
    75: {60: None, 75: None, 90: 0.50},
    80: {60: None, 75: None, 90: 0.41},
    85: {60: None, 75: None, 90: 0.29},
}

# NEC Table 310.15(C)(1) - Adjustment Factors for More Than Three Current-Carrying Conductors
# Format: {Max_Conductors: Factor}
GROUPING_FACTORS = {
    3: 1.0,
    6: 0.80,   # 4-6 conductors
    9: 0.70,   # 7-9
    20: 0.50,  # 10-20
    30: 0.45,  # 21-30
    40: 0.40,  # 31-40
}
MIN_GROUPING_FACTOR = 0.35  # 41+

# NEC 240.6(A) - Standard ampere ratings for fuses and inverse time breakers
BREAKER_RATINGS = (15, 20, 25, 30, 35, 40, 45, 50, 60, 70, 80, 90, 100, 110, 125, 150, 175, 200,
                   225, 250, 300, 350, 400, 450, 500, 600, 700, 800, 1000, 1200, 1600, 2000,
                   2500, 3000, 4000, 5000, 6000)

# NEC Table 250.122 - Equipment grounding conductor (copper) by OCPD rating
GROUNDING_TABLE_250_122 = (
    (15, "14"), (20, "12"), (60, "10"), (100, "8"),
    (200, "6"), (300, "4"), (400, "3"), (500, "2"),
    (600, "1"), (800, "1/0"), (1000, "2/0"), (1200, "3/0"),
    (1600, "4/0"), (2000, "250"), (2500, "350"), (3000, "400"),
    (4000, "500"),
)


@dataclass(frozen=True)
class ConductorSpec:
    gauge: str
    circular_mils: int
    ampacity: Mapping[Tuple[ConductorMaterial, InsulationRating], int]

    def ampacity_for(self, material: ConductorMaterial, rating: InsulationRating) -> int:
        return self.ampacity[(material, rating)]

    @property
    def label(self) -> str:
        return f"{self.gauge} kcmil" if self.circular_mils >= 250000 else f"{self.gauge} AWG"


class ConductorTable:
    """Immutable conductor reference data, smallest gauge first."""

    def __init__(self, copper: Dict[str, Dict[int, int]], aluminum: Dict[str, Dict[int, int]],
                 circular_mils: Dict[str, int], order=WIRE_SIZES):
        specs = []
        for gauge in order:
            if gauge not in circular_mils:
                raise ConductorTableError(f"No circular-mil area for {gauge}")
            ampacity = {}
            for material, source in ((ConductorMaterial.COPPER, copper), (ConductorMaterial.ALUMINUM, aluminum)):
                row = source.get(gauge)
                if row is None:
                    raise ConductorTableError(f"No {material.value} ampacity row for {gauge}")
                for rating in InsulationRating:
                    amps = row.get(rating.value)
                    if amps is None or amps <= 0:
                        raise ConductorTableError(f"Missing {material.value} {rating.value}C ampacity for {gauge}")
                    ampacity[(material, rating)] = amps
            specs.append(ConductorSpec(gauge, circular_mils[gauge], MappingProxyType(ampacity)))

        self._specs = tuple(specs)
        self._index = MappingProxyType({s.gauge: i for i, s in enumerate(specs)})
        self._validate()

    def _validate(self):
        if not self._specs:
            raise ConductorTableError("Conductor table is empty")
        for prev, cur in zip(self._specs, self._specs[1:]):
            if cur.circular_mils <= prev.circular_mils:
                raise ConductorTableError(f"Gauge order broken at {cur.gauge}")
            for key, amps in cur.ampacity.items():
                if amps < prev.ampacity[key]:
                    raise ConductorTableError(f"Ampacity decreases from {prev.gauge} to {cur.gauge} ({key[0].value} {key[1].value}C)")

    def __iter__(self):
        return iter(self._specs)

    def __len__(self):
        return len(self._specs)

    def gauges(self) -> Tuple[str, ...]:
        return tuple(s.gauge for s in self._specs)

    def contains(self, gauge: str) -> bool:
        return gauge in self._index

    def index(self, gauge: str) -> int:
        return self._index[gauge]

    def spec(self, gauge: str) -> ConductorSpec:
        return self._specs[self._index[gauge]]

    def largest(self) -> ConductorSpec:
        return self._specs[-1]

    def ampacity(self, gauge: str, material: ConductorMaterial, rating: InsulationRating) -> int:
        return self.spec(gauge).ampacity_for(material, rating)

    def compare(self, a: str, b: str) -> int:
        """-1 if a is smaller than b, 0 if equal, 1 if larger"""
        ia, ib = self.index(a), self.index(b)
        return (ia > ib) - (ia < ib)


def get_temp_correction(temp_c: float, insulation_rating: int) -> Optional[float]:
    """Band lookup, clamped to the table's first/last band. None = not permitted."""
    bands = sorted(TEMP_CORRECTION_FACTORS)
    for upper in bands:
        if temp_c <= upper:
            return TEMP_CORRECTION_FACTORS[upper][insulation_rating]
    return TEMP_CORRECTION_FACTORS[bands[-1]][insulation_rating]


def most_conservative_temp_correction(insulation_rating: int) -> float:
    return min(row[insulation_rating] for row in TEMP_CORRECTION_FACTORS.values()
               if row[insulation_rating] is not None)


def get_grouping_factor(count: int) -> float:
    for limit in sorted(GROUPING_FACTORS.keys()):
        if count <= limit:
            return GROUPING_FACTORS[limit]
    return MIN_GROUPING_FACTOR


def next_standard_breaker(amps: float) -> Optional[int]:
    for rating in BREAKER_RATINGS:
        if rating >= amps:
            return rating
    return None


def grounding_conductor_for(ocpd_amps: float) -> Optional[str]:
    for limit, size in GROUNDING_TABLE_250_122:
        if ocpd_amps <= limit:
            return size
    return None


DEFAULT_TABLE = ConductorTable(NEC_310_16_COPPER, NEC_310_16_ALUMINUM, CIRCULAR_MILS)
