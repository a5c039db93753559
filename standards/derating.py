"""Ampacity derating per NEC 310.15 and load adjustment factors.

Pure functions. Out-of-table inputs never raise: they resolve to the most
conservative factor the tables know about.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

from core.models import DeratingContext, InsulationRating
from standards.nec_tables import get_grouping_factor, get_temp_correction, most_conservative_temp_correction

logger = logging.getLogger(__name__)

CONTINUOUS_LOAD_FACTOR = 1.25   # NEC 210.19(A)(1) / 215.2(A)(1)
MOTOR_LOAD_FACTOR = 1.25        # NEC 430.22


@dataclass(frozen=True)
class DeratingResult:
    base_ampacity: float
    conductor_count_factor: float
    ambient_factor: float
    derated_ampacity: float
    references: Tuple[str, ...] = ()

    @property
    def total_factor(self) -> float:
        return self.conductor_count_factor * self.ambient_factor


def conductor_count_factor(count: int) -> float:
    return get_grouping_factor(max(1, int(count)))


def ambient_correction_factor(ambient_c: float, rating: InsulationRating) -> float:
    factor = get_temp_correction(ambient_c, rating.value)
    if factor is None:
        # Ambient beyond what this insulation is listed for
        factor = most_conservative_temp_correction(rating.value)
        logger.debug("No %sC correction for %.1fC ambient, using %.2f", rating.value, ambient_c, factor)
    return factor


def derate(base_ampacity: float, context: DeratingContext, rating: InsulationRating) -> DeratingResult:
    f_count = conductor_count_factor(context.conductor_count)
    f_temp = ambient_correction_factor(context.ambient_temp_c, rating)

    refs = []
    if f_count != 1.0:
        refs.append("NEC 310.15(C)(1)")
    if f_temp != 1.0:
        refs.append("NEC 310.15(B)(1)")

    return DeratingResult(
        base_ampacity=base_ampacity,
        conductor_count_factor=f_count,
        ambient_factor=f_temp,
        derated_ampacity=base_ampacity * f_count * f_temp,
        references=tuple(refs),
    )


def derated_ampacity(base_ampacity: float, context: DeratingContext, rating: InsulationRating) -> float:
    return derate(base_ampacity, context, rating).derated_ampacity


def adjusted_load(load_amps: float, is_continuous: bool = False, is_motor: bool = False) -> float:
    adjusted = load_amps * CONTINUOUS_LOAD_FACTOR if is_continuous else load_amps
    if is_motor:
        # Motor factor never reduces the continuous-adjusted figure
        adjusted = max(adjusted, load_amps * MOTOR_LOAD_FACTOR)
    return adjusted
