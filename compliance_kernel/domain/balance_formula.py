"""
Balance formula -- the linear compliance balance of one activity.

    value = (target_intensity - intensity_actual) * throughput

Positive values are surplus (the activity ran cleaner than the target),
negative values are deficit.  Pure; the target comes from configuration.
"""

from decimal import Decimal

from compliance_kernel.db.types import round_quantity
from compliance_kernel.domain.dtos import ActivityData

# FuelEU Maritime 2025-2029 target, gCO2e/MJ
DEFAULT_TARGET_INTENSITY = Decimal("89.3368")


def compliance_balance_value(
    activity: ActivityData,
    target_intensity: Decimal = DEFAULT_TARGET_INTENSITY,
    decimal_places: int = 2,
) -> Decimal:
    raw = (target_intensity - activity.intensity_actual) * activity.throughput
    return round_quantity(raw, decimal_places)
