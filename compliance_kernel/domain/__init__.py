"""Pure domain layer: DTOs, request records, pooling rules, clock."""

from compliance_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from compliance_kernel.domain.dtos import (
    ActivityData,
    BankingResult,
    ComplianceBalance,
    ComplianceStatus,
    FleetSummary,
    Pool,
    PoolMember,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ActivityData",
    "BankingResult",
    "ComplianceBalance",
    "ComplianceStatus",
    "FleetSummary",
    "Pool",
    "PoolMember",
]
