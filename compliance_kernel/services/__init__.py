"""Kernel services: ledger writes, banking, pooling and the orchestrator."""

from compliance_kernel.services.activity_source import ActivitySource, SqlActivitySource
from compliance_kernel.services.balance_computer import BalanceComputer
from compliance_kernel.services.banking_engine import BankingEngine
from compliance_kernel.services.compliance_ledger import ComplianceLedger
from compliance_kernel.services.compliance_orchestrator import ComplianceOrchestrator
from compliance_kernel.services.pool_allocation_engine import PoolAllocationEngine
from compliance_kernel.services.sequence_service import SequenceService

__all__ = [
    "ActivitySource",
    "SqlActivitySource",
    "BalanceComputer",
    "BankingEngine",
    "ComplianceLedger",
    "ComplianceOrchestrator",
    "PoolAllocationEngine",
    "SequenceService",
]
