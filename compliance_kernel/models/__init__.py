"""ORM models for the compliance kernel."""

from compliance_kernel.models.activity_record import ActivityRecordModel
from compliance_kernel.models.bank_entry import BankEntryModel
from compliance_kernel.models.compliance_balance import ComplianceBalanceModel
from compliance_kernel.models.pool import PoolMemberModel, PoolModel
from compliance_kernel.models.sequence_counter import SequenceCounter

__all__ = [
    "ActivityRecordModel",
    "BankEntryModel",
    "ComplianceBalanceModel",
    "PoolModel",
    "PoolMemberModel",
    "SequenceCounter",
]
