"""
Compliance Kernel

A transactional ledger for per-vessel regulatory compliance balances with:
- Balance computation from activity data
- Banking of surplus and FIFO application of banked slices
- Equal-split pooling under Article 21 fairness rules
- Append-only pool history
"""

__version__ = "0.1.0"
