"""
Finance Tracker - Source Package

Household and small-business ledgers with budget adherence, service
profitability, savings goals, remittances and an optional AI assistant.

DESIGN PRINCIPLES:
1. Dashboards are pure functions of the stored records
2. Every division is guarded; degenerate input gives zeros, not errors
3. Each user's records live in their own storage partition
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "0.1.0"
