"""
Rental Kernel

The financial lifecycle core of a rental-property platform:
- Unit occupancy derived from contract status
- Contract state machine with automatic monthly invoicing
- Idempotent payment confirmation with tenant balance accrual
- Overdue detection
- Archive / restore / hard-delete cascade
"""

__version__ = "0.1.0"
