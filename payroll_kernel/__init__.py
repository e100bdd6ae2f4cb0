"""
Payroll Kernel

Persistence and domain foundation for the payroll generation engine:
- Exact decimal money storage (never binary float)
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
- Explicit soft delete and performer tracking on every table
- Read-only selectors for payroll listing, summaries and payslips
"""

__version__ = "0.1.0"
