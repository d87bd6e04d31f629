"""
Salary Kernel -- shared infrastructure for the bulk salary adjustment core.

Provides:
- Declarative ORM base with portable UUID keys and Decimal money columns
- Engine / session scope management
- Injectable clock
- Structured JSON logging
- Typed exception hierarchy
- Hash-chained audit trail
"""

__version__ = "0.1.0"
