"""
Billing Kernel

Persistence and read-side foundation for the logistics billing system:
- ORM models for bills, costs, revenues, parties and pricing
- Read-only selectors returning frozen DTOs
- Structured JSON logging and typed exceptions
- Injectable clock
"""

__version__ = "0.1.0"
