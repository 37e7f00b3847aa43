"""
Vela Ledger - Source Package

Small-business bookkeeping: income/expense entry with VAT breakdown,
recurring membership billing, cash-flow reporting and Excel export.

DESIGN PRINCIPLES:
1. Money is Decimal, rounded half away from zero to cents
2. Fail early, fail visibly: validation happens before any remote call
3. Storage and file backends are injected, never module singletons
4. Every user-triggered mutation is auditable
"""

__version__ = "1.0.0"
__author__ = "Vela Digital"
