"""
Microfinance Ledger - Source Package

Keeps a live balance sheet for a small microfinance operation:
transactions and loans are recorded through validated forms, and the
balance sheet with its liquidity and leverage ratios is rebuilt from
the complete transaction set on every change.

DESIGN PRINCIPLES:
1. Aggregation is a pure function of the transaction set
2. Fail early, fail visibly
3. No silent corrections at the form boundary
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Microfinance Ledger Team"
