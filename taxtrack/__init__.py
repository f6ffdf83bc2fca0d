"""
Tax Track - Source Package

Core of a tax-tracking service for Australian sole traders and freelancers:
expenses, incomes, BAS/GST reporting and CSV import.

DESIGN PRINCIPLES:
1. PII never rests in plaintext (client names, ABNs, descriptions)
2. Fail early, fail visibly
3. All money is integer cents
4. Reporting periods follow the Australian financial year
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Tax Track Team"
