"""
Prepaid Kernel - reconciliation core.

Computes prepaid expense reconciliations across three uploaded sources
(amortization schedule, trial balance, PPREC working file) with:
- Tolerance-based CLOSED/OPEN classification
- Maker/checker adjustment workflow
- Append-only approval trail
- Versioned, soft-deletable reconciliation records
"""

__version__ = "0.1.0"
