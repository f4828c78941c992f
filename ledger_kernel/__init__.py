"""
Ledger Kernel - purchase orders and the payments applied against them.

- Date-scoped, collision-free PO and payment references
- Monetary invariants re-established after every mutation
- PO lifecycle state machine with a single status derivation
- All-or-nothing payment recording and voiding across PO and Payment
- Idempotent overdue sweep
"""

__version__ = "0.1.0"
