"""Services Layer: feed execution, rating ledger, like counter and listing catalogue.

Invariants:
    - Services own IO and units of work; arithmetic and planning come from core/
    - Every multi-row mutation runs inside one transaction_scope
"""
