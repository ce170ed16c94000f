"""Core Layer: pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, models/ or db/
    - All functions are pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell: planner, cursor codec, pagination and
      rating arithmetic are testable without a database
"""
