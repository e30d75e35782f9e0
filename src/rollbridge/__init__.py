"""
Rollbridge: deposit ingestion and settlement reconciliation for a proof-backed rollup.

Bridges an L2 rollup and its L1 settlement contract. Every decision is
re-derived from persisted state so both services can be killed and restarted
at any point without producing a second funding or verification effect.
"""

__version__ = "0.1.0"
