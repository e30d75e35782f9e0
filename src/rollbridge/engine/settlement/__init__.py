"""Settlement: match the on-chain root, submit verify(), reconcile the receipt."""

from rollbridge.engine.settlement.assembler import ProofAssembler
from rollbridge.engine.settlement.cycle import SettlementService
from rollbridge.engine.settlement.matcher import SettlementMatcher
from rollbridge.engine.settlement.reconciler import ReconciliationChecker, ReconciliationResult, compare_withdrawals
from rollbridge.engine.settlement.submitter import VerificationSubmitter

__all__ = [
    "ProofAssembler",
    "ReconciliationChecker",
    "ReconciliationResult",
    "SettlementMatcher",
    "SettlementService",
    "VerificationSubmitter",
    "compare_withdrawals",
]
