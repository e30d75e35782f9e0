"""Decoded L1 event contracts."""

from dataclasses import dataclass

from rollbridge.contracts.records import AccountPair, Withdrawal


@dataclass(frozen=True)
class DepositEvent:
    """A TopUp event emitted by the settlement contract.

    l1_token is the token identifier as held in the contract's token
    registry; amount is in the token's smallest unit.
    """

    tx_hash: str
    block_number: int
    l1_token: int
    l1_account: str
    account: AccountPair
    amount: int
    log_index: int = 0


@dataclass(frozen=True)
class WithdrawEvent:
    """A WithDraw event found in a verification receipt."""

    l1_token: str
    address: str
    amount: int

    def as_withdrawal(self) -> Withdrawal:
        return Withdrawal(address=self.address, amount=self.amount)


@dataclass(frozen=True)
class VerifyReceipt:
    """Confirmed receipt of a verify() transaction."""

    tx_hash: str
    block_number: int
    status: int
    withdrawals: tuple[WithdrawEvent, ...] = ()
