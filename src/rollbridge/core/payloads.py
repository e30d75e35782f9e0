"""Byte-payload codecs shared by the assembler and the reconciler.

Proof payloads: the proof service hands out proofs, aux data and
instances as raw bytes. verify() wants uint256 words; every 32-byte
chunk is read little-endian and rendered as a decimal string.

Withdraw instructions: the settled payload is a run of 32-byte records

    [op:1][token index:1][reserved:2][address:20][amount:8, big-endian]

where amount is in whole token units.
"""

from dataclasses import dataclass

from web3 import Web3

from rollbridge.contracts.errors import PayloadDecodeError
from rollbridge.contracts.records import Withdrawal

FIELD_BYTES = 32
RECORD_BYTES = 32


def bytes_to_field_strings(data: bytes) -> list[str]:
    """Split data into 32-byte little-endian words, as decimal strings.

    A trailing partial chunk is read as a shorter little-endian number.
    """
    return [str(int.from_bytes(data[i : i + FIELD_BYTES], "little")) for i in range(0, len(data), FIELD_BYTES)]


@dataclass(frozen=True)
class WithdrawInstruction:
    """One decoded withdraw record."""

    op: int
    token_index: int
    address: str
    amount: int  # smallest unit

    def as_withdrawal(self) -> Withdrawal:
        return Withdrawal(address=self.address, amount=self.amount)


def decode_withdraw_instructions(tx_data: bytes, *, token_decimals: int = 18) -> list[WithdrawInstruction]:
    """Decode the withdraw instructions carried by a settled payload.

    Raises:
        PayloadDecodeError: payload is not a whole number of records
    """
    if len(tx_data) <= 1:
        return []
    if len(tx_data) % RECORD_BYTES != 0:
        raise PayloadDecodeError(f"withdraw payload length {len(tx_data)} is not a multiple of {RECORD_BYTES}")
    scale = 10**token_decimals
    instructions = []
    for offset in range(0, len(tx_data), RECORD_BYTES):
        record = tx_data[offset : offset + RECORD_BYTES]
        address = Web3.to_checksum_address("0x" + record[4:24].hex())
        units = int.from_bytes(record[24:32], "big")
        instructions.append(
            WithdrawInstruction(
                op=record[0],
                token_index=record[1],
                address=address,
                amount=units * scale,
            )
        )
    return instructions


def decode_withdrawals(tx_data: bytes, *, token_decimals: int = 18) -> list[Withdrawal]:
    """Expected (address, amount) pairs, in payload order."""
    return [i.as_withdrawal() for i in decode_withdraw_instructions(tx_data, token_decimals=token_decimals)]


def encode_withdraw_instruction(address: str, units: int, *, op: int = 0, token_index: int = 0) -> bytes:
    """Inverse of one decoded record; used to build payloads for tests and tooling."""
    if not 0 <= units < 1 << 64:
        raise ValueError(f"amount out of range for u64: {units}")
    raw_address = bytes.fromhex(address[2:] if address.startswith("0x") else address)
    if len(raw_address) != 20:
        raise ValueError(f"not a 20-byte address: {address!r}")
    return bytes([op, token_index, 0, 0]) + raw_address + units.to_bytes(8, "big")
