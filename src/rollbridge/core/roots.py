"""State-root codec.

The settlement contract exposes its state-root as one uint256. The rollup
and the bundle collection carry the same value as four u64 words,
most-significant word first, and the bundle collection keys on the
0x-prefixed 64-digit hex form. All three forms convert losslessly.
"""

from dataclasses import dataclass

_WORD_BITS = 64
_WORD_MASK = (1 << _WORD_BITS) - 1
_ROOT_BITS = 256
_ROOT_LIMIT = 1 << _ROOT_BITS


def root_to_words(root: int) -> tuple[int, int, int, int]:
    """Split a 256-bit integer into four big-endian u64 words.

    Raises:
        ValueError: root is negative or wider than 256 bits
    """
    if not 0 <= root < _ROOT_LIMIT:
        raise ValueError(f"state root out of range for 256 bits: {root}")
    words = [0, 0, 0, 0]
    for i in range(3, -1, -1):
        words[i] = root & _WORD_MASK
        root >>= _WORD_BITS
    return (words[0], words[1], words[2], words[3])


def words_to_root(words: tuple[int, ...] | list[int]) -> int:
    """Inverse of root_to_words."""
    if len(words) != 4:
        raise ValueError(f"expected 4 words, got {len(words)}")
    root = 0
    for word in words:
        if not 0 <= word <= _WORD_MASK:
            raise ValueError(f"word out of range for u64: {word}")
        root = (root << _WORD_BITS) | word
    return root


def root_to_hex(root: int) -> str:
    if not 0 <= root < _ROOT_LIMIT:
        raise ValueError(f"state root out of range for 256 bits: {root}")
    return f"0x{root:064x}"


def hex_to_root(value: str) -> int:
    digits = value[2:] if value[:2].lower() == "0x" else value
    if len(digits) > 64:
        raise ValueError(f"hex root wider than 256 bits: {value!r}")
    return int(digits, 16)


@dataclass(frozen=True)
class StateRoot:
    """A state-root with all three representations at hand."""

    value: int

    def __post_init__(self) -> None:
        if not 0 <= self.value < _ROOT_LIMIT:
            raise ValueError(f"state root out of range for 256 bits: {self.value}")

    @classmethod
    def from_words(cls, words: tuple[int, ...] | list[int]) -> "StateRoot":
        return cls(words_to_root(words))

    @classmethod
    def from_hex(cls, value: str) -> "StateRoot":
        return cls(hex_to_root(value))

    @property
    def words(self) -> tuple[int, int, int, int]:
        return root_to_words(self.value)

    @property
    def hex(self) -> str:
        """Storage key used by the bundle collection."""
        return root_to_hex(self.value)

    def __str__(self) -> str:
        return self.hex
