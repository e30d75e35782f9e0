# tests/core/test_roots.py
"""Tests for the state-root codec."""

import pytest

from rollbridge.core.roots import StateRoot, hex_to_root, root_to_hex, root_to_words, words_to_root


class TestRootWords:
    def test_most_significant_word_first(self) -> None:
        root = (1 << 192) * 4 + (1 << 128) * 3 + (1 << 64) * 2 + 1

        assert root_to_words(root) == (4, 3, 2, 1)

    def test_zero_and_max(self) -> None:
        assert root_to_words(0) == (0, 0, 0, 0)
        assert root_to_words((1 << 256) - 1) == ((1 << 64) - 1,) * 4

    @pytest.mark.parametrize("bad", [-1, 1 << 256])
    def test_out_of_range_rejected(self, bad: int) -> None:
        with pytest.raises(ValueError, match="256 bits"):
            root_to_words(bad)

    def test_words_must_be_four_u64(self) -> None:
        with pytest.raises(ValueError, match="expected 4 words"):
            words_to_root([1, 2, 3])
        with pytest.raises(ValueError, match="u64"):
            words_to_root([0, 0, 0, 1 << 64])


class TestRootHex:
    def test_hex_is_zero_padded_lowercase(self) -> None:
        assert root_to_hex(0xABC) == "0x" + "0" * 61 + "abc"

    def test_hex_accepts_missing_prefix_and_uppercase(self) -> None:
        assert hex_to_root("ABC") == 0xABC
        assert hex_to_root("0X0abc") == 0xABC

    def test_hex_wider_than_256_bits_rejected(self) -> None:
        with pytest.raises(ValueError):
            hex_to_root("0x1" + "0" * 64)


class TestStateRoot:
    def test_views_agree(self) -> None:
        root = StateRoot((7 << 64) + 9)

        assert root.words == (0, 0, 7, 9)
        assert StateRoot.from_words(root.words) == root
        assert StateRoot.from_hex(root.hex) == root
        assert str(root) == root.hex

    def test_out_of_range_rejected(self) -> None:
        with pytest.raises(ValueError):
            StateRoot(-5)
