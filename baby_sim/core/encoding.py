# encoding.py: 32-bit word helpers, weighted left-to-right bit convention
#
# A word is kept as the non-negative integer sum(bit_i << i), where bit_i is
# the i-th character as written/read from the left. Position 0 is therefore
# the least significant bit, the reverse of the usual MSB-first notation.
from typing import List

WORD_BITS = 32
WORD_MASK = (1 << WORD_BITS) - 1
SIGN_BIT = 1 << (WORD_BITS - 1)

MIN_WORD = -(1 << (WORD_BITS - 1))
MAX_WORD = (1 << (WORD_BITS - 1)) - 1

# Instruction layout
OPR_BITS = 13
OPR_MASK = (1 << OPR_BITS) - 1
OPC_BITS = 4
OPC_FIRST = OPR_BITS                    # position 13 holds the nibble's MSB
OPC_LAST = OPR_BITS + OPC_BITS - 1      # position 16 holds the nibble's LSB

BIT_CHARS = "01"


def to_twos_complement(val: int) -> int:
    """Signed value -> 32-bit pattern. Out of range values wrap."""
    return val & WORD_MASK


def from_twos_complement(bits: int) -> int:
    bits &= WORD_MASK
    if bits & SIGN_BIT:
        return bits - (1 << WORD_BITS)
    return bits


def wrap_word(val: int) -> int:
    """Reduce an arbitrary Python int to the signed 32-bit range."""
    return from_twos_complement(to_twos_complement(val))


def word_to_text(bits: int) -> str:
    """Serialize a word: character i is the bit of weight 2^i."""
    bits &= WORD_MASK
    return "".join(BIT_CHARS[(bits >> i) & 1] for i in range(WORD_BITS))


def text_to_word(text: str) -> int:
    """Inverse of word_to_text. Caller validates length and alphabet."""
    bits = 0
    for i, ch in enumerate(text[:WORD_BITS]):
        if ch == "1":
            bits |= 1 << i
    return bits


def is_word_text(text: str) -> bool:
    return len(text) == WORD_BITS and all(ch in BIT_CHARS for ch in text)


def word_to_cells(bits: int) -> List[int]:
    return [(bits >> i) & 1 for i in range(WORD_BITS)]


def cells_to_word(cells: List[int]) -> int:
    bits = 0
    for i, cell in enumerate(cells):
        if cell:
            bits |= 1 << i
    return bits
