# store.py: word-addressed store (32 bit cells per word) and machine-code files
from typing import List

from .encoding import (
    WORD_BITS,
    WORD_MASK,
    to_twos_complement,
    from_twos_complement,
    word_to_cells,
    cells_to_word,
    word_to_text,
    text_to_word,
    is_word_text,
)
from .errors import FormatError, ResourceError, LoadResult, SimError

MEMORY_SIZES = (32, 64)
DEFAULT_MEMORY_SIZE = 32


class Store:
    """
    Fixed-size memory. Each word is held as WORD_BITS individual cells in
    weighted left-to-right order (cell i has weight 2^i). Every address is
    reduced modulo the store size.
    """

    def __init__(self, size: int = DEFAULT_MEMORY_SIZE):
        if size not in MEMORY_SIZES:
            raise ValueError(f"Unsupported memory size {size}; expected one of {MEMORY_SIZES}")
        self.size = size
        self._cells: List[List[int]] = [[0] * WORD_BITS for _ in range(size)]

    def resolve(self, addr: int) -> int:
        return addr % self.size

    # --- Signed word (program data) I/O ---
    def read_word(self, addr: int) -> int:
        return from_twos_complement(self.read_bits(addr))

    def write_word(self, addr: int, value: int):
        self.write_bits(addr, to_twos_complement(value))

    # --- Raw bits (instruction fetch) I/O ---
    def read_bits(self, addr: int) -> int:
        idx = self.resolve(addr)
        return cells_to_word(self._cells[idx])

    def write_bits(self, addr: int, bits: int):
        idx = self.resolve(addr)
        self._cells[idx] = word_to_cells(bits & WORD_MASK)

    def cells(self, addr: int) -> List[int]:
        return list(self._cells[self.resolve(addr)])

    def text(self, addr: int) -> str:
        return "".join(str(c) for c in self._cells[self.resolve(addr)])

    def clear(self):
        for row in self._cells:
            row[:] = [0] * WORD_BITS


# -----------------------------------------------------------------------------
# Machine-code files: one 32-char '0'/'1' line per word, address 0 first
# -----------------------------------------------------------------------------

def read_program(path: str) -> List[int]:
    """Parse and validate a machine-code file. Raises FormatError/ResourceError."""
    try:
        with open(path, "r", encoding="latin-1", newline="") as f:
            text = f.read()
    except OSError as e:
        raise ResourceError(f"Cannot read machine code file '{path}': {e}")

    # '\n' is the only terminator; '\r' and other breaks fail the alphabet check
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    words = []
    for lineno, line in enumerate(lines, start=1):
        if len(line) != WORD_BITS:
            raise FormatError(
                f"expected {WORD_BITS} characters, found {len(line)}", line=lineno, detail=line)
        if not is_word_text(line):
            raise FormatError("only '0' and '1' are allowed", line=lineno, detail=line)
        words.append(text_to_word(line))
    return words


def write_program(path: str, words: List[int]):
    try:
        with open(path, "w", encoding="ascii", newline="\n") as f:
            for bits in words:
                f.write(word_to_text(bits) + "\n")
    except OSError as e:
        raise ResourceError(f"Cannot write machine code file '{path}': {e}")


def load_program(state, path: str) -> LoadResult:
    """
    Validate the whole file, then copy it into state.store from address 0.
    On failure the state is left untouched.
    """
    try:
        words = read_program(path)
        if len(words) > state.store.size:
            raise FormatError(
                f"program has {len(words)} words but memory holds {state.store.size}")
    except SimError as e:
        return LoadResult(error=e)

    state.store.clear()
    for addr, bits in enumerate(words):
        state.store.write_bits(addr, bits)
    return LoadResult(count=len(words))
