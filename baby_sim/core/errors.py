# errors.py: error taxonomy and the outcome objects returned by public operations
from typing import Dict, List, Optional


class SimError(Exception):
    """Base class. `line` is the 1-based source/file line when known."""

    kind = "error"

    def __init__(self, message: str, line: Optional[int] = None, detail: Optional[str] = None):
        self.message = message
        self.line = line
        self.detail = detail
        super().__init__(self.__str__())

    def __str__(self):
        if self.line is not None:
            return f"[line {self.line}] {self.message}"
        return self.message


class FormatError(SimError):
    """Malformed machine-code file (wrong length, alphabet, size)."""
    kind = "format"


class SymbolError(SimError):
    """Duplicate label, undefined reference, or full symbol table."""
    kind = "symbol"


class OpcodeError(SimError):
    kind = "opcode"


class OperandError(SimError):
    """Operand text that cannot be encoded in its field."""
    kind = "operand"


class ArithmeticFault(SimError, ArithmeticError):
    """Non-fatal: the faulting instruction leaves the accumulator alone."""
    kind = "arithmetic"


class ResourceError(SimError):
    kind = "resource"


class AsmResult:
    def __init__(self, words: Optional[List[int]] = None, symbols: Optional[Dict[str, int]] = None,
                 error: Optional[SimError] = None):
        self.words = words or []
        self.symbols = symbols or {}
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self):
        return self.ok

    def __repr__(self):
        if self.ok:
            return f"AsmResult(ok, words={len(self.words)}, symbols={len(self.symbols)})"
        return f"AsmResult(failed: {self.error})"


class LoadResult:
    def __init__(self, count: int = 0, error: Optional[SimError] = None):
        self.count = count
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self):
        return self.ok

    def __repr__(self):
        if self.ok:
            return f"LoadResult(ok, words={self.count})"
        return f"LoadResult(failed: {self.error})"
