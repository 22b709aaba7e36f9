# assembler.py: two-pass assembler (labels, ';' comments, VAR literals)
import os
import re
from typing import List, Optional, Tuple

from ..core.encoding import word_to_text
from ..core.errors import AsmResult, OperandError, ResourceError, SimError
from ..core.opcodes import VAR, disassemble, encode_instr, encode_var
from ..core.store import write_program
from .symbols import SymbolTable

COMMENT = ";"
LABEL_SEP = ":"

_NUMBER = re.compile(r"^[+-]?(0[xX][0-9a-fA-F]+|[0-9]+)$")


class AsmItem:
    def __init__(self, addr: int, bits: int, kind: str, lineno: int, source: str):
        self.addr = addr
        self.bits = bits
        self.kind = kind  # 'instr', 'data' or 'empty'
        self.lineno = lineno
        self.source = source

    @property
    def text(self) -> str:
        return word_to_text(self.bits)

    def __repr__(self):
        return f"AsmItem(addr={self.addr}, kind={self.kind}, bits={self.text})"


class Assembler:
    def __init__(self, text: str, verbose: bool = False):
        self.text = text
        self.verbose = verbose
        self.symbols = SymbolTable()
        self.items: List[AsmItem] = []

    # ---------- helpers ----------
    @staticmethod
    def _strip_inline_comments(line: str) -> str:
        p = line.find(COMMENT)
        return line if p == -1 else line[:p]

    @staticmethod
    def _split_label(line: str) -> Tuple[Optional[str], str]:
        p = line.find(LABEL_SEP)
        if p == -1:
            return None, line
        return line[:p].strip(), line[p + 1:]

    @staticmethod
    def _parse_int(tok: str) -> int:
        sign = -1 if tok.startswith("-") else 1
        body = tok.lstrip("+-")
        if body.lower().startswith("0x"):
            return sign * int(body, 16)
        return sign * int(body)

    def _source_lines(self):
        """Yield (lineno, code) for every line that occupies an address."""
        for lineno, raw in enumerate(self.text.splitlines(), start=1):
            line = self._strip_inline_comments(raw)
            if not line.strip():
                continue
            yield lineno, line

    def resolve_operand(self, tok: Optional[str], lineno: int) -> int:
        if tok is None:
            return 0
        if _NUMBER.match(tok):
            return self._parse_int(tok)
        if tok.isidentifier():
            return self.symbols.resolve(tok, line=lineno)
        raise OperandError(f"Invalid operand '{tok}'", line=lineno, detail=tok)

    # ---------- pass 1 ----------
    def pass1(self):
        loc = 0
        for lineno, line in self._source_lines():
            label, _ = self._split_label(line)
            if label and label != VAR:
                if not label.isidentifier():
                    raise OperandError(f"Invalid label name '{label}'", line=lineno, detail=label)
                self.symbols.add(label, loc, line=lineno)
                if self.verbose:
                    print(f"Found label '{label}' at address {loc}")
            loc += 1

    # ---------- pass 2 ----------
    def encode_line(self, line: str, lineno: int) -> Tuple[int, str]:
        _, body = self._split_label(line)
        toks = body.split(None, 1)
        if not toks:
            # label-only line still takes its address
            return 0, "empty"

        mnem = toks[0].upper()
        operand = toks[1].strip() if len(toks) > 1 else None
        if operand is not None and len(operand.split()) > 1:
            raise OperandError(f"Unexpected text after operand: '{operand}'", line=lineno, detail=operand)

        if mnem == VAR:
            return encode_var(self.resolve_operand(operand, lineno)), "data"
        # validate the mnemonic before looking at the operand
        encode_instr(mnem, 0)
        if mnem == "STP":
            return encode_instr(mnem), "instr"
        return encode_instr(mnem, self.resolve_operand(operand, lineno)), "instr"

    def pass2(self):
        addr = 0
        for lineno, line in self._source_lines():
            try:
                bits, kind = self.encode_line(line, lineno)
            except SimError as e:
                if e.line is None:
                    e.line = lineno
                raise
            self.items.append(AsmItem(addr, bits, kind, lineno, line.strip()))
            if self.verbose:
                print(f"Line {addr + 1:2d}: {word_to_text(bits)}")
            addr += 1

    def assemble(self) -> List[AsmItem]:
        self.pass1()
        self.pass2()
        return self.items

    def listing(self) -> List[str]:
        return [f"{it.addr:04d}: {it.text}  {disassemble(it.bits):<10} {COMMENT} {it.source}"
                for it in self.items]


# -----------------------------------------------------------------------------
# Public operations: never raise for assembly errors, return an AsmResult
# -----------------------------------------------------------------------------

def assemble_text(text: str, verbose: bool = False) -> AsmResult:
    asm = Assembler(text, verbose=verbose)
    try:
        items = asm.assemble()
    except SimError as e:
        if verbose:
            print(f"Error: {e}")
        return AsmResult(symbols=asm.symbols.as_dict(), error=e)
    return AsmResult(words=[it.bits for it in items], symbols=asm.symbols.as_dict())


def assemble(input_path: str, output_path: str, verbose: bool = False,
             listing_path: Optional[str] = None) -> AsmResult:
    """
    Assemble `input_path` into a machine-code file at `output_path`.
    The output is written only when both passes succeed.
    """
    try:
        with open(input_path, "r", encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        return AsmResult(error=ResourceError(f"Unable to open input file '{input_path}': {e}"))

    if verbose:
        print("Starting assembly...")
    asm = Assembler(text, verbose=verbose)
    try:
        asm.assemble()
        write_program(output_path, [it.bits for it in asm.items])
        if listing_path:
            try:
                with open(listing_path, "w", encoding="utf-8") as f:
                    f.write("\n".join(asm.listing()) + "\n")
            except OSError as e:
                # a failed listing leaves no machine code behind
                os.remove(output_path)
                raise ResourceError(f"Unable to write listing '{listing_path}': {e}")
    except SimError as e:
        if verbose:
            print(f"Error: {e}")
            print("Assembly failed")
        return AsmResult(symbols=asm.symbols.as_dict(), error=e)

    if verbose:
        print("Assembly completed")
    return AsmResult(words=[it.bits for it in asm.items], symbols=asm.symbols.as_dict())
