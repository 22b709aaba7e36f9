# opcodes.py: Opcode map and encode/decode of instruction words
#
# Word layout (weighted left-to-right convention, see encoding.py):
#   positions 0..12   operand, position i has weight 2^i
#   positions 13..16  opcode nibble, MSB at 13, LSB at 16
#   positions 17..31  zero
from typing import Tuple

from .encoding import (
    OPR_BITS, OPR_MASK, OPC_BITS, OPC_FIRST, OPC_LAST,
    WORD_MASK, MIN_WORD, from_twos_complement, to_twos_complement,
)
from .errors import OpcodeError, OperandError

# Nibbles as they read left to right at positions 13..16
OP = {
    "JMP":  0b0000,
    "JRP":  0b1000,
    "LDN":  0b0100,
    "STO":  0b1100,
    "SUB":  0b0010,
    "SUB2": 0b1010,
    "CMP":  0b0110,
    "STP":  0b1110,
    # Extended arithmetic and bitwise operations
    "ADD":  0b0001,
    "MUL":  0b1001,
    "DIV":  0b0101,
    "AND":  0b1101,
    "OR":   0b0011,
    "XOR":  0b1011,
    "SHL":  0b0111,
    "SHR":  0b1111,
}

# Reverse opcode map: code -> name
OP_REV = {v: k for k, v in OP.items()}

VAR = "VAR"
MAX_OPERAND = OPR_MASK
INSTR_FIELDS_MASK = (1 << (OPR_BITS + OPC_BITS)) - 1


def op_name(code: int) -> str:
    return OP_REV.get(code, f"OP_{code:X}")


def pack_opcode(code: int) -> int:
    bits = 0
    for k in range(OPC_BITS):
        if (code >> k) & 1:
            bits |= 1 << (OPC_LAST - k)
    return bits


def unpack_opcode(bits: int) -> int:
    code = 0
    for j in range(OPC_BITS):
        code |= ((bits >> (OPC_FIRST + j)) & 1) << (OPC_BITS - 1 - j)
    return code


def encode_instr(name: str, operand: int = 0) -> int:
    if name not in OP:
        raise OpcodeError(f"Unknown opcode '{name}'")
    if name == "STP":
        # fixed pattern, no operand
        operand = 0
    if not (0 <= operand <= MAX_OPERAND):
        raise OperandError(f"{name}: operand out of 13-bit range ({operand})")
    return (pack_opcode(OP[name]) | (operand & OPR_MASK)) & WORD_MASK


def encode_var(value: int) -> int:
    """Literal word: signed or unsigned 32-bit value, all 32 positions used."""
    if not (MIN_WORD <= value <= WORD_MASK):
        raise OperandError(f"VAR: literal out of 32-bit range ({value})")
    return to_twos_complement(value)


def decode_op(bits: int) -> Tuple[int, int]:
    """Total: every 32-bit pattern yields some (opcode, operand)."""
    return unpack_opcode(bits), (bits & OPR_MASK)


def disassemble(bits: int) -> str:
    bits &= WORD_MASK
    if bits & ~INSTR_FIELDS_MASK:
        # high positions set: cannot be an instruction, show the literal
        return f"{VAR} {from_twos_complement(bits)}"
    code, operand = decode_op(bits)
    name = op_name(code)
    if name == "STP":
        return name
    return f"{name} {operand}"
