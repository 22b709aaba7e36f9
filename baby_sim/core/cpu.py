# cpu.py: fetch/decode/execute engine for the 32-bit accumulator machine
import time
from typing import Callable, List, Optional, Tuple

from .encoding import WORD_BITS, wrap_word, word_to_text
from .errors import ArithmeticFault, OpcodeError, SimError
from .machine import AddressingMode, MachineState, BOOT_ADDRESS
from .observe import TraceSink
from .opcodes import decode_op, op_name

# Opcodes whose operand names a value to read (through the addressing mode)
_READS_OPERAND = {
    "LDN", "SUB", "SUB2", "CMP", "ADD", "MUL", "DIV",
    "AND", "OR", "XOR", "SHL", "SHR",
}


class CycleReport:
    """What one execute stage did. Returned by execute(); no I/O involved."""

    def __init__(self, pc: int, op_code: int, operand: int):
        self.pc = pc
        self.op_code = op_code
        self.op_name = op_name(op_code)
        self.operand = operand
        self.address: Optional[int] = None
        self.value: Optional[int] = None
        self.acc_before: int = 0
        self.acc_after: int = 0
        self.next_pc: int = pc
        self.boot_skip = False
        self.halted = False
        self.compare: Optional[int] = None
        self.error: Optional[SimError] = None

    def describe(self) -> str:
        if self.boot_skip:
            return "Skip initialization line, move to the next instruction"
        n = self.op_name
        src = f"[{self.address}]" if self.address is not None else "#"
        if n == "JMP":
            return f"JMP - jump to address {self.next_pc}"
        if n == "JRP":
            return f"JRP - relative jump from {self.pc} by {self.operand} to {self.next_pc}"
        if n == "STP":
            return "STP - program stop"
        if n == "STO":
            return f"STO - store A ({self.acc_after}) to [{self.address}]"
        if n == "CMP":
            rel = {-1: "<", 0: "==", 1: ">"}[self.compare]
            return f"CMP - A ({self.acc_before}) {rel} {src} ({self.value})"
        if self.error is not None:
            return f"{n} - {self.error}"
        if n == "LDN":
            return f"LDN - load negative of {src} ({self.value}) -> A={self.acc_after}"
        return f"{n} - A={self.acc_before}, {src}={self.value} -> A={self.acc_after}"

    def __repr__(self):
        return (f"CycleReport(pc={self.pc}, op={self.op_name}, operand={self.operand}, "
                f"acc={self.acc_after}, next_pc={self.next_pc}, error={self.error})")


def is_boot_cycle(state: MachineState) -> bool:
    """A cycle starting at BOOT_ADDRESS only advances past the boot line."""
    return state.pc == BOOT_ADDRESS


# -----------------------------------------------------------------------------
# ALU helpers (signed 32-bit, wrapping)
# -----------------------------------------------------------------------------

def _div_trunc(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


def _shift(acc: int, count: int, left: bool) -> int:
    if count < 0:
        count, left = -count, not left
    if left:
        return 0 if count >= WORD_BITS else wrap_word(acc << count)
    # arithmetic shift right; Python >> already sign-fills
    return acc >> min(count, WORD_BITS)


def execute(state: MachineState, opcode: int, operand: int) -> CycleReport:
    """
    Execute one decoded instruction against `state` (mutated in place).
    Faults that the machine recovers from are returned in report.error.
    """
    report = CycleReport(state.pc, opcode, operand)
    acc = state.accumulator
    report.acc_before = acc

    if is_boot_cycle(state):
        state.pc = BOOT_ADDRESS + 1
        report.boot_skip = True
        report.acc_after = acc
        report.next_pc = state.pc
        return report

    name = report.op_name
    value = 0
    if name in _READS_OPERAND:
        if state.addr_mode != AddressingMode.IMMEDIATE:
            report.address = state.effective_address(operand)
        value = state.operand_value(operand)
        report.value = value

    next_pc = state.pc + 1

    # ---- Control flow ----
    if name == "JMP":
        next_pc = operand

    elif name == "JRP":
        next_pc = state.pc + operand

    elif name == "STP":
        state.running = False
        report.halted = True
        next_pc = state.pc

    # ---- Memory ----
    elif name == "LDN":
        state.set_accumulator(-value)

    elif name == "STO":
        report.address = state.effective_address(operand)
        state.store.write_word(report.address, acc)

    elif name == "CMP":
        report.compare = (acc > value) - (acc < value)

    # ---- ALU ----
    elif name in ("SUB", "SUB2"):
        state.set_accumulator(acc - value)

    elif name == "ADD":
        state.set_accumulator(acc + value)

    elif name == "MUL":
        state.set_accumulator(acc * value)

    elif name == "DIV":
        if value == 0:
            report.error = ArithmeticFault(f"Division by zero at address {state.pc}")
        else:
            state.set_accumulator(_div_trunc(acc, value))

    elif name == "AND":
        state.set_accumulator(acc & value)

    elif name == "OR":
        state.set_accumulator(acc | value)

    elif name == "XOR":
        state.set_accumulator(acc ^ value)

    elif name == "SHL":
        state.set_accumulator(_shift(acc, value, left=True))

    elif name == "SHR":
        state.set_accumulator(_shift(acc, value, left=False))

    # ---- Unknown opcode -> safe advance ----
    else:
        report.error = OpcodeError(f"Unknown instruction {opcode:04b} at address {state.pc}")

    state.pc = next_pc
    report.acc_after = state.accumulator
    report.next_pc = next_pc
    return report


class CPU:
    """
    Drives a MachineState through fetch -> decode -> execute cycles.
    Supports:
      - single stepping (step) and guarded runs (run)
      - verbose stage-by-stage output
      - JSON-lines tracing via TraceSink, metrics, anomaly rules
    """

    def __init__(self, state: MachineState, verbose: bool = False):
        self.state = state
        self.verbose = verbose
        self.last_report: Optional[CycleReport] = None
        self.cycle_limit_hit = False

        # Observability
        self.trace_sink = None          # type: Optional[TraceSink]
        self.metrics = {
            "cycle_count": 0,
            "by_opcode": {},            # op_name -> count
            "errors": 0,
            "boot_skips": 0,
            "max_pc": 0,
        }
        self._anomaly_rules: List[Callable] = []

    # Device hook
    def set_trace_sink(self, sink):
        self.trace_sink = sink

    def add_anomaly_rule(self, rule_callable):
        """rule(event_dict) -> list[str] of triggered rule IDs"""
        self._anomaly_rules.append(rule_callable)

    # -----------------------------------------------------------------------
    # Stages
    # -----------------------------------------------------------------------
    def fetch(self) -> int:
        st = self.state
        # the PC follows the same modulo rule as operand addresses
        st.pc = st.store.resolve(st.pc)
        st.ir = st.store.read_bits(st.pc)
        if self.verbose:
            print(f"Fetch:   CI={st.pc} word={word_to_text(st.ir)}")
        return st.ir

    def decode(self) -> Tuple[int, int]:
        opcode, operand = decode_op(self.state.ir)
        if self.verbose:
            print(f"Decode:  opcode={opcode:04b} ({op_name(opcode)}) operand={operand}")
        return opcode, operand

    def step(self) -> Tuple[bool, bool]:
        """Run one cycle. Returns (ran_one_cycle, still_running)."""
        st = self.state
        if not st.running:
            return False, False

        self.fetch()
        opcode, operand = self.decode()
        report = execute(st, opcode, operand)
        st.cycles += 1
        self.last_report = report

        if self.verbose:
            print(f"Execute: {report.describe()}")
            if report.error is not None:
                print(f"Error: {report.error}")
            print(f"State:   CI={st.pc} A={st.accumulator:+d}")

        self._record(report)
        return True, st.running

    def run(self, max_cycles: Optional[int] = None) -> int:
        """Step until STP or until max_cycles cycles ran (None/0 = no guard)."""
        self.cycle_limit_hit = False
        cycles = 0
        while self.state.running:
            if max_cycles and cycles >= max_cycles:
                self.cycle_limit_hit = True
                break
            self.step()
            cycles += 1
        return cycles

    # -----------------------------------------------------------------------
    # Observability
    # -----------------------------------------------------------------------
    def _record(self, report: CycleReport):
        st = self.state
        self.metrics["cycle_count"] += 1
        self.metrics["max_pc"] = max(self.metrics["max_pc"], report.pc)
        if report.boot_skip:
            self.metrics["boot_skips"] += 1
        else:
            self.metrics["by_opcode"][report.op_name] = 1 + self.metrics["by_opcode"].get(report.op_name, 0)
        if report.error is not None:
            self.metrics["errors"] += 1

        if not self.trace_sink and not self._anomaly_rules:
            return

        event = {
            "ts": time.time(),
            "cycle": st.cycles,
            "pc": report.pc,
            "word": word_to_text(st.ir),
            "op_code": report.op_code,
            "op_name": "BOOT" if report.boot_skip else report.op_name,
            "operand": report.operand,
            "address": report.address,
            "value": report.value,
            "acc": report.acc_after,
            "next_pc": report.next_pc,
            "memory_size": st.memory_size,
            "addr_mode": st.addr_mode.name,
            "running": st.running,
            "boot_skip": report.boot_skip,
            "compare": report.compare,
            "error": str(report.error) if report.error is not None else None,
            "error_kind": report.error.kind if report.error is not None else None,
            "anomalies": [],
        }

        for rule in self._anomaly_rules:
            event["anomalies"].extend(rule(event) or [])

        if self.trace_sink:
            self.trace_sink.emit(event)

