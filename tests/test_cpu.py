# tests/test_cpu.py
import pytest

from baby_sim.core.cpu import CPU, execute, is_boot_cycle
from baby_sim.core.encoding import MAX_WORD, MIN_WORD
from baby_sim.core.errors import ArithmeticFault
from baby_sim.core.machine import MachineState, AddressingMode, BOOT_ADDRESS
from baby_sim.core.observe import TraceSink
from baby_sim.core.opcodes import OP, encode_instr
from baby_sim.tools.anomaly_rules import DEFAULT_RULES
from baby_sim.tools.assembler import assemble_text


def machine_from(src: str, memory: int = 32) -> MachineState:
    result = assemble_text(src)
    assert result.ok, result.error
    state = MachineState(memory)
    for addr, bits in enumerate(result.words):
        state.store.write_bits(addr, bits)
    return state


def past_boot(memory: int = 32, acc: int = 0) -> MachineState:
    state = MachineState(memory)
    state.pc = 1
    state.accumulator = acc
    return state


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------

def test_end_to_end_program():
    state = machine_from("VAR 0\nSTART: LDN 4\nADD 5\nSTP\nVAR 5\nVAR -5\n")
    cpu = CPU(state)

    assert cpu.step() == (True, True)      # boot line
    assert state.pc == 1
    cpu.step()
    assert state.accumulator == -5         # LDN 4
    cpu.step()
    assert state.accumulator == -10        # ADD 5
    assert cpu.step() == (True, False)     # STP
    assert state.running is False
    assert cpu.step() == (False, False)


def test_reference_example_skips_first_line():
    # address 0 is boot metadata, so LDN 2 never runs; ADD 3 picks up VAR 5
    state = machine_from("START: LDN 2\n ADD 3\n STP\n VAR 5\n VAR -5\n")
    cycles = CPU(state).run()
    assert cycles == 3
    assert state.accumulator == 5
    assert not state.running


def test_boot_rule_applies_whenever_pc_is_zero():
    state = machine_from("VAR 0\nJMP 0\n")
    cpu = CPU(state)
    cpu.step()
    cpu.step()
    assert state.pc == BOOT_ADDRESS
    assert is_boot_cycle(state)
    cpu.step()
    assert state.pc == 1
    assert cpu.last_report.boot_skip


def test_fetch_loads_instruction_register():
    state = machine_from("VAR 0\nADD 7\nSTP\n")
    cpu = CPU(state)
    cpu.step()
    cpu.step()
    assert state.ir == encode_instr("ADD", 7)


def test_stp_leaves_pc():
    state = past_boot()
    report = execute(state, OP["STP"], 0)
    assert report.halted and not state.running
    assert state.pc == 1


def test_jumps():
    state = past_boot()
    execute(state, OP["JMP"], 12)
    assert state.pc == 12
    execute(state, OP["JRP"], 3)
    assert state.pc == 15


def test_pc_wraps_before_fetch():
    state = machine_from("VAR 0\nSTP\n")
    state.pc = 33
    CPU(state).step()
    assert not state.running
    assert state.pc == 1


def test_cycle_guard():
    state = machine_from("VAR 0\nLOOP: JMP LOOP\n")
    cpu = CPU(state)
    assert cpu.run(max_cycles=50) == 50
    assert cpu.cycle_limit_hit
    assert state.running


# -----------------------------------------------------------------------------
# Opcode semantics
# -----------------------------------------------------------------------------

@pytest.mark.parametrize("name,acc,value,expected", [
    ("ADD", 3, 4, 7),
    ("SUB", 3, 4, -1),
    ("SUB2", 10, 4, 6),
    ("MUL", -3, 4, -12),
    ("DIV", -7, 2, -3),
    ("DIV", 7, -2, -3),
    ("AND", 0b1100, 0b1010, 0b1000),
    ("OR", 0b1100, 0b1010, 0b1110),
    ("XOR", 0b1100, 0b1010, 0b0110),
    ("SHL", 1, 4, 16),
    ("SHL", 1, 40, 0),
    ("SHL", 8, -1, 4),
    ("SHR", -8, 1, -4),
    ("SHR", -8, 40, -1),
    ("ADD", MAX_WORD, 1, MIN_WORD),
    ("MUL", MAX_WORD, 2, -2),
    ("DIV", MIN_WORD, -1, MIN_WORD),
])
def test_alu(name, acc, value, expected):
    state = past_boot(acc=acc)
    state.store.write_word(20, value)
    report = execute(state, OP[name], 20)
    assert state.accumulator == expected
    assert report.error is None
    assert state.pc == 2


def test_ldn_and_sto():
    state = past_boot()
    state.store.write_word(6, 9)
    execute(state, OP["LDN"], 6)
    assert state.accumulator == -9
    execute(state, OP["STO"], 7)
    assert state.store.read_word(7) == -9


def test_cmp_changes_nothing_but_pc():
    state = past_boot(acc=3)
    state.store.write_word(5, 10)
    report = execute(state, OP["CMP"], 5)
    assert report.compare == -1
    assert state.accumulator == 3
    assert state.pc == 2


def test_division_by_zero_is_recovered():
    state = past_boot(acc=42)
    report = execute(state, OP["DIV"], 9)
    assert isinstance(report.error, ArithmeticFault)
    assert state.accumulator == 42
    assert state.pc == 2
    assert state.running


def test_memory_wraparound():
    state = past_boot()
    state.store.write_word(3, 42)
    execute(state, OP["LDN"], 32 + 3)
    assert state.accumulator == -42
    execute(state, OP["STO"], 64 + 4)
    assert state.store.read_word(4) == -42


def test_memory_size_choices():
    assert MachineState(64).memory_size == 64
    with pytest.raises(ValueError):
        MachineState(48)


# -----------------------------------------------------------------------------
# Addressing modes (explicit opt-in)
# -----------------------------------------------------------------------------

def test_addressing_defaults_to_direct():
    assert MachineState().addr_mode == AddressingMode.DIRECT


def test_indirect_immediate_relative():
    state = past_boot()
    state.store.write_word(5, 7)
    state.store.write_word(7, 99)

    state.set_addressing_mode("indirect")
    execute(state, OP["ADD"], 5)
    assert state.accumulator == 99

    state.set_addressing_mode(AddressingMode.IMMEDIATE)
    execute(state, OP["ADD"], 5)
    assert state.accumulator == 104

    state.set_addressing_mode("relative")
    state.accumulator = 0
    state.pc = 2
    execute(state, OP["ADD"], 3)   # address 2 + 3
    assert state.accumulator == 7

    with pytest.raises(ValueError):
        state.set_addressing_mode("sideways")


# -----------------------------------------------------------------------------
# Observability
# -----------------------------------------------------------------------------

def test_trace_events_metrics_and_anomalies():
    state = machine_from("VAR 0\nDIV ZERO\nADD 40\nSTP\nZERO: VAR 0\n")
    cpu = CPU(state)
    buf = []
    cpu.set_trace_sink(TraceSink(collector=buf))
    for rule in DEFAULT_RULES:
        cpu.add_anomaly_rule(rule)
    cpu.run()

    assert [ev["op_name"] for ev in buf] == ["BOOT", "DIV", "ADD", "STP"]
    assert buf[1]["error_kind"] == "arithmetic"
    assert "div_zero" in buf[1]["anomalies"]
    assert "operand_wrapped" in buf[2]["anomalies"]
    assert buf[-1]["running"] is False

    m = cpu.metrics
    assert m["cycle_count"] == 4
    assert m["boot_skips"] == 1
    assert m["errors"] == 1
    assert m["by_opcode"] == {"DIV": 1, "ADD": 1, "STP": 1}


def test_self_jump_anomaly():
    state = machine_from("VAR 0\nLOOP: JMP LOOP\n")
    cpu = CPU(state)
    buf = []
    cpu.set_trace_sink(TraceSink(collector=buf))
    for rule in DEFAULT_RULES:
        cpu.add_anomaly_rule(rule)
    cpu.run(max_cycles=3)
    assert "self_jump" in buf[-1]["anomalies"]


def test_verbose_output(capsys):
    state = machine_from("VAR 0\nSTP\n")
    CPU(state, verbose=True).run()
    out = capsys.readouterr().out
    assert "Skip initialization line" in out
    assert "STP - program stop" in out
