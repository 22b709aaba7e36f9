# tests/test_loader.py
import pytest

from baby_sim.core.encoding import word_to_text
from baby_sim.core.errors import FormatError, ResourceError
from baby_sim.core.machine import MachineState
from baby_sim.core.opcodes import encode_instr, encode_var
from baby_sim.core.store import load_program, read_program, write_program


def test_load_valid_file(tmp_path):
    path = tmp_path / "ok.mc"
    write_program(str(path), [encode_instr("LDN", 3), encode_var(-2)])
    state = MachineState()
    state.store.write_word(10, 77)
    result = load_program(state, str(path))
    assert result.ok and result.count == 2
    assert state.store.read_bits(0) == encode_instr("LDN", 3)
    assert state.store.read_word(1) == -2
    assert state.store.read_word(10) == 0


def test_store_cells_follow_text(tmp_path):
    path = tmp_path / "one.mc"
    line = "0110" + "0" * 28
    path.write_text(line + "\n", encoding="ascii")
    state = MachineState()
    assert load_program(state, str(path))
    assert state.store.text(0) == line
    assert state.store.read_word(0) == 6


def _assert_rejected(tmp_path, content, kind=FormatError):
    path = tmp_path / "bad.mc"
    path.write_text(content, encoding="ascii")
    state = MachineState()
    state.store.write_word(3, 123)
    result = load_program(state, str(path))
    assert not result
    assert isinstance(result.error, kind)
    # nothing was written
    assert state.store.read_word(3) == 123
    assert state.store.read_word(0) == 0
    return result.error


def test_reject_wrong_length(tmp_path):
    err = _assert_rejected(tmp_path, word_to_text(1) + "\n" + "0" * 31 + "\n")
    assert err.line == 2


def test_reject_bad_alphabet(tmp_path):
    err = _assert_rejected(tmp_path, "0" * 31 + "2\n")
    assert err.line == 1


@pytest.mark.parametrize("sep", ["\r", "\r\n", "\x0b", "\x0c", "\x1c", "\x1d", "\x1e", "\x85"])
def test_only_newline_ends_a_line(tmp_path, sep):
    path = tmp_path / "bad.mc"
    path.write_bytes(("0" * 32 + sep + "1" * 32 + "\n").encode("latin-1"))
    state = MachineState()
    result = load_program(state, str(path))
    assert not result
    assert isinstance(result.error, FormatError)
    assert result.error.line == 1
    assert state.store.read_word(1) == 0


def test_reject_blank_line(tmp_path):
    _assert_rejected(tmp_path, word_to_text(1) + "\n\n" + word_to_text(2) + "\n")


def test_reject_program_bigger_than_memory(tmp_path):
    _assert_rejected(tmp_path, (word_to_text(0) + "\n") * 33)
    path = tmp_path / "big.mc"
    path.write_text((word_to_text(0) + "\n") * 33, encoding="ascii")
    assert load_program(MachineState(64), str(path)).count == 33


def test_missing_file(tmp_path):
    state = MachineState()
    result = load_program(state, str(tmp_path / "missing.mc"))
    assert isinstance(result.error, ResourceError)


def test_read_program_round_trip(tmp_path):
    words = [encode_instr("JMP", 8191), encode_var(-1), 0]
    path = tmp_path / "rt.mc"
    write_program(str(path), words)
    assert read_program(str(path)) == words
