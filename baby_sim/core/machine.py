# machine.py: simulated hardware state (store, accumulator, PC, IR, flags)
from enum import IntEnum

from .encoding import wrap_word
from .store import Store, DEFAULT_MEMORY_SIZE

# Address 0 holds boot metadata and is never executed as an instruction
BOOT_ADDRESS = 0


class AddressingMode(IntEnum):
    DIRECT = 0      # operand % size is the address
    INDIRECT = 1    # the word at operand % size holds the address
    IMMEDIATE = 2   # operand is the value itself
    RELATIVE = 3    # (PC + operand) % size is the address


class MachineState:
    """
    One machine: store + registers. Created once per run and mutated only by
    the execute stage (baby_sim.core.cpu.execute).

    The addressing mode is DIRECT unless a caller switches it explicitly with
    set_addressing_mode(). index_reg and base_reg are carried for display and
    are not consulted by any addressing mode.
    """

    def __init__(self, memory_size: int = DEFAULT_MEMORY_SIZE):
        self.store = Store(memory_size)
        self.accumulator: int = 0
        self.pc: int = 0
        self.ir: int = 0
        self.running: bool = True
        self.addr_mode = AddressingMode.DIRECT
        self.index_reg: int = 0
        self.base_reg: int = 0
        self.cycles: int = 0

    @property
    def memory_size(self) -> int:
        return self.store.size

    def reset(self, clear_memory: bool = False):
        self.accumulator = 0
        self.pc = 0
        self.ir = 0
        self.running = True
        self.index_reg = 0
        self.base_reg = 0
        self.cycles = 0
        if clear_memory:
            self.store.clear()

    def set_accumulator(self, value: int):
        self.accumulator = wrap_word(value)

    # -----------------------------------------------------------------------
    # Addressing
    # -----------------------------------------------------------------------
    def set_addressing_mode(self, mode):
        if isinstance(mode, str):
            try:
                mode = AddressingMode[mode.upper()]
            except KeyError:
                raise ValueError(f"Unknown addressing mode '{mode}'")
        self.addr_mode = AddressingMode(mode)

    def effective_address(self, operand: int) -> int:
        size = self.store.size
        if self.addr_mode == AddressingMode.INDIRECT:
            return self.store.read_word(operand % size) % size
        if self.addr_mode == AddressingMode.RELATIVE:
            return (self.pc + operand) % size
        # DIRECT, and IMMEDIATE when an address is unavoidable (STO)
        return operand % size

    def operand_value(self, operand: int) -> int:
        if self.addr_mode == AddressingMode.IMMEDIATE:
            return operand
        return self.store.read_word(self.effective_address(operand))

    def __repr__(self):
        return (f"MachineState(pc={self.pc}, acc={self.accumulator:+d}, ir=0x{self.ir:08X}, "
                f"running={self.running}, mode={self.addr_mode.name}, size={self.memory_size})")
