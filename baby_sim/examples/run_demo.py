# run_demo.py: assemble -> load -> run the sum.asm example
import sys
import os as _os
sys.path.append(_os.path.abspath(_os.path.join(_os.path.dirname(__file__), '..', '..')))

import os
from baby_sim.tools.assembler import assemble
from baby_sim.core.cpu import CPU
from baby_sim.core.machine import MachineState
from baby_sim.core.store import load_program

ASM = os.path.join(os.path.dirname(__file__), 'sum.asm')
MC  = 'sum.mc'

result = assemble(ASM, MC, verbose=True)
if not result:
    print(f"Assembly failed: {result.error}")
    sys.exit(1)

state = MachineState(32)
loaded = load_program(state, MC)
if not loaded:
    print(f"Load failed: {loaded.error}")
    sys.exit(1)

cpu = CPU(state)
cpu.run(max_cycles=1000)

print({
    'acc': state.accumulator,
    'sum': state.store.read_word(result.symbols['SUM']),
    'double': state.store.read_word(result.symbols['DOUBLE']),
    'cycles': state.cycles,
    'halted': not state.running,
})
