# cli.py: command line interface for the Baby-style assembler and simulator
# Provides commands to assemble programs, run them, monitor interactively and summarise traces.

import argparse
import json
import shlex
import sys
from pathlib import Path
from typing import List, Optional


# Local module imports
from baby_sim.tools.assembler import assemble, assemble_text
from baby_sim.tools.anomaly_rules import DEFAULT_RULES
from baby_sim.tools.trace_analyse import analyze, print_summary
from baby_sim.core.cpu import CPU
from baby_sim.core.encoding import word_to_text
from baby_sim.core.machine import MachineState, AddressingMode
from baby_sim.core.opcodes import disassemble
from baby_sim.core.observe import TraceSink
from baby_sim.core.store import MEMORY_SIZES, DEFAULT_MEMORY_SIZE, load_program

DEFAULT_MAX_CYCLES = 1_000_000


# -----------------------------------------------------------------------------
# Utilities
# -----------------------------------------------------------------------------

def _bits_to_lamps(cells: List[int]) -> str:
    """Render one store line as CRT dots, leftmost dot = weight 2^0."""
    # '●' lit, '○' unlit
    return "".join("●" if c else "○" for c in cells)


def print_state(state: MachineState, show_memory: bool = True):
    print("\n=== Computer State ===")
    print(f"Program Counter (CI): {state.pc}")
    print(f"Present Instruction (PI): {word_to_text(state.ir)}")
    print(f"Accumulator (A): {word_to_text(state.accumulator)} ({state.accumulator:+d})")
    print(f"Addressing mode: {state.addr_mode.name}  Cycles: {state.cycles}")
    if show_memory:
        print("\nMemory Contents:")
        for i in range(state.memory_size):
            print(f"{i:2d}: {state.store.text(i)} ({state.store.read_word(i):+d})  {disassemble(state.store.read_bits(i))}")


def _make_state(memory: int, addressing: Optional[str]) -> MachineState:
    state = MachineState(memory)
    if addressing:
        state.set_addressing_mode(addressing)
    return state


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def cmd_assemble(args: argparse.Namespace) -> int:
    src = Path(args.source)
    out = Path(args.out)
    listing = Path(args.listing) if args.listing else None

    result = assemble(str(src), str(out), verbose=not args.quiet,
                      listing_path=str(listing) if listing else None)
    if not result:
        print(f"Error: {result.error}")
        return 1

    print(f"Assembled '{src.name}' → '{out}' with {len(result.words)} words, {len(result.symbols)} labels.")
    if listing:
        print(f"Listing written to '{listing}'")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    state = _make_state(args.memory, args.addressing)
    loaded = load_program(state, args.program)
    if not loaded:
        print(f"Error: {loaded.error}")
        print("Machine code file should have exactly 32 characters per line, only 0s and 1s,")
        print(f"and at most {state.memory_size} lines. Use 'assemble' to produce one.")
        return 1
    print(f"Successfully loaded {loaded.count} instructions into {state.memory_size} words")

    cpu = CPU(state, verbose=args.verbose or args.step)

    # Trace configuration
    if args.trace_file:
        cpu.set_trace_sink(TraceSink(path=args.trace_file))
        print(f"Tracing to '{args.trace_file}'")
    for rule in DEFAULT_RULES:
        cpu.add_anomaly_rule(rule)

    # Execution
    if args.step:
        while state.running:
            print(f"\n=== Cycle {state.cycles} ===")
            cpu.step()
            if state.running:
                try:
                    input("Press Enter to continue...")
                except EOFError:
                    print()
                    break
    else:
        cpu.run(max_cycles=args.max_cycles)

    print(f"REGS A={state.accumulator:+d} CI={state.pc} cycles={state.cycles} "
          f"{'HALTED' if not state.running else 'RUNNING'}")

    if args.dump_memory:
        print_state(state)

    # Dump metrics if requested
    if args.trace_metrics:
        Path(args.trace_metrics).write_text(json.dumps(cpu.metrics, indent=2), encoding="utf-8")
        print(f"Metrics saved to '{args.trace_metrics}'")

    if cpu.cycle_limit_hit:
        print(f"Error: no STP after {args.max_cycles} cycles; run stopped")
        return 1
    return 0


def cmd_trace(args: argparse.Namespace) -> int:
    if not Path(args.trace).exists():
        print(f"Error: trace file '{args.trace}' does not exist")
        return 1
    print_summary(analyze(args.trace))
    return 0


# -----------------------------------------------------------------------------
# Monitor (interactive)
# -----------------------------------------------------------------------------

class Monitor:
    """Interactive monitor: step/run, inspect registers/memory, assemble & load."""

    def __init__(self, memory: int = DEFAULT_MEMORY_SIZE, max_cycles: int = DEFAULT_MAX_CYCLES):
        self.state = MachineState(memory)
        self.cpu = CPU(self.state)
        self.max_cycles = max_cycles
        self.trace: bool = False

    def prompt(self):
        return f"baby:{self.state.pc:02d}> "

    def print_regs(self):
        st = self.state
        print(f"A={st.accumulator:+d} CI={st.pc} PI={word_to_text(st.ir)} "
              f"running={'yes' if st.running else 'no'} mode={st.addr_mode.name} cycles={st.cycles}")

    def disasm_one(self, addr: int) -> str:
        bits = self.state.store.read_bits(addr)
        return f"{addr % self.state.memory_size:02d}: {word_to_text(bits)}  {disassemble(bits)}"

    def do_load(self, args: List[str]):
        if len(args) < 1:
            print("load <file.mc|file.asm>")
            return
        path = Path(args[0])
        if path.suffix == ".asm":
            result = assemble_text(path.read_text(encoding="utf-8"))
            if not result:
                print(f"Error: {result.error}")
                return
            if len(result.words) > self.state.memory_size:
                print(f"Error: program has {len(result.words)} words, memory holds {self.state.memory_size}")
                return
            self.state.reset(clear_memory=True)
            for addr, bits in enumerate(result.words):
                self.state.store.write_bits(addr, bits)
            print(f"Assembled and loaded '{path.name}' ({len(result.words)} words)")
            return
        loaded = load_program(self.state, str(path))
        if not loaded:
            print(f"Error: {loaded.error}")
            return
        self.state.reset()
        print(f"Loaded '{path.name}' ({loaded.count} words)")

    def do_step(self, args: List[str]):
        n = int(args[0], 0) if args else 1
        for _ in range(n):
            if not self.state.running:
                print("Machine halted. Use 'reset' to start again.")
                break
            if self.trace:
                print(self.disasm_one(self.state.pc))
            self.cpu.step()
            rep = self.cpu.last_report
            print(f"  {rep.describe()}")
            if rep.error is not None:
                print(f"  Error: {rep.error}")

    def do_run(self, args: List[str]):
        max_cycles = int(args[0], 0) if args else self.max_cycles
        cycles = self.cpu.run(max_cycles=max_cycles)
        print(f"Run finished after {cycles} cycles. CI={self.state.pc} A={self.state.accumulator:+d}"
              + (" (cycle limit reached)" if self.cpu.cycle_limit_hit else ""))

    def do_regs(self, args: List[str]):
        self.print_regs()

    def do_mem(self, args: List[str]):
        start = int(args[0], 0) if args else 0
        count = int(args[1], 0) if len(args) > 1 else self.state.memory_size
        for i in range(start, start + count):
            print(f"{i % self.state.memory_size:02d}: {self.state.store.text(i)} ({self.state.store.read_word(i):+d})")

    def do_write(self, args: List[str]):
        if len(args) < 2:
            print("write <addr> <signed_value>")
            return
        addr = int(args[0], 0)
        val = int(args[1], 0)
        self.state.store.write_word(addr, val)
        print(f"Wrote signed {val:+d} at {addr % self.state.memory_size}")

    def do_disasm(self, args: List[str]):
        addr = int(args[0], 0) if args else 0
        count = int(args[1], 0) if len(args) > 1 else 8
        for i in range(count):
            print(self.disasm_one(addr + i))

    def do_lights(self, args: List[str]):
        for i in range(self.state.memory_size):
            marker = ">" if i == self.state.pc else " "
            print(f"{marker}{i:02d} {_bits_to_lamps(self.state.store.cells(i))}")
        print(f"  A  {_bits_to_lamps([(self.state.accumulator >> j) & 1 for j in range(32)])}")

    def do_mode(self, args: List[str]):
        if not args:
            print(f"mode {'|'.join(m.name.lower() for m in AddressingMode)}  (current: {self.state.addr_mode.name})")
            return
        self.state.set_addressing_mode(args[0])
        print(f"Addressing mode set to {self.state.addr_mode.name}")

    def do_reset(self, args: List[str]):
        self.state.reset(clear_memory=bool(args and args[0] == "all"))
        print("Registers reset" + (" and memory cleared" if args and args[0] == "all" else ""))

    def do_trace(self, args: List[str]):
        self.trace = not self.trace
        print(f"Trace {'ON' if self.trace else 'OFF'}")

    def loop(self):
        print("Interactive monitor. Type 'help' for commands. Ctrl-D to exit.")
        while True:
            try:
                line = input(self.prompt())
            except EOFError:
                print()
                break
            if not line.strip():
                continue
            try:
                cmd, *args = shlex.split(line)
            except ValueError as e:
                print(f"Error: {e}")
                continue
            if cmd in ("quit", "exit"):
                break
            elif cmd == "help":
                print("""
Commands:
  load <file.mc|file.asm>        Load machine code (or assemble and load source).
  step [n]                       Execute n cycles.
  run [max_cycles]               Run until STP or the cycle limit.
  regs                           Show registers.
  mem [addr] [count]             Dump store words.
  write <addr> <signed_value>    Write a signed word.
  disasm [addr] [count]          Disassemble from addr.
  lights                         Show the store as a CRT dot display.
  mode [direct|indirect|immediate|relative]  Show or switch addressing mode.
  reset [all]                    Reset registers (and clear memory with 'all').
  trace                          Toggle per-step disassembly.
  help, exit, quit               Show help / exit.
                """)
            else:
                fn = getattr(self, f"do_{cmd}", None)
                if fn:
                    try:
                        fn(args)
                    except (ValueError, OSError) as e:
                        print(f"Error: {e}")
                else:
                    print(f"Unknown command: {cmd}. Type 'help'.")


def cmd_monitor(args: argparse.Namespace) -> int:
    mon = Monitor(args.memory, max_cycles=args.max_cycles)
    if args.program:
        try:
            mon.do_load([args.program])
        except (ValueError, OSError) as e:
            print(f"Error: {e}")
    mon.loop()
    return 0


# -----------------------------------------------------------------------------
# Argument parsing
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Baby-style 32-bit machine: assembler, simulator, monitor")
    sub = p.add_subparsers(dest="cmd", required=True)

    # assemble
    pa = sub.add_parser("assemble", help="Assemble program source → machine code text file")
    pa.add_argument("source", help="Assembly source file")
    pa.add_argument("-o", "--out", default="program.mc", help="Output machine code path")
    pa.add_argument("--listing", help="Emit listing to file")
    pa.add_argument("-q", "--quiet", action="store_true", help="Quiet mode (no verbose output)")

    def add_machine_opts(prs: argparse.ArgumentParser):
        prs.add_argument("--memory", type=int, choices=MEMORY_SIZES, default=DEFAULT_MEMORY_SIZE,
                         help="Store size in words")
        prs.add_argument("--max-cycles", type=int, default=DEFAULT_MAX_CYCLES,
                         help="Stop after this many cycles (0 = unlimited)")

    # run
    pr = sub.add_parser("run", help="Run a machine code file on the simulator")
    pr.add_argument("program", help="Machine code file")
    add_machine_opts(pr)
    pr.add_argument("--step", action="store_true", help="Step by step (press Enter to continue)")
    pr.add_argument("-v", "--verbose", action="store_true", help="Print fetch/decode/execute stages")
    pr.add_argument("--addressing", choices=[m.name.lower() for m in AddressingMode],
                    help="Addressing mode (default: direct)")
    pr.add_argument("--dump-memory", action="store_true", help="Print machine state and memory after run")
    pr.add_argument("--trace-file", help="Write JSONL trace to file")
    pr.add_argument("--trace-metrics", help="Write metrics JSON to file")

    # monitor
    pm = sub.add_parser("monitor", help="Interactive monitor for stepping and inspecting")
    pm.add_argument("program", nargs="?", help="Machine code or .asm file to load")
    add_machine_opts(pm)

    # trace
    pt = sub.add_parser("trace", help="Summarise a JSONL trace file")
    pt.add_argument("trace", help="Trace file written by 'run --trace-file'")

    return p


# -----------------------------------------------------------------------------
# Main
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "assemble":
        return cmd_assemble(args)
    elif args.cmd == "run":
        return cmd_run(args)
    elif args.cmd == "monitor":
        return cmd_monitor(args)
    elif args.cmd == "trace":
        return cmd_trace(args)
    else:
        parser.error("Unknown command")
        return 2


if __name__ == "__main__":
    sys.exit(main())
