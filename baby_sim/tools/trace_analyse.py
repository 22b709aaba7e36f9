# baby_sim/tools/trace_analyse.py
import sys
from collections import Counter
from typing import Any, Dict

from ..core.observe import read_trace


def analyze(path: str) -> Dict[str, Any]:
    ops = Counter()
    anomalies = Counter()
    errors = Counter()
    cycles = 0
    last = None

    for ev in read_trace(path):
        cycles += 1
        ops[ev.get("op_name", "?")] += 1
        if ev.get("error_kind"):
            errors[ev["error_kind"]] += 1
        for a in ev.get("anomalies", []) or []:
            anomalies[a] += 1
        last = ev

    return {
        "cycles": cycles,
        "ops": ops,
        "errors": errors,
        "anomalies": anomalies,
        "halted": bool(last is not None and not last.get("running", True)),
        "final_acc": last.get("acc") if last else None,
    }


def print_summary(summary: Dict[str, Any]):
    print("Cycles:", summary["cycles"])
    print("Top opcodes:", summary["ops"].most_common(10))
    print("Errors:", dict(summary["errors"]))
    print("Anomalies:", summary["anomalies"].most_common())
    print("Halted:", "yes" if summary["halted"] else "no")
    print("Final accumulator:", summary["final_acc"])


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m baby_sim.tools.trace_analyse <trace.jsonl>")
        sys.exit(2)
    print_summary(analyze(sys.argv[1]))
