# core/observe.py
import json
from typing import Any, Dict, Iterator, Optional


class TraceSink:
    """Appends one JSON line per cycle event to a file path or a list-like collector."""
    def __init__(self, path: Optional[str] = None, collector: Optional[list] = None):
        self.path = path
        self.collector = collector

    def emit(self, event: Dict[str, Any]):
        if self.path:
            line = json.dumps(event, separators=(",", ":"))
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        elif self.collector is not None:
            self.collector.append(event)


def read_trace(path: str) -> Iterator[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                yield json.loads(line)
