# symbols.py: fixed-capacity label table used by the assembler
from typing import Dict, List, Optional

from ..core.errors import SymbolError

SYMBOL_CAPACITY = 100


class Symbol:
    def __init__(self, name: str, address: int):
        self.name = name
        self.address = address

    def __repr__(self):
        return f"Symbol({self.name!r}, {self.address})"


class SymbolTable:
    """
    Preallocated slots with an explicit occupancy count and linear lookup.
    Capacity is a hard limit: the (capacity + 1)-th insert fails.
    """

    def __init__(self, capacity: int = SYMBOL_CAPACITY):
        self.capacity = capacity
        self._slots: List[Optional[Symbol]] = [None] * capacity
        self.count = 0

    def add(self, name: str, address: int, line: Optional[int] = None) -> Symbol:
        if not name:
            raise SymbolError("Empty label name", line=line)
        if self.count >= self.capacity:
            raise SymbolError(f"Symbol table is full ({self.capacity} entries)", line=line, detail=name)
        if self.find(name) is not None:
            raise SymbolError(f"Symbol '{name}' already defined", line=line, detail=name)
        sym = Symbol(name, address)
        self._slots[self.count] = sym
        self.count += 1
        return sym

    def find(self, name: str) -> Optional[int]:
        for i in range(self.count):
            if self._slots[i].name == name:
                return self._slots[i].address
        return None

    def resolve(self, name: str, line: Optional[int] = None) -> int:
        addr = self.find(name)
        if addr is None:
            raise SymbolError(f"Undefined symbol '{name}'", line=line, detail=name)
        return addr

    def as_dict(self) -> Dict[str, int]:
        return {s.name: s.address for s in self}

    def __iter__(self):
        return iter(self._slots[:self.count])

    def __len__(self):
        return self.count

    def __contains__(self, name: str) -> bool:
        return self.find(name) is not None
