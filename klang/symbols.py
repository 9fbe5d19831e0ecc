"""
klang - Symbol Table
Runtime variable store: name -> (declared type, current value).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class VarType(Enum):
    INTEGER = "int"


GLOBAL_SCOPE = "global"


class TypeMismatchError(Exception):
    def __init__(self, name: str, declared: VarType, given: VarType, line: int = 0):
        super().__init__(
            f"[TypeMismatchError] Line {line}: "
            f"'{name}' is declared {declared.value}, cannot bind {given.value}"
        )
        self.name = name
        self.declared = declared
        self.given = given
        self.line = line


@dataclass
class Symbol:
    """One row of the table."""
    name: str
    type: VarType
    value: int
    scope: str = GLOBAL_SCOPE
    address: int = 0


class SymbolTable:
    """Flat, program-wide namespace. Entries are never removed."""

    def __init__(self):
        self._symbols: Dict[str, Symbol] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._symbols

    def __len__(self) -> int:
        return len(self._symbols)

    def lookup(self, name: str) -> Optional[Symbol]:
        return self._symbols.get(name)

    def get(self, name: str) -> int:
        """Current value of `name`; KeyError if it was never bound."""
        return self._symbols[name].value

    def set(self, name: str, var_type: VarType, value: int, line: int = 0) -> None:
        sym = self._symbols.get(name)
        if sym is None:
            self._symbols[name] = Symbol(name, var_type, value, GLOBAL_SCOPE, len(self._symbols))
            return
        if sym.type is not var_type:
            raise TypeMismatchError(name, sym.type, var_type, line)
        sym.value = value

    def rows(self) -> List[Symbol]:
        return list(self._symbols.values())


class ScopedSymbolTable:
    """
    Same contract as SymbolTable, backed by a stack of scopes.

    Lookups search from the innermost scope outwards. Assigning to a name
    that is already bound updates it where it lives; otherwise the name is
    bound in the innermost scope.
    """

    def __init__(self):
        self._scopes: List[Dict[str, Symbol]] = [{}]
        self._names: List[str] = [GLOBAL_SCOPE]
        self._next_address = 0

    @property
    def depth(self) -> int:
        return len(self._scopes)

    def push_scope(self, name: str = "block") -> None:
        self._scopes.append({})
        self._names.append(name)

    def pop_scope(self) -> None:
        if len(self._scopes) == 1:
            raise RuntimeError("cannot pop the global scope")
        self._scopes.pop()
        self._names.pop()

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None

    def __len__(self) -> int:
        return sum(len(scope) for scope in self._scopes)

    def lookup(self, name: str) -> Optional[Symbol]:
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        return None

    def get(self, name: str) -> int:
        sym = self.lookup(name)
        if sym is None:
            raise KeyError(name)
        return sym.value

    def set(self, name: str, var_type: VarType, value: int, line: int = 0) -> None:
        sym = self.lookup(name)
        if sym is None:
            self._scopes[-1][name] = Symbol(name, var_type, value, self._names[-1], self._next_address)
            self._next_address += 1
            return
        if sym.type is not var_type:
            raise TypeMismatchError(name, sym.type, var_type, line)
        sym.value = value

    def rows(self) -> List[Symbol]:
        return [sym for scope in self._scopes for sym in scope.values()]
