"""

    Pcfg: Probabilistic context-free grammar parsing

    Alphabet module

    Copyright (C) 2023 Miðeind ehf.

       This program is free software: you can redistribute it and/or modify
       it under the terms of the GNU General Public License as published by
       the Free Software Foundation, either version 3 of the License, or
       (at your option) any later version.
       This program is distributed in the hope that it will be useful,
       but WITHOUT ANY WARRANTY; without even the implied warranty of
       MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
       GNU General Public License for more details.

    You should have received a copy of the GNU General Public License
    along with this program.  If not, see http://www.gnu.org/licenses/.


    This module contains the symbol table (alphabet) of a grammar.

    Every symbol has a unique integer id, a terminal/nonterminal flag,
    a unique text label and an optional description. Two symbols are
    always present: the start symbol S (id 0, a nonterminal) and the
    empty string symbol e (id 1, a terminal).

    Within its category, each symbol also has a dense index, i.e. its
    rank among all terminals or among all nonterminals. The dense
    index is used for matrix indexing during CNF conversion.

    Symbols can be added at any time (the CNF conversion adds fresh
    nonterminals), but ids are never reused or renumbered.

"""

from typing import Dict, Iterable, List, Optional, Sequence


# Reserved symbol ids
ID_START = 0
ID_EMPTY = 1

START_LABEL = "S"
EMPTY_LABEL = "e"


class SymbolError(Exception):

    """Exception class for unknown or duplicate symbols"""

    def __init__(self, text: str, label: Optional[str] = None) -> None:
        super().__init__(text)
        self.label = label


class Symbol:

    """A single terminal or nonterminal symbol"""

    __slots__ = ("id", "is_terminal", "label", "description", "idx")

    def __init__(
        self,
        id: int,
        is_terminal: bool,
        label: str,
        description: Optional[str],
        idx: int,
    ) -> None:
        self.id = id
        self.is_terminal = is_terminal
        self.label = label
        self.description = description
        # Rank among the symbols of the same category
        self.idx = idx

    def __repr__(self) -> str:
        return "<{0}:{1}>".format(self.id, self.label)


class Alphabet:

    """The symbol table of a grammar"""

    def __init__(self) -> None:
        self._symbols: Dict[int, Symbol] = {}
        self._by_label: Dict[str, int] = {}
        self._terminals: List[int] = []
        self._nonterminals: List[int] = []
        self._next_id = 0
        self._insert(ID_START, START_LABEL, False, "start symbol")
        self._insert(ID_EMPTY, EMPTY_LABEL, True, "empty string")

    def _insert(
        self, id: int, label: str, is_terminal: bool, description: Optional[str]
    ) -> None:
        if label in self._by_label:
            raise SymbolError("Symbol '{0}' already exists".format(label), label)
        if id in self._symbols:
            raise SymbolError("Symbol id {0} already in use".format(id), label)
        ranks = self._terminals if is_terminal else self._nonterminals
        self._symbols[id] = Symbol(id, is_terminal, label, description, len(ranks))
        self._by_label[label] = id
        ranks.append(id)
        self._next_id = max(self._next_id, id + 1)

    def add_symbol(
        self, label: str, is_terminal: bool, description: Optional[str] = None
    ) -> int:
        """Add a new symbol and return its id"""
        if not label or any(c.isspace() for c in label):
            raise SymbolError("Invalid symbol label '{0}'".format(label), label)
        id = self._next_id
        self._insert(id, label, is_terminal, description)
        return id

    def fresh_label(self, base: str) -> str:
        """Return the first unused label of the form base_1, base_2, ..."""
        j = 1
        while "{0}_{1}".format(base, j) in self._by_label:
            j += 1
        return "{0}_{1}".format(base, j)

    def find_symbol_id(self, label: str) -> int:
        """Return the id of the symbol with the given label"""
        try:
            return self._by_label[label]
        except KeyError:
            raise SymbolError("Unknown symbol '{0}'".format(label), label)

    def _symbol(self, id: int) -> Symbol:
        try:
            return self._symbols[id]
        except KeyError:
            raise SymbolError("Unknown symbol id {0}".format(id))

    def has_symbol(self, id: int) -> bool:
        return id in self._symbols

    def is_terminal(self, id: int) -> bool:
        return self._symbol(id).is_terminal

    @staticmethod
    def is_empty_string_symbol(id: int) -> bool:
        return id == ID_EMPTY

    def label(self, id: int) -> str:
        return self._symbol(id).label

    def description(self, id: int) -> Optional[str]:
        return self._symbol(id).description

    def get_idx(self, id: int) -> int:
        """Return the dense index of a symbol within its category"""
        return self._symbol(id).idx

    def get_id_terminal(self, idx: int) -> int:
        return self._terminals[idx]

    def get_id_nonterminal(self, idx: int) -> int:
        return self._nonterminals[idx]

    @property
    def num_terminals(self) -> int:
        return len(self._terminals)

    @property
    def num_nonterminals(self) -> int:
        return len(self._nonterminals)

    @property
    def terminals(self) -> Sequence[int]:
        """The ids of all terminals, in dense index order"""
        return tuple(self._terminals)

    @property
    def nonterminals(self) -> Sequence[int]:
        """The ids of all nonterminals, in dense index order"""
        return tuple(self._nonterminals)

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, label: str) -> bool:
        return label in self._by_label

    def tokenize(self, text: str) -> List[int]:
        """Split a string on whitespace and convert each token
        to the id of the symbol having that label"""
        return [self.find_symbol_id(tok) for tok in text.split()]

    def format_string(self, ids: Iterable[int]) -> str:
        """Return the labels of a sequence of symbol ids, space separated"""
        return " ".join(self.label(id) for id in ids)

    def symbols_text(self) -> str:
        """Return a human-readable listing of all symbols"""
        lines = []
        for title, ids in (
            ("Nonterminals", self._nonterminals),
            ("Terminals", self._terminals),
        ):
            lines.append("{0} ({1}):".format(title, len(ids)))
            for id in ids:
                sym = self._symbols[id]
                d = " ({0})".format(sym.description) if sym.description else ""
                lines.append("  {0:>4} {1}{2}".format(id, sym.label, d))
        return "\n".join(lines) + "\n"

    def clone(self) -> "Alphabet":
        """Return an independent copy of this alphabet"""
        al = Alphabet.__new__(Alphabet)
        al._symbols = {
            id: Symbol(s.id, s.is_terminal, s.label, s.description, s.idx)
            for id, s in self._symbols.items()
        }
        al._by_label = dict(self._by_label)
        al._terminals = list(self._terminals)
        al._nonterminals = list(self._nonterminals)
        al._next_id = self._next_id
        return al

    def symbol_lines(self, is_terminal: bool) -> List[str]:
        """Return 'id label description' lines for one category,
        in dense index order"""
        result = []
        for id in self._terminals if is_terminal else self._nonterminals:
            sym = self._symbols[id]
            s = "{0} {1}".format(id, sym.label)
            if sym.description:
                s += " " + sym.description
            result.append(s)
        return result

    @classmethod
    def from_lines(cls, nt_lines: Iterable[str], t_lines: Iterable[str]) -> "Alphabet":
        """Rebuild an alphabet from 'id label description' lines, as
        produced by symbol_lines(). The reserved symbols must be included."""
        al = cls.__new__(cls)
        al._symbols = {}
        al._by_label = {}
        al._terminals = []
        al._nonterminals = []
        al._next_id = 0
        for is_terminal, lines in ((False, nt_lines), (True, t_lines)):
            for s in lines:
                a = s.strip().split(" ", 2)
                if len(a) < 2:
                    raise SymbolError("Invalid symbol line '{0}'".format(s))
                try:
                    id = int(a[0])
                except ValueError:
                    raise SymbolError("Invalid symbol id in line '{0}'".format(s))
                description = a[2].strip() if len(a) == 3 and a[2].strip() else None
                al._insert(id, a[1], is_terminal, description)
        for id, label, is_terminal in (
            (ID_START, START_LABEL, False),
            (ID_EMPTY, EMPTY_LABEL, True),
        ):
            sym = al._symbols.get(id)
            if sym is None or sym.is_terminal != is_terminal:
                raise SymbolError(
                    "Reserved symbol {0} (id {1}) is missing".format(label, id), label
                )
        return al
