"""

    Pcfg: Probabilistic context-free grammar parsing

    CYK parser module

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


    This module implements a Cocke-Younger-Kasami (CYK) chart parser
    for grammars in Chomsky normal form, as produced by cnf.py.

    The chart is triangular: cell [end][start] holds the entries for the
    span of input symbols start..end (inclusive). The diagonal cells are
    seeded with the input terminals. Each entry of a longer span records
    the symbol it derives, the split point k and the positions of its
    left child in cell [k][start] and of its right child in cell
    [end][k + 1], plus the id of the rule that combined them.

    A cell may contain several entries for the same symbol. Each of them
    stands for a different derivation of the span, so the number of
    entries for the start symbol in the top cell is the number of parse
    trees. The combinatorial fan-out of ambiguous grammars is intended.

    The only rules that are not binary are the start symbol rules S -> e
    and S -> a, which are used for the empty input and for inputs of
    length one, respectively.

"""

from typing import Dict, List, Sequence

from alphabet import ID_START, ID_EMPTY
from baseparser import Base_Parser
from forest import Node, Payload, NO_RULE_ID
from grammar import Grammar


class CYK_Entry:

    """An entry within a cell of the CYK chart"""

    __slots__ = ("id", "symbol_id", "split", "left", "right", "rule_id")

    def __init__(
        self,
        id: int,
        symbol_id: int,
        split: int = -1,
        left: int = -1,
        right: int = -1,
        rule_id: int = NO_RULE_ID,
    ) -> None:
        self.id = id
        self.symbol_id = symbol_id
        # Split index: the left child spans start..split
        self.split = split
        # Positions of the children within their cells
        self.left = left
        self.right = right
        self.rule_id = rule_id

    @property
    def payload(self) -> Payload:
        return Payload("cyk", self.id, self.rule_id, self.symbol_id)

    def __repr__(self) -> str:
        return "<{0}: {1} k={2} ({3}, {4}) r={5}>".format(
            self.id, self.symbol_id, self.split, self.left, self.right, self.rule_id
        )


class CYK_Parser(Base_Parser):

    """Parses an input against a grammar in Chomsky normal form"""

    def __init__(self, grammar: Grammar, symbols: Sequence[int]) -> None:
        super().__init__(grammar, symbols)
        # Entry ids are unique within this parser instance
        self._next_id = 0
        self._chart: List[List[List[CYK_Entry]]] = []
        # For each cell, the positions of the entries for each symbol
        self._index: List[List[Dict[int, List[int]]]] = []
        # Rule ids of S -> e rules, used if the input is empty
        self._empty_rules: List[int] = []
        self._parse()
        self._log_summary()

    def _new_entry(self, *args: int) -> CYK_Entry:
        e = CYK_Entry(self._next_id, *args)
        self._next_id += 1
        return e

    @staticmethod
    def _make_index(cell: List[CYK_Entry]) -> Dict[int, List[int]]:
        index: Dict[int, List[int]] = {}
        for pos, e in enumerate(cell):
            index.setdefault(e.symbol_id, []).append(pos)
        return index

    def _parse(self) -> None:
        g = self._grammar
        tokens = self._symbols
        n = len(tokens)

        if n == 0:
            self._empty_rules = [
                ix for ix, r in enumerate(g) if r.lhs == ID_START and r.rhs == (ID_EMPTY,)
            ]
            return

        chart: List[List[List[CYK_Entry]]] = [
            [[] for _ in range(end + 1)] for end in range(n)
        ]
        index: List[List[Dict[int, List[int]]]] = [
            [{} for _ in range(end + 1)] for end in range(n)
        ]
        self._chart = chart
        self._index = index

        # Seed the diagonal with the input terminals
        for i, t in enumerate(tokens):
            chart[i][i].append(self._new_entry(t))
            index[i][i] = self._make_index(chart[i][i])

        if n == 1:
            # A single terminal can only be derived by a rule S -> a
            cell = chart[0][0]
            for ix, r in enumerate(g):
                if r.lhs == ID_START and len(r) == 1 and r[0] == tokens[0]:
                    cell.append(self._new_entry(ID_START, -1, 0, -1, ix))
            index[0][0] = self._make_index(cell)
            return

        binary = [(ix, r) for ix, r in enumerate(g) if len(r) == 2]

        for s in range(1, n):
            for i in range(n - s):
                cell = chart[i + s][i]
                for k in range(i, i + s):
                    left_index = index[k][i]
                    right_index = index[i + s][k + 1]
                    if not left_index or not right_index:
                        continue
                    for ix, r in binary:
                        lefts = left_index.get(r[0])
                        if not lefts:
                            continue
                        rights = right_index.get(r[1])
                        if not rights:
                            continue
                        # Add a new entry for each pair of matching children
                        for left in lefts:
                            for right in rights:
                                cell.append(
                                    self._new_entry(r.lhs, k, left, right, ix)
                                )
                index[i + s][i] = self._make_index(cell)

    def cell(self, end: int, start: int) -> Sequence[CYK_Entry]:
        """Return the entries of the chart cell for the span start..end"""
        return tuple(self._chart[end][start])

    def _roots(self) -> List[int]:
        """Return the positions of the start symbol entries in the top cell"""
        if not self._chart:
            return []
        n = len(self._symbols)
        return self._index[n - 1][0].get(ID_START, [])

    def num_trees(self) -> int:
        if not self._symbols:
            return len(self._empty_rules)
        return len(self._roots())

    def _build(self, end: int, start: int, pos: int) -> Node:
        e = self._chart[end][start][pos]
        node = Node(e.payload)
        if e.rule_id == NO_RULE_ID:
            # Terminal: leaf node
            return node
        if e.right < 0:
            # Start symbol over a single terminal
            node.add_child(self._build(end, start, e.left))
        else:
            node.add_child(self._build(e.split, start, e.left))
            node.add_child(self._build(end, e.split + 1, e.right))
        return node

    def tree_root(self, ix: int) -> Node:
        self._check_tree_index(ix)
        if not self._symbols:
            # Empty input: S -> e
            root = Node(Payload("cyk", self._next_id, self._empty_rules[ix], ID_START))
            root.add_child(Node(Payload("cyk", self._next_id + 1, NO_RULE_ID, ID_EMPTY)))
            self._next_id += 2
            return root
        n = len(self._symbols)
        return self._build(n - 1, 0, self._roots()[ix])
