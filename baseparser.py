"""
    Pcfg: Probabilistic context-free grammar parsing

    Parser base module

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


    This module defines a base parser class. The base is used in
    CYK_Parser (see cykparser.py) and Earley_Parser (see earley.py).

"""

from typing import Iterator, List, Sequence

import logging

from alphabet import ID_EMPTY
from forest import Node
from grammar import Grammar


class ParseError(Exception):

    """Exception class for parser errors"""

    def __init__(self, txt: str, token_index: int = -1) -> None:
        super().__init__(txt)
        self._token_index = token_index

    @property
    def token_index(self) -> int:
        """Return the 0-based index of the offending input symbol, or -1"""
        return self._token_index


class Base_Parser:

    """Parses a sequence of terminal symbol ids according to a given
    grammar. Parsing happens in the constructor; afterwards, the
    parser reports whether the grammar can generate the sequence,
    how many derivations there are, and the parse tree of each one."""

    def __init__(self, grammar: Grammar, symbols: Sequence[int]) -> None:
        """Initialize a parser for a given grammar and input"""
        al = grammar.alphabet
        for ix, id in enumerate(symbols):
            if id == ID_EMPTY:
                raise ParseError(
                    "The empty string symbol cannot appear in the input", ix
                )
            if not al.has_symbol(id) or not al.is_terminal(id):
                raise ParseError("Input symbol {0} is not a terminal".format(id), ix)
        self._grammar = grammar
        self._symbols: List[int] = list(symbols)

    @classmethod
    def for_string(cls, grammar: Grammar, text: str) -> "Base_Parser":
        """Create a parser for a whitespace-separated string of terminal labels"""
        return cls(grammar, grammar.alphabet.tokenize(text))

    @property
    def grammar(self) -> Grammar:
        """The grammar whose rule ids appear in the parse trees"""
        return self._grammar

    @property
    def symbols(self) -> List[int]:
        return self._symbols

    def can_generate(self) -> bool:
        """Return True if the grammar generates the input"""
        return self.num_trees() > 0

    def num_trees(self) -> int:
        """Return the number of distinct derivations of the input"""
        raise NotImplementedError

    def tree_root(self, ix: int) -> Node:
        """Return the parse tree of the ix-th derivation"""
        raise NotImplementedError

    def _check_tree_index(self, ix: int) -> None:
        n = self.num_trees()
        if not 0 <= ix < n:
            raise ParseError(
                "Tree index {0} out of range; there are {1} trees".format(ix, n)
            )

    def trees(self) -> Iterator[Node]:
        """Enumerate the parse trees of all derivations"""
        for ix in range(self.num_trees()):
            yield self.tree_root(ix)

    def probability(self) -> float:
        """Return the total probability of the input, summed over
        all derivations"""
        g = self.grammar
        return sum(tree.reduce_product(g) for tree in self.trees())

    def _log_summary(self) -> None:
        logging.debug(
            "{0}: {1} input symbols, {2} trees".format(
                self.__class__.__name__, len(self._symbols), self.num_trees()
            )
        )
