"""

    Pcfg: Probabilistic context-free grammar parsing

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


    Tests for parse trees and their navigation, printing and DOT rendering.

"""

import io
import os
import sys

import pytest

# Shenanigans to enable Pytest to discover modules in the
# main workspace directory (the parent of /tests)
basepath, _ = os.path.split(os.path.realpath(__file__))
mainpath = os.path.join(basepath, "..")
if mainpath not in sys.path:
    sys.path.insert(0, mainpath)

from alphabet import ID_START  # noqa
from grammar import Grammar  # noqa
from forest import (  # noqa
    NO_RULE_ID,
    Node,
    ParseForestDotter,
    ParseForestNavigator,
    ParseForestPrinter,
    Payload,
)


GRAMMAR = """
3
0 X
1 a letter a
1 b
2
0.5 S a X
0.25 X b b
"""


@pytest.fixture
def grammar() -> Grammar:
    return Grammar.from_friendly_lines(GRAMMAR.splitlines())


def _tree(g: Grammar) -> Node:
    """Build S [a, X [b, b]] by hand"""
    al = g.alphabet
    a, b, X = (al.find_symbol_id(s) for s in ("a", "b", "X"))
    x = Node(Payload("cyk", 3, 1, X))
    x.add_child(Node(Payload("leaf", 4, NO_RULE_ID, b)))
    x.add_child(Node(Payload("leaf", 5, NO_RULE_ID, b)))
    root = Node(Payload("cyk", 1, 0, ID_START))
    root.add_child(Node(Payload("leaf", 2, NO_RULE_ID, a)))
    root.add_child(x)
    return root


def test_node_accessors(grammar):
    root = _tree(grammar)
    assert root.id == 1
    assert root.rule_id == 0
    assert root.symbol_id == ID_START
    assert not root.is_leaf
    assert root.children[0].is_leaf
    assert root.payload == Payload("cyk", 1, 0, ID_START)


def test_folds(grammar):
    root = _tree(grammar)
    assert root.reduce_product(grammar) == pytest.approx(0.125)
    assert root.reduce_sum(grammar) == pytest.approx(0.75)
    # A lone leaf contributes nothing
    leaf = root.children[0]
    assert leaf.reduce_product(grammar) == 1.0
    assert leaf.reduce_sum(grammar) == 0.0


def test_leaves_and_text(grammar):
    root = _tree(grammar)
    al = grammar.alphabet
    assert [al.label(n.symbol_id) for n in root.leaves()] == ["a", "b", "b"]
    assert root.text(al) == "S [a, X [b, b]]"
    assert str(root) == "0 [3, 2 [4, 4]]"


def test_structural_equality(grammar):
    t1 = _tree(grammar)
    t2 = _tree(grammar)
    assert t1 == t2
    assert t1 is not t2
    t2.children[1].add_child(Node(Payload("leaf", 9, NO_RULE_ID, 2)))
    assert t1 != t2


class _Counter(ParseForestNavigator):

    """Count the leaves below each nonterminal"""

    def _visit_leaf(self, level, node):
        return 1

    def _visit_nonterminal(self, level, node):
        return []

    def _add_result(self, results, ix, r):
        results.append(r)

    def _process_results(self, results, node):
        return sum(results)


def test_navigator(grammar):
    assert _Counter().go(_tree(grammar)) == 3


def test_navigator_can_skip_children(grammar):
    class _Skipper(_Counter):
        def _visit_nonterminal(self, level, node):
            if node.symbol_id != ID_START:
                return NotImplemented
            return []

        def _process_results(self, results, node):
            return sum(r for r in results if r is not NotImplemented)

    assert _Skipper().go(_tree(grammar)) == 1


def test_printer(grammar):
    f = io.StringIO()
    ParseForestPrinter.print_forest(_tree(grammar), grammar, file=f, show_probabilities=True)
    assert f.getvalue().splitlines() == [
        "S [0.5]",
        "  'a'",
        "  X [0.25]",
        "    'b'",
        "    'b'",
    ]
    f = io.StringIO()
    ParseForestPrinter.print_forest(_tree(grammar), grammar, file=f, show_ids=True)
    assert f.getvalue().splitlines()[0] == "S @ 1"


def test_dot(grammar):
    dot = ParseForestDotter.dot(_tree(grammar), grammar, "tree_0")
    lines = dot.splitlines()
    assert lines[0] == "digraph tree_0 {"
    assert lines[-1] == "}"
    assert '  str [shape=record width=3, label="<2> a\\nletter a | <4> b | <5> b"];' in lines
    assert '  "1"[label="S [0.5]"];' in lines
    assert '  "1" -> str:"2";' in lines
    assert '  "1" -> "3";' in lines
    assert '  "3" -> str:"5";' in lines
