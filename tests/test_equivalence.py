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


    Tests that the Earley parser on a grammar and the CYK parser on the
    Chomsky normal form of the grammar assign the same probabilities
    to all short strings.

"""

import os
import sys

import pytest

# Shenanigans to enable Pytest to discover modules in the
# main workspace directory (the parent of /tests)
basepath, _ = os.path.split(os.path.realpath(__file__))
mainpath = os.path.join(basepath, "..")
if mainpath not in sys.path:
    sys.path.insert(0, mainpath)

from alphabet import ID_EMPTY  # noqa
from grammar import Grammar  # noqa
from cnf import chomsky_normal  # noqa
from cykparser import CYK_Parser  # noqa
from earley import Earley_Parser  # noqa
from utility import strings_of_length  # noqa


GRAMMARS = {
    "simple": """
        3
        0 X
        1 a
        1 b
        3
        0.5 S a X
        0.5 S a b
        1.0 X b b
    """,
    "epsilon": """
        2
        0 A
        1 a
        3
        0.3 A e
        0.7 A a
        1.0 S A A
    """,
    "ambiguous": """
        1
        1 a
        2
        0.3 S S S
        0.7 S a
    """,
    "long": """
        4
        0 A
        1 a
        1 b
        1 c
        3
        0.8 S A b A c
        0.2 S c
        1.0 A a
    """,
    "mixed": """
        4
        0 A
        0 B
        1 a
        1 b
        7
        0.6 S A B
        0.4 S a
        0.5 A a A
        0.5 A e
        0.7 B b
        0.2 B A
        0.1 B b A b
    """,
}

# Grammars whose derivations map one to one onto CNF derivations
SAME_COUNTS = ("simple", "ambiguous", "long")

MAX_LENGTH = 4


def _grammar(name: str) -> Grammar:
    return Grammar.from_friendly_lines(GRAMMARS[name].splitlines())


def _inputs(g: Grammar):
    terminals = [t for t in g.alphabet.terminals if t != ID_EMPTY]
    for n in range(MAX_LENGTH + 1):
        yield from strings_of_length(terminals, n)


@pytest.mark.parametrize("name", sorted(GRAMMARS))
def test_earley_and_cyk_agree(name):
    g = _grammar(name)
    c = chomsky_normal(g)
    for s in _inputs(g):
        earley = Earley_Parser(g, s)
        # Symbol ids of the original grammar are kept by the conversion
        cyk = CYK_Parser(c, s)
        assert earley.can_generate() == cyk.can_generate(), s
        assert cyk.probability() == pytest.approx(earley.probability(), abs=1e-9), s
        if name in SAME_COUNTS:
            assert earley.num_trees() == cyk.num_trees(), s


@pytest.mark.parametrize("name", sorted(GRAMMARS))
def test_both_parsers_on_cnf_grammar(name):
    c = chomsky_normal(_grammar(name))
    al = c.alphabet
    for s in _inputs(c):
        earley = Earley_Parser(c, s)
        cyk = CYK_Parser(c, s)
        assert earley.num_trees() == cyk.num_trees(), s
        assert earley.probability() == pytest.approx(cyk.probability(), abs=1e-12), s
        if s:
            assert sorted(t.text(al) for t in earley.trees()) == sorted(
                t.text(al) for t in cyk.trees()
            )


def test_cnf_is_consistent():
    # The total probability of all strings up to a length
    # is bounded by 1 and grows with the length
    g = _grammar("ambiguous")
    c = chomsky_normal(g)
    terminals = [t for t in c.alphabet.terminals if t != ID_EMPTY]
    total = 0.0
    for n in range(1, 6):
        p = sum(CYK_Parser(c, s).probability() for s in strings_of_length(terminals, n))
        assert p > 0.0
        total += p
    assert total <= 1.0 + 1e-9


def test_example_scenario():
    g = Grammar.from_friendly_lines(
        ["4", "0 A", "0 B", "1 a", "1 b", "3", "1.0 S A B", "1.0 A a", "1.0 B b"]
    )
    for p in (Earley_Parser.for_string(g, "a b"), CYK_Parser.for_string(chomsky_normal(g), "a b")):
        assert p.can_generate()
        assert p.num_trees() == 1
        assert p.tree_root(0).reduce_product(p.grammar) == pytest.approx(1.0)


def test_ambiguity_scenario():
    g = Grammar.from_friendly_lines(
        [
            "5",
            "0 X",
            "0 Y",
            "1 a",
            "1 b",
            "1 c",
            "4",
            "0.5 S X c",
            "0.5 S a Y",
            "1.0 X a b",
            "1.0 Y b c",
        ]
    )
    for p in (
        Earley_Parser.for_string(g, "a b c"),
        CYK_Parser.for_string(chomsky_normal(g), "a b c"),
    ):
        assert p.num_trees() == 2
        t0, t1 = p.tree_root(0), p.tree_root(1)
        assert t0 != t1
        assert t0.rule_id != t1.rule_id
        assert p.probability() == pytest.approx(1.0)
