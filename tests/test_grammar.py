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


    Tests for grammars, rules and the grammar file formats.

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

from alphabet import Alphabet, ID_START, ID_EMPTY  # noqa
from grammar import Grammar, GrammarError, Rule  # noqa


FRIENDLY = """
# A small grammar
3                  # Symbols
0 A
1 a  letter a
1 b
4                  # Rules
0.7 S A b
0.3 S e
0.5 A a
0.5 A A a
"""


def _friendly(text: str) -> Grammar:
    return Grammar.from_friendly_lines(text.splitlines())


def test_rule_equality_ignores_probability():
    r1 = Rule(3, (2, 4), 0.25)
    r2 = Rule(3, [2, 4], 0.75)
    assert r1 == r2
    assert hash(r1) == hash(r2)
    assert r1 != Rule(3, (4, 2), 0.25)
    assert r1 != Rule(2, (2, 4), 0.25)
    assert len({r1, r2}) == 1
    assert len(r1) == 2
    assert r1[1] == 4
    assert r1.with_probability(0.5).probability == 0.5
    assert r1.probability == 0.25


def test_add_rule_validates_symbols():
    al = Alphabet()
    a = al.add_symbol("a", True)
    g = Grammar(al)
    assert g.add_rule(Rule(ID_START, (a,), 1.0)) == 0
    with pytest.raises(GrammarError):
        g.add_rule(Rule(ID_START, (a, 42), 1.0))
    with pytest.raises(GrammarError):
        g.add_rule(Rule(42, (a,), 1.0))
    with pytest.raises(GrammarError):
        g.add_rule(Rule(a, (a,), 1.0))
    assert g.num_rules == 1


def test_grammar_owns_its_alphabet():
    al = Alphabet()
    g = Grammar(al)
    al.add_symbol("a", True)
    assert "a" not in g.alphabet


def test_friendly_reader():
    g = _friendly(FRIENDLY)
    al = g.alphabet
    A = al.find_symbol_id("A")
    a = al.find_symbol_id("a")
    b = al.find_symbol_id("b")
    assert al.description(a) == "letter a"
    assert g.num_rules == 4
    assert g.rule(0) == Rule(ID_START, (A, b))
    assert g.rule(0).probability == 0.7
    assert g.rule(1) == Rule(ID_START, (ID_EMPTY,))
    assert [ix for ix, _ in g.rules_for(A)] == [2, 3]
    assert g.is_proper()


def test_friendly_reader_errors():
    with pytest.raises(GrammarError) as e:
        _friendly("1\n0 A\n1\n1.0 S A c\n")
    assert e.value.line == 4
    assert "Line 4" in str(e.value)
    with pytest.raises(GrammarError):
        _friendly("1\n2 A\n0\n")
    with pytest.raises(GrammarError):
        _friendly("1\n0 A\n1\nx S A\n")
    with pytest.raises(GrammarError):
        _friendly("1\n0 A\n")
    with pytest.raises(GrammarError):
        # Duplicate symbol
        _friendly("2\n0 A\n1 A\n0\n")


def test_machine_format_round_trip():
    g = _friendly(FRIENDLY)
    text = g.dumps()
    lines = text.splitlines()
    assert lines[0] == "2"
    assert lines[1] == "0 S start symbol"
    assert lines[2] == "2 A"
    assert lines[3] == "3"
    assert lines[4] == "1 e empty string"
    assert lines[5] == "3 a letter a"
    assert lines[6] == "4 b"
    assert lines[7] == "4"
    assert lines[8] == "0.7 0 2 4"
    assert all(s == s.rstrip() for s in lines)
    g2 = Grammar.loads(text)
    assert g2.dumps() == text
    assert g2.rules == g.rules
    assert [r.probability for r in g2] == [r.probability for r in g]


def test_dump_and_load_file(tmp_path):
    g = _friendly(FRIENDLY)
    fname = str(tmp_path / "g.txt")
    g.dump(fname)
    g2 = Grammar.load(fname)
    assert g2.rules_text() == g.rules_text()
    with pytest.raises(GrammarError):
        Grammar.load(str(tmp_path / "missing.txt"))


def test_load_errors():
    with pytest.raises(GrammarError):
        Grammar.loads("")
    with pytest.raises(GrammarError):
        Grammar.loads("1\n0 S\n1\n1 e\n1\n1.0 0 7\n")
    with pytest.raises(GrammarError) as e:
        Grammar.loads("1\n0 S\n1\n1 e\n1\nfoo 0 1\n", "g.txt")
    assert e.value.fname == "g.txt"
    assert e.value.line == 6
    with pytest.raises(GrammarError):
        # Missing reserved symbols
        Grammar.loads("1\n3 A\n0\n0\n")


def test_without_empty_symbol():
    g = _friendly(FRIENDLY)
    g2 = g.without_empty_symbol()
    assert g2.rule(1).rhs == ()
    assert g2.rule(1).probability == 0.3
    # The original is unchanged
    assert g.rule(1).rhs == (ID_EMPTY,)


def test_rules_text():
    g = _friendly(FRIENDLY)
    lines = g.rules_text().splitlines()
    assert lines == sorted(lines)
    assert "S -> A b (pr = 0.7)" in lines
    assert "A -> A a (pr = 0.5)" in lines


def test_clone():
    g = _friendly(FRIENDLY)
    c = g.clone()
    c.add_rule(Rule(ID_START, (ID_EMPTY,), 0.1))
    assert c.num_rules == 5
    assert g.num_rules == 4


def test_load_tolerates_trailing_spaces():
    text = "2 \n0 S \n2 A \n3 \n1 e \n3 a \n4 b \n2 \n1.0 0 2 4 \n1.0 2 3 \n"
    g = Grammar.loads(text)
    al = g.alphabet
    assert al.label(2) == "A"
    assert al.is_terminal(4)
    assert g.rules == (Rule(ID_START, (2, 4)), Rule(2, (3,)))
    # Written back without trailing spaces
    assert all(s == s.rstrip() for s in g.dumps().splitlines())
