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


    Tests for the alphabet (symbol table).

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

from alphabet import (  # noqa
    Alphabet,
    SymbolError,
    ID_START,
    ID_EMPTY,
    START_LABEL,
    EMPTY_LABEL,
)


def test_reserved_symbols():
    al = Alphabet()
    assert len(al) == 2
    assert al.find_symbol_id(START_LABEL) == ID_START
    assert al.find_symbol_id(EMPTY_LABEL) == ID_EMPTY
    assert not al.is_terminal(ID_START)
    assert al.is_terminal(ID_EMPTY)
    assert al.is_empty_string_symbol(ID_EMPTY)
    assert not al.is_empty_string_symbol(ID_START)
    assert al.num_terminals == 1
    assert al.num_nonterminals == 1


def test_add_symbols_and_dense_indices():
    al = Alphabet()
    a = al.add_symbol("a", True, "letter a")
    A = al.add_symbol("A", False)
    b = al.add_symbol("b", True)
    B = al.add_symbol("B", False)
    # Ids are assigned in order of creation
    assert (a, A, b, B) == (2, 3, 4, 5)
    # Dense indices are ranks within each category
    assert al.get_idx(ID_START) == 0
    assert al.get_idx(A) == 1
    assert al.get_idx(B) == 2
    assert al.get_idx(ID_EMPTY) == 0
    assert al.get_idx(a) == 1
    assert al.get_idx(b) == 2
    assert al.get_id_nonterminal(2) == B
    assert al.get_id_terminal(1) == a
    assert al.terminals == (ID_EMPTY, a, b)
    assert al.nonterminals == (ID_START, A, B)
    assert al.description(a) == "letter a"
    assert al.description(b) is None
    assert "A" in al
    assert "C" not in al


def test_symbol_errors():
    al = Alphabet()
    al.add_symbol("a", True)
    with pytest.raises(SymbolError):
        al.add_symbol("a", False)
    with pytest.raises(SymbolError):
        al.add_symbol("S", False)
    with pytest.raises(SymbolError):
        al.add_symbol("", True)
    with pytest.raises(SymbolError):
        al.add_symbol("two words", True)
    with pytest.raises(SymbolError) as e:
        al.find_symbol_id("nope")
    assert e.value.label == "nope"
    with pytest.raises(SymbolError):
        al.label(99)


def test_fresh_label():
    al = Alphabet()
    al.add_symbol("A", False)
    assert al.fresh_label("A") == "A_1"
    al.add_symbol("A_1", False)
    al.add_symbol("A_2", False)
    assert al.fresh_label("A") == "A_3"


def test_tokenize_and_format():
    al = Alphabet()
    a = al.add_symbol("a", True)
    b = al.add_symbol("b", True)
    assert al.tokenize("a b  a") == [a, b, a]
    assert al.tokenize("") == []
    assert al.format_string([b, a]) == "b a"
    with pytest.raises(SymbolError):
        al.tokenize("a c")


def test_clone_is_independent():
    al = Alphabet()
    al.add_symbol("a", True)
    c = al.clone()
    c.add_symbol("X", False)
    assert "X" in c
    assert "X" not in al
    assert len(al) == 3
    assert len(c) == 4


def test_symbol_lines_round_trip():
    al = Alphabet()
    al.add_symbol("a", True, "the letter a")
    al.add_symbol("A", False)
    nt = al.symbol_lines(False)
    t = al.symbol_lines(True)
    assert nt == ["0 S start symbol", "3 A"]
    assert t == ["1 e empty string", "2 a the letter a"]
    al2 = Alphabet.from_lines(nt, t)
    assert al2.symbol_lines(False) == nt
    assert al2.symbol_lines(True) == t
    assert al2.find_symbol_id("A") == 3
    # New symbols continue after the highest id
    assert al2.add_symbol("b", True) == 4


def test_from_lines_requires_reserved_symbols():
    with pytest.raises(SymbolError):
        Alphabet.from_lines(["0 S"], ["2 a"])
    with pytest.raises(SymbolError):
        Alphabet.from_lines(["0 S", "x A"], ["1 e"])
