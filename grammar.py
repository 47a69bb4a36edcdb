"""

    Pcfg: Probabilistic context-free grammar parsing

    Grammar module

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


    This module contains the probabilistic grammar: an alphabet
    (see alphabet.py) and an ordered list of rules.

    A rule has the form A -> B1 B2 ... Bk with a probability attached.
    The right hand side may be empty. An epsilon rule is conventionally
    written A -> e, where e is the empty string symbol.

    The position of a rule within the grammar's rule list is its rule id,
    which the parsers store in their chart entries.

    Two text formats are supported:

    The machine format, written by Grammar.dump() and read back by
    Grammar.load(), lists the symbols and rules by id:

        <number of nonterminals>
        <id> <label> <description>          (one line per nonterminal)
        <number of terminals>
        <id> <label> <description>          (one line per terminal)
        <number of rules>
        <probability> <from> <to0> <to1> ... (one line per rule)

    Fields are separated by single spaces, without trailing spaces, and
    nonterminal lines carry a description when the symbol has one. Files
    with trailing spaces after each field, or with nonterminal lines that
    hold only an id and a label, are read as well.

    The friendly format, read by Grammar.read_friendly(), uses labels:

        # Comments start with # signs
        3                   # Number of symbols to add
        0 A                 # 0 = nonterminal, 1 = terminal
        1 a letter a        # The remainder of the line is a description
        1 b
        3                   # Number of rules
        0.7 S A b           # Probability, left hand side, right hand side
        0.3 S e
        1.0 A a

    The start symbol S and the empty string symbol e are always present.

"""

from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from collections import defaultdict

from alphabet import Alphabet, SymbolError, ID_EMPTY


class GrammarError(Exception):

    """Exception class for errors in a grammar"""

    def __init__(self, text: str, fname: Optional[str] = None, line: int = 0) -> None:

        """A GrammarError contains an error text and optionally the name
        of a grammar file and a line number where the error occurred"""

        super().__init__(text)
        self.fname = fname
        self.line = line

    def augment(self, fname: Optional[str], line: int) -> None:
        """Add filename and line information, if missing"""
        if self.fname is None:
            self.fname = fname
        if self.line == 0:
            self.line = line

    def __str__(self) -> str:
        """Create a string representation showing the file name and
        line number where the error originated, if available"""
        prefix = ""
        if self.line:
            prefix = "Line " + str(self.line) + ": "
        if self.fname:
            prefix = self.fname + " - " + prefix
        return prefix + super().__str__()


class Rule:

    """A rule of the form lhs -> rhs[0] rhs[1] ... with a probability.
    Rules are immutable. Two rules are equal if their left and
    right hand sides are equal; the probability is not compared."""

    __slots__ = ("_lhs", "_rhs", "_probability", "_hash")

    def __init__(self, lhs: int, rhs: Iterable[int], probability: float = 1.0) -> None:
        self._lhs = lhs
        self._rhs = tuple(rhs)
        self._probability = float(probability)
        self._hash = hash((self._lhs, self._rhs))

    @property
    def lhs(self) -> int:
        return self._lhs

    @property
    def rhs(self) -> Tuple[int, ...]:
        return self._rhs

    @property
    def probability(self) -> float:
        return self._probability

    def with_probability(self, probability: float) -> "Rule":
        """Return a copy of this rule having another probability"""
        return Rule(self._lhs, self._rhs, probability)

    def __len__(self) -> int:
        """Return the length of the right hand side"""
        return len(self._rhs)

    def __getitem__(self, index: int) -> int:
        return self._rhs[index]

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, Rule)
            and self._lhs == other._lhs
            and self._rhs == other._rhs
        )

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return self._hash

    def __repr__(self) -> str:
        return "{0} -> {1} ({2})".format(
            self._lhs, " ".join(str(s) for s in self._rhs), self._probability
        )


class Grammar:

    """A probabilistic context-free grammar, consisting of an
    alphabet and an ordered list of rules"""

    def __init__(self, alphabet: Alphabet) -> None:
        # The grammar owns a private copy of the alphabet
        self._alphabet = alphabet.clone()
        self._rules: List[Rule] = []

    @property
    def alphabet(self) -> Alphabet:
        """Return the alphabet of this grammar. The caller should
        clone it before making modifications."""
        return self._alphabet

    def add_rule(self, rule: Rule) -> int:
        """Add a rule to the grammar and return its rule id"""
        al = self._alphabet
        for id in (rule.lhs,) + rule.rhs:
            if not al.has_symbol(id):
                raise GrammarError(
                    "Rule {0} refers to unknown symbol id {1}".format(rule, id)
                )
        if al.is_terminal(rule.lhs):
            raise GrammarError(
                "Rule {0} has terminal '{1}' as its left hand side".format(
                    rule, al.label(rule.lhs)
                )
            )
        self._rules.append(rule)
        return len(self._rules) - 1

    def clone(self) -> "Grammar":
        """Return an independent copy of this grammar"""
        g = Grammar(self._alphabet)
        # Rules are immutable and can be shared
        g._rules = list(self._rules)
        return g

    def rule(self, ix: int) -> Rule:
        """Return the rule with the given rule id"""
        return self._rules[ix]

    @property
    def rules(self) -> Sequence[Rule]:
        return tuple(self._rules)

    @property
    def num_rules(self) -> int:
        return len(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def rules_for(self, lhs: int) -> List[Tuple[int, Rule]]:
        """Return (rule id, rule) pairs for all rules of a nonterminal"""
        return [(ix, r) for ix, r in enumerate(self._rules) if r.lhs == lhs]

    def without_empty_symbol(self) -> "Grammar":
        """Return a copy where rules of the form A -> e have
        an empty right hand side instead"""
        g = Grammar(self._alphabet)
        g._rules = [
            Rule(r.lhs, (), r.probability) if r.rhs == (ID_EMPTY,) else r
            for r in self._rules
        ]
        return g

    def is_proper(self, tolerance: float = 1e-9) -> bool:
        """Return True if the rule probabilities of each left hand
        side symbol sum to 1"""
        totals: Dict[int, float] = defaultdict(float)
        for r in self._rules:
            totals[r.lhs] += r.probability
        return all(abs(t - 1.0) <= tolerance for t in totals.values())

    def rule_text(self, rule: Rule) -> str:
        """Return a labelled text representation of a rule"""
        al = self._alphabet
        return "{0} -> {1} (pr = {2})".format(
            al.label(rule.lhs), al.format_string(rule.rhs), rule.probability
        )

    def rules_text(self) -> str:
        """Return a sorted, human-readable listing of the rules"""
        return "".join(sorted(self.rule_text(r) + "\n" for r in self._rules))

    def dumps(self) -> str:
        """Return the grammar in the machine format"""
        al = self._alphabet
        lines = [str(al.num_nonterminals)]
        lines.extend(al.symbol_lines(False))
        lines.append(str(al.num_terminals))
        lines.extend(al.symbol_lines(True))
        lines.append(str(len(self._rules)))
        for r in self._rules:
            lines.append(
                " ".join([str(r.probability), str(r.lhs)] + [str(s) for s in r.rhs])
            )
        return "\n".join(lines) + "\n"

    def dump(self, fname: str) -> None:
        """Write the grammar to a text file in the machine format"""
        with open(fname, "w", encoding="utf-8") as f:
            f.write(self.dumps())

    @classmethod
    def loads(cls, text: str, fname: Optional[str] = None) -> "Grammar":
        """Create a grammar from a string in the machine format"""
        lines = text.splitlines()
        pos = 0

        def _count() -> int:
            nonlocal pos
            if pos >= len(lines):
                raise GrammarError("Unexpected end of grammar", fname, pos)
            try:
                n = int(lines[pos].strip())
            except ValueError:
                raise GrammarError("Expected a count", fname, pos + 1)
            pos += 1
            if n < 0 or pos + n > len(lines):
                raise GrammarError("Invalid count {0}".format(n), fname, pos)
            return n

        def _block(n: int) -> List[str]:
            nonlocal pos
            block = lines[pos : pos + n]
            pos += n
            return block

        nt_lines = _block(_count())
        t_lines = _block(_count())
        try:
            al = Alphabet.from_lines(nt_lines, t_lines)
        except SymbolError as e:
            raise GrammarError(str(e), fname)
        g = cls(al)
        n = _count()
        for line, s in enumerate(_block(n), start=pos - n + 1):
            a = s.split()
            try:
                g.add_rule(Rule(int(a[1]), (int(t) for t in a[2:]), float(a[0])))
            except (ValueError, IndexError):
                raise GrammarError("Invalid rule '{0}'".format(s), fname, line)
            except GrammarError as e:
                e.augment(fname, line)
                raise e
        return g

    @classmethod
    def load(cls, fname: str) -> "Grammar":
        """Read a grammar from a text file in the machine format"""
        try:
            with open(fname, "r", encoding="utf-8") as f:
                text = f.read()
        except (IOError, OSError):
            raise GrammarError("Unable to open or read grammar file", fname, 0)
        return cls.loads(text, fname)

    @classmethod
    def from_friendly_lines(
        cls, lines: Iterable[str], fname: Optional[str] = None
    ) -> "Grammar":
        """Create a grammar from lines in the friendly format"""

        # Strip comments and blank lines, remembering line numbers
        content: List[Tuple[int, str]] = []
        for line, s in enumerate(lines, start=1):
            ix = s.find("#")
            if ix >= 0:
                s = s[0:ix]
            s = s.strip()
            if s:
                content.append((line, s))

        it = iter(content)

        def _count(what: str) -> int:
            try:
                line, s = next(it)
            except StopIteration:
                raise GrammarError("Missing number of {0}".format(what), fname, 0)
            try:
                return int(s)
            except ValueError:
                raise GrammarError("Expected number of {0}".format(what), fname, line)

        al = Alphabet()
        for _ in range(_count("symbols")):
            line, s = next(it, (0, ""))
            a = s.split(" ", 2)
            if len(a) < 2 or a[0] not in ("0", "1"):
                raise GrammarError("Invalid symbol definition '{0}'".format(s), fname, line)
            description = a[2].strip() if len(a) == 3 else None
            try:
                al.add_symbol(a[1], a[0] == "1", description or None)
            except SymbolError as e:
                raise GrammarError(str(e), fname, line)

        g = cls(al)
        # Use the grammar's own copy of the alphabet from here on
        al = g.alphabet
        for _ in range(_count("rules")):
            line, s = next(it, (0, ""))
            a = s.split()
            if len(a) < 2:
                raise GrammarError("Invalid rule '{0}'".format(s), fname, line)
            try:
                p = float(a[0])
                g.add_rule(
                    Rule(
                        al.find_symbol_id(a[1]),
                        (al.find_symbol_id(t) for t in a[2:]),
                        p,
                    )
                )
            except ValueError:
                raise GrammarError("Invalid probability '{0}'".format(a[0]), fname, line)
            except SymbolError as e:
                raise GrammarError(str(e), fname, line)
            except GrammarError as e:
                e.augment(fname, line)
                raise e
        return g

    @classmethod
    def read_friendly(cls, fname: str) -> "Grammar":
        """Read a grammar from a text file in the friendly format"""
        try:
            with open(fname, "r", encoding="utf-8") as inp:
                lines = inp.readlines()
        except (IOError, OSError):
            raise GrammarError("Unable to open or read grammar file", fname, 0)
        return cls.from_friendly_lines(lines, fname)
