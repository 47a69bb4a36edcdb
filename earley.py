"""

    Pcfg: Probabilistic context-free grammar parsing

    Earley parser module

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


    This module uses an Earley parser to find all derivations of a
    sequence of terminal symbols according to a probabilistic grammar.

    An Earley parser handles all context-free grammars, irrespective
    of ambiguity, recursion or nullability. The grammar does not
    need to be normalized; epsilon rules A -> e are simply treated as
    rules with an empty right hand side.

    For further information see J. Earley, "An efficient context-free parsing algorithm",
    Communications of the Association for Computing Machinery, 13:2:94-102, 1970.

    The parser keeps one state (a list of dotted items) per input position
    0..n. An item (rule, dot, start, state) additionally carries a list of
    back pointers: the ids of the completed items for the nonterminals to
    the left of the dot. Items that differ in their back pointers stand for
    different derivations and are kept apart, so every complete item for
    the start symbol in the last state, starting at 0, is a separate parse
    tree. Two items are equal when their rule, dot, start, state and back
    pointers are equal. Adding an item that is equal to one already in the
    state stores nothing, so each state holds at most one copy of an item.
    Two completions of the same nonterminal over the same span therefore
    give two separate items, one per derivation.

    Items within a state are processed in order, including items that are
    added to the same state while it is being processed. A state is
    finished before the next one is started.

    A derivation that uses the same rule twice over the same span is not
    enumerated. Cycles of unit or nullable rules would otherwise yield
    infinitely many derivations.

"""

from typing import Dict, List, Optional, Sequence, Tuple

import logging
from collections import defaultdict

from alphabet import ID_START
from baseparser import Base_Parser
from forest import Node, Payload, NO_RULE_ID
from grammar import Grammar


ItemKey = Tuple[int, int, int, int, Tuple[int, ...]]


class Earley_Item:

    """A dotted rule within an Earley state"""

    __slots__ = ("id", "rule_id", "symbol_id", "dot", "start", "state", "back")

    def __init__(
        self,
        id: int,
        rule_id: int,
        symbol_id: int,
        dot: int,
        start: int,
        state: int,
        back: Sequence[int] = (),
    ) -> None:
        self.id = id
        self.rule_id = rule_id
        # The left hand side of the rule
        self.symbol_id = symbol_id
        self.dot = dot
        # The state where the rule was predicted
        self.start = start
        # The state that contains this item
        self.state = state
        # Ids of the completed items for the nonterminals before the dot
        self.back: List[int] = list(back)

    @property
    def key(self) -> ItemKey:
        return (self.rule_id, self.dot, self.start, self.state, tuple(self.back))

    @property
    def payload(self) -> Payload:
        return Payload("earley", self.id, self.rule_id, self.symbol_id)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Earley_Item) and self.key == other.key

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return "{0}: ({1}, {2}, {3}) {4}".format(
            self.state, self.rule_id, self.dot, self.start, self.back
        )


class Earley_Parser(Base_Parser):

    """Parses an input against any grammar, returning
    all derivations of the input"""

    def __init__(self, grammar: Grammar, symbols: Sequence[int]) -> None:
        super().__init__(grammar, symbols)
        # Work on a private copy where A -> e is A -> ()
        self._grammar = grammar.without_empty_symbol()
        # Item ids are unique within this parser instance
        self._next_id = 0
        self._states: List[List[Earley_Item]] = []
        self._keys: List[Dict[ItemKey, Earley_Item]] = []
        self._items: Dict[int, Earley_Item] = {}
        self._valid_parses: List[Earley_Item] = []
        self._rules_by_lhs: Dict[int, List[int]] = defaultdict(list)
        for ix, r in enumerate(self._grammar):
            self._rules_by_lhs[r.lhs].append(ix)
        self._parse()
        self._log_summary()

    def _new_id(self) -> int:
        id = self._next_id
        self._next_id += 1
        return id

    def _add(
        self, state: int, rule_id: int, dot: int, start: int, back: Sequence[int]
    ) -> None:
        """Add an item to a state, unless an equal item is already there"""
        key: ItemKey = (rule_id, dot, start, state, tuple(back))
        keys = self._keys[state]
        if key in keys:
            return
        item = Earley_Item(
            self._new_id(),
            rule_id,
            self._grammar.rule(rule_id).lhs,
            dot,
            start,
            state,
            back,
        )
        keys[key] = item
        self._states[state].append(item)
        self._items[item.id] = item
        assert len(keys) == len(self._states[state]), "Equal items in state {0}".format(
            state
        )

    def _is_cyclic(
        self, rule_id: int, start: int, state: int, back: Sequence[int]
    ) -> bool:
        """Return True if a completed item for rule_id over start..state
        would have a descendant over the same span using the same rule"""
        agenda = [self._items[b] for b in back]
        while agenda:
            x = agenda.pop()
            if x.start != start or x.state != state:
                continue
            if x.rule_id == rule_id:
                return True
            agenda.extend(self._items[b] for b in x.back)
        return False

    def _advance(self, waiting: Earley_Item, completed: Earley_Item, state: int) -> None:
        """Move the dot of a waiting item over a completed nonterminal"""
        rule = self._grammar.rule(waiting.rule_id)
        dot = waiting.dot + 1
        back = waiting.back + [completed.id]
        if dot == len(rule) and self._is_cyclic(
            waiting.rule_id, waiting.start, state, back
        ):
            logging.debug(
                "Skipping cyclic derivation of rule {0} in state {1}".format(
                    waiting.rule_id, state
                )
            )
            return
        self._add(state, waiting.rule_id, dot, waiting.start, back)

    def _complete(self, e: Earley_Item) -> None:
        """Advance all items in the origin state of e that are waiting
        for the nonterminal that e completes"""
        nt = e.symbol_id
        g = self._grammar
        for pe in list(self._states[e.start]):
            r = g.rule(pe.rule_id)
            if pe.dot < len(r) and r[pe.dot] == nt:
                self._advance(pe, e, e.state)

    def _predict(self, e: Earley_Item) -> None:
        """Add items for all rules of the nonterminal after the dot of e"""
        i = e.state
        nt = self._grammar.rule(e.rule_id)[e.dot]
        for ix in self._rules_by_lhs.get(nt, []):
            self._add(i, ix, 0, i, ())
        # Nullable completions of nt that are already in this state
        # will not be completed again, so advance e over them here
        g = self._grammar
        for c in list(self._states[i]):
            if c.start == i and c.symbol_id == nt and c.dot == len(g.rule(c.rule_id)):
                self._advance(e, c, i)

    def _scan(self, e: Earley_Item) -> None:
        """Move the dot of e over a terminal that matches the input"""
        i = e.state
        t = self._grammar.rule(e.rule_id)[e.dot]
        if t == self._symbols[i]:
            self._add(i + 1, e.rule_id, e.dot + 1, e.start, e.back)

    def _parse(self) -> None:
        n = len(self._symbols)
        self._states = [[] for _ in range(n + 1)]
        self._keys = [{} for _ in range(n + 1)]
        g = self._grammar
        al = g.alphabet

        # Seed state 0 with the start symbol rules
        for ix in self._rules_by_lhs.get(ID_START, []):
            self._add(0, ix, 0, 0, ())

        for i, state in enumerate(self._states):
            j = 0
            # The state may grow while we process it
            while j < len(state):
                e = state[j]
                j += 1
                r = g.rule(e.rule_id)
                if e.dot == len(r):
                    self._complete(e)
                elif al.is_terminal(r[e.dot]):
                    if i < n:
                        self._scan(e)
                else:
                    self._predict(e)

        self._valid_parses = [
            e
            for e in self._states[n]
            if e.symbol_id == ID_START
            and e.dot == len(g.rule(e.rule_id))
            and e.start == 0
        ]

    def num_trees(self) -> int:
        return len(self._valid_parses)

    def item(self, id: int) -> Optional[Earley_Item]:
        """Return the item with the given id, if any"""
        return self._items.get(id)

    def state(self, ix: int) -> Sequence[Earley_Item]:
        """Return the items of the state at input position ix"""
        return tuple(self._states[ix])

    def _expand(self, e: Earley_Item) -> Node:
        node = Node(e.payload)
        r = self._grammar.rule(e.rule_id)
        al = self._grammar.alphabet
        ib = 0
        for t in r.rhs:
            if al.is_terminal(t):
                # Terminals have no back pointer: create a leaf
                node.add_child(Node(Payload("leaf", self._new_id(), NO_RULE_ID, t)))
            else:
                assert ib < len(e.back), "Item {0} lacks a back pointer".format(e.id)
                node.add_child(self._expand(self._items[e.back[ib]]))
                ib += 1
        return node

    def tree_root(self, ix: int) -> Node:
        self._check_tree_index(ix)
        return self._expand(self._valid_parses[ix])

    def item_text(self, e: Earley_Item) -> str:
        """Return a human-readable view of an item:
        'id: dotted rule (start, state) [ back pointers ]'"""
        g = self._grammar
        al = g.alphabet
        r = g.rule(e.rule_id)
        s = "{0}: {1} -> ".format(e.id, al.label(r.lhs))
        s += "".join(al.label(t) + " " for t in r.rhs[: e.dot])
        s += ". "
        s += "".join(al.label(t) + " " for t in r.rhs[e.dot :])
        s += "({0}, {1})".format(e.start, e.state)
        s += " [ " + "".join(str(b) + " " for b in e.back) + "]"
        return s

    def states_text(self, only_completed: bool = False) -> str:
        """Return a human-readable view of all states"""
        g = self._grammar
        lines = []
        for i, state in enumerate(self._states):
            lines.append("Group {0}".format(i))
            lines.append("================")
            for e in state:
                if not only_completed or e.dot == len(g.rule(e.rule_id)):
                    lines.append(self.item_text(e))
            lines.append("")
        return "\n".join(lines) + "\n"
