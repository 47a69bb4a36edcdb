"""

    Pcfg: Probabilistic context-free grammar parsing

    Parse forest module

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


    This module contains the parse tree representation that is shared
    by the CYK parser (cykparser.py) and the Earley parser (earley.py).

    A tree is built bottom-up from a parser's chart. Each node owns its
    children; there are no parent pointers, so trees are only traversed
    top-down. Each node carries a Payload: a small tagged record telling
    which kind of chart entry the node came from, together with the
    entry's id, the id of the rule that expanded it (NO_RULE_ID for leaves)
    and the id of its symbol.

    A forest of Nodes can be navigated using a subclass of
    ParseForestNavigator.

"""

from typing import Any, Iterator, List, NamedTuple, Optional, TextIO, TYPE_CHECKING

from typing_extensions import Literal

from alphabet import Alphabet

if TYPE_CHECKING:
    from grammar import Grammar


# Rule id of leaf nodes, which are not expanded by any rule
NO_RULE_ID = -1

PayloadKind = Literal["cyk", "earley", "leaf"]


class Payload(NamedTuple):

    """The chart entry behind a parse tree node"""

    kind: PayloadKind
    # Unique id of the chart entry (leaves synthesized by the
    # Earley parser get fresh ids as well)
    id: int
    rule_id: int
    symbol_id: int


class Node:

    """A node in a parse tree"""

    __slots__ = ("_payload", "_children")

    def __init__(self, payload: Payload, children: Optional[List["Node"]] = None) -> None:
        self._payload = payload
        self._children: List["Node"] = children if children is not None else []

    @property
    def payload(self) -> Payload:
        return self._payload

    @property
    def children(self) -> List["Node"]:
        return self._children

    @property
    def id(self) -> int:
        return self._payload.id

    @property
    def rule_id(self) -> int:
        return self._payload.rule_id

    @property
    def symbol_id(self) -> int:
        return self._payload.symbol_id

    @property
    def is_leaf(self) -> bool:
        return not self._children

    def add_child(self, child: "Node") -> None:
        self._children.append(child)

    def _rule_probability(self, grammar: "Grammar", default: float) -> float:
        if self._payload.rule_id == NO_RULE_ID:
            return default
        return grammar.rule(self._payload.rule_id).probability

    def reduce_product(self, grammar: "Grammar") -> float:
        """Return the probability of this tree, i.e. the product of the
        probabilities of all rules used within it"""
        x = self._rule_probability(grammar, 1.0)
        for child in self._children:
            x *= child.reduce_product(grammar)
        return x

    def reduce_sum(self, grammar: "Grammar") -> float:
        """Return the sum of the probabilities of all rules used in this tree"""
        x = self._rule_probability(grammar, 0.0)
        for child in self._children:
            x += child.reduce_sum(grammar)
        return x

    def leaves(self) -> Iterator["Node"]:
        """Enumerate the leaves of the tree, left to right"""
        if not self._children:
            yield self
            return
        for child in self._children:
            yield from child.leaves()

    def text(self, alphabet: Alphabet) -> str:
        """Return a bracketed representation using symbol labels"""
        s = alphabet.label(self.symbol_id)
        if not self._children:
            return s
        return s + " [" + ", ".join(c.text(alphabet) for c in self._children) + "]"

    def __eq__(self, other: object) -> bool:
        """Trees are equal if they have the same shape, symbols and rules"""
        if not isinstance(other, Node):
            return False
        return (
            self.symbol_id == other.symbol_id
            and self.rule_id == other.rule_id
            and self._children == other._children
        )

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    __hash__ = None  # type: ignore

    def __repr__(self) -> str:
        return "<Node {0}/{1} {2}>".format(
            self._payload.kind, self._payload.id, str(self)
        )

    def __str__(self) -> str:
        """Return a bracketed representation using symbol ids"""
        s = str(self.symbol_id)
        if not self._children:
            return s
        return s + " [" + ", ".join(str(c) for c in self._children) + "]"


class ParseForestNavigator:

    """Base class for navigating parse trees. Override the underscored
    methods to perform actions at the corresponding points of navigation."""

    def _visit_leaf(self, level: int, node: Node) -> Any:
        """At leaf node"""
        return None

    def _visit_nonterminal(self, level: int, node: Node) -> Any:
        """At nonterminal node"""
        # Return object to collect results
        return None

    def _add_result(self, results: Any, ix: int, r: Any) -> None:
        """Append a single result object r to the result object"""
        return

    def _process_results(self, results: Any, node: Node) -> Any:
        """Process results after visiting children"""
        return None

    def go(self, root_node: Node) -> Any:
        """Navigate the tree from the root node"""

        def _nav_helper(w: Node, level: int) -> Any:
            if w.is_leaf and w.rule_id == NO_RULE_ID:
                return self._visit_leaf(level, w)
            results = self._visit_nonterminal(level, w)
            if results is NotImplemented:
                # Don't visit children or process results
                return results
            for ix, child in enumerate(w.children):
                self._add_result(results, ix, _nav_helper(child, level + 1))
            return self._process_results(results, w)

        return _nav_helper(root_node, 0)


class ParseForestPrinter(ParseForestNavigator):

    """Print a parse tree to stdout or a file"""

    def __init__(
        self,
        grammar: "Grammar",
        file: Optional[TextIO] = None,
        show_probabilities: bool = False,
        show_ids: bool = False,
    ) -> None:
        super().__init__()
        self._grammar = grammar
        self._alphabet = grammar.alphabet
        self._file = file
        self._show_probabilities = show_probabilities
        self._show_ids = show_ids

    def _suffix(self, w: Node) -> str:
        s = ""
        if self._show_ids:
            s += " @ {0}".format(w.id)
        if self._show_probabilities and w.rule_id != NO_RULE_ID:
            s += " [{0}]".format(self._grammar.rule(w.rule_id).probability)
        return s

    def _visit_leaf(self, level: int, w: Node) -> None:
        indent = "  " * level  # Two spaces per indent level
        print(
            indent + "'{0}'{1}".format(self._alphabet.label(w.symbol_id), self._suffix(w)),
            file=self._file,
        )
        return None

    def _visit_nonterminal(self, level: int, w: Node) -> None:
        indent = "  " * level  # Two spaces per indent level
        print(
            indent + self._alphabet.label(w.symbol_id) + self._suffix(w),
            file=self._file,
        )
        return None  # No results required, but visit children

    @classmethod
    def print_forest(
        cls,
        root_node: Node,
        grammar: "Grammar",
        file: Optional[TextIO] = None,
        show_probabilities: bool = False,
        show_ids: bool = False,
    ) -> None:
        """Print a parse tree to the given file, or stdout if none"""
        cls(grammar, file, show_probabilities, show_ids).go(root_node)


class ParseForestDotter(ParseForestNavigator):

    """Render a parse tree as a graph in the DOT language. The
    leaves are shown as fields of a single record node, in order,
    so that the parsed string reads left to right under the tree."""

    def __init__(self, grammar: "Grammar") -> None:
        super().__init__()
        self._grammar = grammar
        self._alphabet = grammar.alphabet
        self._fields: List[str] = []
        self._nodes: List[str] = []
        self._edges: List[str] = []

    @staticmethod
    def _q(s: Any) -> str:
        return '"' + str(s).replace('"', '\\"') + '"'

    def _visit_leaf(self, level: int, w: Node) -> Any:
        s = "<{0}> {1}".format(w.id, self._alphabet.label(w.symbol_id))
        description = self._alphabet.description(w.symbol_id)
        if description:
            s += "\\n" + description
        self._fields.append(s)
        return w

    def _visit_nonterminal(self, level: int, w: Node) -> Any:
        label = self._alphabet.label(w.symbol_id)
        if w.rule_id != NO_RULE_ID:
            label += " [{0}]".format(self._grammar.rule(w.rule_id).probability)
        self._nodes.append("  {0}[label={1}];".format(self._q(w.id), self._q(label)))
        return []

    def _add_result(self, results: Any, ix: int, r: Any) -> None:
        results.append(r)

    def _process_results(self, results: Any, node: Node) -> Any:
        for child in results:
            prefix = "str:" if child.is_leaf and child.rule_id == NO_RULE_ID else ""
            self._edges.append(
                "  {0} -> {1}{2};".format(self._q(node.id), prefix, self._q(child.id))
            )
        return node

    @classmethod
    def dot(cls, root_node: Node, grammar: "Grammar", graph_name: str = "tree") -> str:
        """Return the DOT code for a parse tree"""
        d = cls(grammar)
        d.go(root_node)
        lines = ["digraph {0} {{".format(graph_name)]
        lines.append(
            "  str [shape=record width={0}, label={1}];".format(
                len(d._fields), d._q(" | ".join(d._fields))
            )
        )
        lines.extend(d._nodes)
        lines.extend(d._edges)
        lines.append("}")
        return "\n".join(lines) + "\n"
