"""

    Pcfg: Probabilistic context-free grammar parsing

    Chomsky normal form module

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


    This module converts a probabilistic grammar into Chomsky normal form,
    keeping the probability of every string the same. The result is the
    input of the CYK parser (see cykparser.py).

    In the converted grammar, every rule has a right hand side of exactly
    two symbols, with the exception of rules for the start symbol S:
    S -> e carries the probability of the empty string, and S -> a the
    probability of a single terminal a.

    The conversion works on a copy of the grammar, in these phases:

  * Start isolation: if S occurs within a right hand side, those
    occurrences are taken over by a fresh copy of S.
  * Long rules A -> B1 B2 ... Bk are split into a chain of binary rules
    through fresh nonterminals A_1 ... A_{k-2}.
  * Epsilon rules are removed. The set E of erasable nonterminals is
    found by closure, and for each of them the probability x_i of deriving
    the empty string is found by solving

        x = C + B x + [x^T A_i x]_i

    by nonlinear least squares (Levenberg-Marquardt), where C holds the
    probabilities of the epsilon rules, B those of unit rules within E and
    A those of binary rules within E. For each binary rule with an erasable
    symbol, a shortened rule is added with its probability scaled by x.
  * Unit rules A -> B are removed. The total probability T(X, Y) of
    deriving Y from X through unit rules only is found by solving one
    linear system (P - I) T = -U, P being the unit rule matrix over the
    nonterminals, for all targets at once. Each binary rule A -> B C is
    replaced by rules A -> B' C' for all B', C' reachable from B and C
    through unit rules, with probability p * T(B, B') * T(C, C').
    The start symbol gets the rules of all nonterminals reachable from
    it through unit rules.
  * Duplicate rules are merged and rules of unreferenced nonterminals
    are removed.

"""

from typing import Dict, List, NamedTuple, Sequence, Set, Tuple

import logging

import numpy as np

from alphabet import Alphabet, ID_START, ID_EMPTY, START_LABEL
from grammar import Grammar, GrammarError, Rule
from settings import Settings


class NormalizationError(GrammarError):

    """Exception class for failures of the CNF conversion"""

    pass


class ErasureSolution(NamedTuple):

    """The probabilities of erasable nonterminals deriving the empty
    string, with information on the quality of the least squares fit"""

    symbols: Tuple[int, ...]
    probabilities: Tuple[float, ...]
    # Largest absolute residual of the equations at the solution
    residual: float
    iterations: int
    evaluations: int
    converged: bool

    def probability(self, id: int) -> float:
        """Return the probability of the symbol deriving the empty string"""
        try:
            return self.probabilities[self.symbols.index(id)]
        except ValueError:
            return 0.0


def find_erasables(rules: Sequence[Rule]) -> List[int]:
    """Return the nonterminals that can derive the empty string,
    in order of discovery. The empty string symbol must already
    have been removed from all right hand sides."""
    erasables: List[int] = []
    found: Set[int] = set()
    changed = True
    while changed:
        changed = False
        for r in rules:
            if r.lhs not in found and all(t in found for t in r.rhs):
                erasables.append(r.lhs)
                found.add(r.lhs)
                changed = True
    return erasables


def erasure_system(
    rules: Sequence[Rule], erasables: Sequence[int]
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return the vector C, the matrix B and the tensor A of the
    equations for the erasure probabilities"""
    n = len(erasables)
    ix = {id: i for i, id in enumerate(erasables)}
    C = np.zeros(n)
    B = np.zeros((n, n))
    A = np.zeros((n, n, n))
    for r in rules:
        i = ix.get(r.lhs)
        if i is None or not all(t in ix for t in r.rhs):
            continue
        if len(r) == 0:
            C[i] += r.probability
        elif len(r) == 1:
            B[i, ix[r[0]]] += r.probability
        elif len(r) == 2:
            A[i, ix[r[0]], ix[r[1]]] += r.probability
    return C, B, A


def solve_erasure(
    C: np.ndarray,
    B: np.ndarray,
    A: np.ndarray,
    max_iterations: int,
    max_evaluations: int,
    tolerance: float,
) -> Tuple[np.ndarray, float, int, int]:
    """Fit x = C + B x + [x^T A_i x]_i by Levenberg-Marquardt least
    squares, starting from x = 0.5. Returns the solution, the largest
    absolute residual, the number of iterations and the number of
    function evaluations."""
    n = len(C)
    BI = B - np.eye(n)
    AS = A + A.transpose(0, 2, 1)

    def _residual(x: np.ndarray) -> np.ndarray:
        return C + BI @ x + np.einsum("ijk,j,k->i", A, x, x)

    def _jacobian(x: np.ndarray) -> np.ndarray:
        return BI + np.einsum("ijk,k->ij", AS, x)

    x = np.full(n, 0.5)
    r = _residual(x)
    evaluations = 1
    iterations = 0
    cost = float(r @ r)
    lam = 1e-3
    while iterations < max_iterations and evaluations < max_evaluations:
        if np.max(np.abs(r)) <= tolerance:
            break
        iterations += 1
        J = _jacobian(x)
        g = J.T @ r
        H = J.T @ J
        # Marquardt's scaling of the damping term
        D = np.diag(np.maximum(np.diag(H), 1e-12))
        improved = False
        while evaluations < max_evaluations and lam <= 1e16:
            try:
                step = np.linalg.solve(H + lam * D, -g)
            except np.linalg.LinAlgError:
                lam *= 10.0
                continue
            x_new = x + step
            r_new = _residual(x_new)
            evaluations += 1
            cost_new = float(r_new @ r_new)
            if cost_new < cost:
                x, r, cost = x_new, r_new, cost_new
                lam = max(lam / 10.0, 1e-15)
                improved = True
                break
            lam *= 10.0
        if not improved:
            break
    residual = float(np.max(np.abs(r))) if n else 0.0
    return x, residual, iterations, evaluations


def unit_closure(id: int, units: Dict[int, List[int]]) -> List[int]:
    """Return D(id): the symbols derivable from id through unit
    rules only, including id itself, in order of discovery"""
    D = [id]
    seen = {id}
    j = 0
    while j < len(D):
        for t in units.get(D[j], []):
            if t not in seen:
                seen.add(t)
                D.append(t)
        j += 1
    return D


def unit_derivation_probabilities(
    alphabet: Alphabet, rules: Sequence[Rule]
) -> Tuple[np.ndarray, Dict[int, int]]:
    """Return a matrix X where X[idx(A), col(Y)] is the total probability
    of deriving symbol Y from nonterminal A through one or more unit
    rules, and the mapping col from symbol ids to matrix columns.
    The system (P - I) X = -U is solved once, for all targets Y."""
    nts = alphabet.nonterminals
    n = len(nts)
    targets = list(nts) + list(alphabet.terminals)
    col = {id: j for j, id in enumerate(targets)}
    P = np.zeros((n, n))
    U = np.zeros((n, len(targets)))
    for r in rules:
        if len(r) != 1:
            continue
        j = alphabet.get_idx(r.lhs)
        U[j, col[r[0]]] += r.probability
        if not alphabet.is_terminal(r[0]):
            P[j, alphabet.get_idx(r[0])] += r.probability
    M = P - np.eye(n)
    cond = np.linalg.cond(M) if n else 1.0
    if not np.isfinite(cond) or 1.0 / cond < Settings.MIN_RCOND:
        raise NormalizationError(
            "The unit rule system is singular; some nonterminal "
            "derives itself through unit rules with probability 1"
        )
    try:
        X = np.linalg.solve(M, -U)
    except np.linalg.LinAlgError as e:
        raise NormalizationError("Unable to solve the unit rule system: {0}".format(e))
    if not np.all(np.isfinite(X)):
        raise NormalizationError("The unit rule system has no finite solution")
    return X, col


class CNF_Normalizer:

    """Converts a grammar to Chomsky normal form. The input grammar
    is not modified. After go() has been called, the erasure attribute
    tells how well the erasure probabilities were determined."""

    def __init__(self, grammar: Grammar) -> None:
        self._grammar = grammar
        self._alphabet = grammar.alphabet.clone()
        self.erasure = ErasureSolution((), (), 0.0, 0, 0, True)

    def _isolate_start(self, rules: List[Rule]) -> List[Rule]:
        """Make sure that the start symbol does not occur in any right hand side"""
        if not any(ID_START in r.rhs for r in rules):
            return rules
        al = self._alphabet
        s1 = al.add_symbol(al.fresh_label(START_LABEL), False, None)

        def _subst(rhs: Tuple[int, ...]) -> Tuple[int, ...]:
            return tuple(s1 if t == ID_START else t for t in rhs)

        result = [Rule(r.lhs, _subst(r.rhs), r.probability) for r in rules]
        result.extend(
            Rule(s1, _subst(r.rhs), r.probability) for r in rules if r.lhs == ID_START
        )
        return result

    def _split_long_rules(self, rules: List[Rule]) -> List[Rule]:
        al = self._alphabet
        result = [r for r in rules if len(r) <= 2]
        for r in rules:
            k = len(r)
            if k <= 2:
                continue
            base = al.label(r.lhs)
            ids = [al.add_symbol(al.fresh_label(base), False, None) for _ in range(k - 2)]
            result.append(Rule(r.lhs, (r[0], ids[0]), r.probability))
            for j in range(k - 3):
                result.append(Rule(ids[j], (r[j + 1], ids[j + 1]), 1.0))
            result.append(Rule(ids[k - 3], (r[k - 2], r[k - 1]), 1.0))
        return result

    def _remove_empty_rules(self, rules: List[Rule]) -> Tuple[List[Rule], float]:
        """Remove epsilon rules, returning the new rules and the
        probability of the start symbol deriving the empty string"""
        erasables = find_erasables(rules)
        if erasables:
            C, B, A = erasure_system(rules, erasables)
            x, residual, iterations, evaluations = solve_erasure(
                C,
                B,
                A,
                Settings.SOLVER_MAX_ITERATIONS,
                Settings.SOLVER_MAX_EVALUATIONS,
                Settings.SOLVER_TOLERANCE,
            )
            tol = Settings.SOLVER_TOLERANCE
            converged = residual <= tol and bool(np.all((x >= -tol) & (x <= 1.0 + tol)))
            self.erasure = ErasureSolution(
                tuple(erasables),
                tuple(float(p) for p in x),
                residual,
                iterations,
                evaluations,
                converged,
            )
            logging.debug(
                "Erasure probabilities of {0} nonterminals: residual {1:g} "
                "after {2} iterations".format(len(erasables), residual, iterations)
            )
            if not converged:
                msg = (
                    "Erasure probabilities did not converge: residual {0:g} "
                    "after {1} iterations and {2} evaluations".format(
                        residual, iterations, evaluations
                    )
                )
                if Settings.STRICT_SOLVER:
                    raise NormalizationError(msg)
                logging.warning(msg)

        x_of = dict(zip(self.erasure.symbols, self.erasure.probabilities))
        result = [r for r in rules if len(r) > 0]
        for r in list(result):
            if len(r) != 2:
                continue
            if r[0] in x_of:
                result.append(Rule(r.lhs, (r[1],), r.probability * x_of[r[0]]))
            if r[1] in x_of:
                result.append(Rule(r.lhs, (r[0],), r.probability * x_of[r[1]]))
        return result, x_of.get(ID_START, 0.0)

    def _remove_unit_rules(self, rules: List[Rule]) -> List[Rule]:
        al = self._alphabet
        units: Dict[int, List[int]] = {}
        for r in rules:
            if len(r) == 1:
                units.setdefault(r.lhs, []).append(r[0])
        D = {id: unit_closure(id, units) for id in list(al.nonterminals) + list(al.terminals)}
        X, col = unit_derivation_probabilities(al, rules)

        def _t(src: int, dst: int) -> float:
            """Probability of deriving dst from src through unit rules"""
            p = 1.0 if src == dst else 0.0
            if not al.is_terminal(src):
                p += float(X[al.get_idx(src), col[dst]])
            return p

        result: List[Rule] = []
        for r in rules:
            if len(r) != 2:
                continue
            b, c = r.rhs
            for b1 in D[b]:
                pb = _t(b, b1)
                for c1 in D[c]:
                    result.append(Rule(r.lhs, (b1, c1), r.probability * pb * _t(c, c1)))

        # The start symbol takes over the rules of everything it
        # derives through unit rules
        start_rules: List[Rule] = []
        for x in D[ID_START]:
            pt = _t(ID_START, x)
            if al.is_terminal(x):
                if x != ID_EMPTY:
                    start_rules.append(Rule(ID_START, (x,), pt))
                continue
            start_rules.extend(
                Rule(ID_START, r.rhs, r.probability * pt) for r in result if r.lhs == x
            )
        return [r for r in result if r.lhs != ID_START] + start_rules

    @staticmethod
    def _merge_duplicates(rules: List[Rule]) -> List[Rule]:
        """Merge rules having the same left and right hand sides"""
        merged: Dict[Rule, Rule] = {}
        for r in rules:
            first = merged.get(r)
            if first is None:
                merged[r] = r
            elif Settings.MERGE_DUPLICATE_RULES:
                merged[r] = first.with_probability(first.probability + r.probability)
        # Dicts keep insertion order, which is the order of first appearance
        return list(merged.values())

    @staticmethod
    def _collect_garbage(rules: List[Rule]) -> List[Rule]:
        """Remove rules of nonterminals that are never referenced"""
        while True:
            referenced = {t for r in rules for t in r.rhs}
            kept = [r for r in rules if r.lhs == ID_START or r.lhs in referenced]
            if len(kept) == len(rules):
                return kept
            rules = kept

    def go(self) -> Grammar:
        """Perform the conversion and return the new grammar"""
        # Represent epsilon rules by an empty right hand side
        rules = [
            Rule(r.lhs, (t for t in r.rhs if t != ID_EMPTY), r.probability)
            for r in self._grammar
        ]
        n0 = len(rules)
        rules = self._isolate_start(rules)
        rules = self._split_long_rules(rules)
        logging.debug("CNF: {0} rules, {1} after splitting".format(n0, len(rules)))
        rules, p_empty = self._remove_empty_rules(rules)
        logging.debug("CNF: {0} rules without epsilon rules".format(len(rules)))
        rules = self._remove_unit_rules(rules)
        if p_empty > 0.0:
            rules.append(Rule(ID_START, (ID_EMPTY,), p_empty))
        rules = self._merge_duplicates(rules)
        rules = self._collect_garbage(rules)
        logging.debug("CNF: {0} rules in the result".format(len(rules)))
        g = Grammar(self._alphabet)
        for r in rules:
            g.add_rule(r)
        return g


def chomsky_normal(grammar: Grammar) -> Grammar:
    """Return a copy of the grammar in Chomsky normal form"""
    return CNF_Normalizer(grammar).go()
