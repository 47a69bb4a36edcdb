#!/usr/bin/env python3
"""

    Pcfg: Probabilistic context-free grammar parsing

    Command line main module

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


    This module reads a grammar in the friendly format, optionally
    converts it to Chomsky normal form, parses a string of terminal
    labels and prints the derivations found, with their probabilities.

    Example:

        python main.py resources/ambiguous.grammar "a a a" --parser cyk --rules

    Use --help to see more information on usage.

"""

from typing import List, Optional, TextIO

import sys
import logging
import argparse
from pathlib import Path

from settings import Settings, ConfigError
from grammar import Grammar, GrammarError
from alphabet import SymbolError
from cnf import chomsky_normal
from baseparser import Base_Parser, ParseError
from cykparser import CYK_Parser
from earley import Earley_Parser
from forest import ParseForestDotter, ParseForestPrinter
from utility import CONFIG_FILE, format_probability, log_level


def _make_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Parses a string according to a probabilistic context-free grammar."
    )
    parser.add_argument(
        "grammar",
        type=Path,
        help="Grammar file in the friendly format",
    )
    parser.add_argument(
        "string",
        nargs="?",
        default="",
        help="Space-separated terminal labels to parse (default: empty string)",
    )
    parser.add_argument(
        "-p",
        "--parser",
        choices=("earley", "cyk"),
        default="earley",
        help="Parser to use; the CYK parser always works on the CNF grammar",
    )
    parser.add_argument(
        "--cnf",
        action="store_true",
        help="Convert the grammar to Chomsky normal form before parsing",
    )
    parser.add_argument(
        "-r",
        "--rules",
        action="store_true",
        help="Print the alphabet and rules of the grammar(s)",
    )
    parser.add_argument(
        "-t",
        "--trees",
        action="store_true",
        help="Print each parse tree as an indented outline",
    )
    parser.add_argument(
        "--states",
        action="store_true",
        help="Print the Earley states after parsing",
    )
    parser.add_argument(
        "-d",
        "--dot",
        type=Path,
        help="Write the parse trees to a file in the DOT language",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=CONFIG_FILE,
        help="Configuration file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug information",
    )
    return parser


def print_result(parser: Base_Parser, out: TextIO, show_trees: bool = False) -> None:
    """Print the derivations found by a parser"""
    g = parser.grammar
    al = g.alphabet
    print("--- This is the parsed string ---", file=out)
    print(al.format_string(parser.symbols), file=out)
    print("can generate: {0}".format(parser.can_generate()), file=out)
    print("number of trees: {0}".format(parser.num_trees()), file=out)
    total = 0.0
    for ix, root in enumerate(parser.trees()):
        p = root.reduce_product(g)
        total += p
        print("Tree {0} ({1}): {2}".format(ix, format_probability(p), root.text(al)), file=out)
        if show_trees:
            ParseForestPrinter.print_forest(root, g, file=out, show_probabilities=True)
    print("probability: {0}".format(format_probability(total)), file=out)


def write_dot(parser: Base_Parser, fname: Path) -> None:
    """Write all parse trees of a parser to a DOT file"""
    with open(fname, "w", encoding="utf-8") as f:
        for ix, root in enumerate(parser.trees()):
            f.write(ParseForestDotter.dot(root, parser.grammar, "tree_{0}".format(ix)))


def main(argv: Optional[List[str]] = None, out: TextIO = sys.stdout) -> int:
    args = _make_arg_parser().parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s %(levelname)s:%(message)s",
        level=logging.DEBUG if args.verbose else log_level(Settings.LOG_LEVEL),
    )

    try:
        Settings.read(str(args.config))
    except ConfigError as e:
        logging.error("Pcfg did not start due to a configuration error:\n{0}".format(e))
        return 1

    # The configuration file may change the log level
    logging.getLogger().setLevel(
        logging.DEBUG if args.verbose or Settings.DEBUG else log_level(Settings.LOG_LEVEL)
    )

    try:
        grammar = Grammar.read_friendly(str(args.grammar))
        if args.rules:
            print("--- This is the grammar ---", file=out)
            print(grammar.alphabet.symbols_text(), file=out)
            print(grammar.rules_text(), file=out)
        if args.cnf or args.parser == "cyk":
            grammar = chomsky_normal(grammar)
            if args.rules:
                print("--- This is the grammar in Chomsky normal form ---", file=out)
                print(grammar.rules_text(), file=out)
        symbols = grammar.alphabet.tokenize(args.string)
        parser: Base_Parser
        if args.parser == "cyk":
            parser = CYK_Parser(grammar, symbols)
        else:
            parser = Earley_Parser(grammar, symbols)
    except (GrammarError, SymbolError, ParseError) as e:
        logging.error(str(e))
        return 1

    print_result(parser, out, args.trees)
    if args.states:
        if isinstance(parser, Earley_Parser):
            print(parser.states_text(), file=out)
        else:
            logging.warning("--states only applies to the Earley parser")
    if args.dot:
        write_dot(parser, args.dot)
        logging.info("Wrote {0} trees to {1}".format(parser.num_trees(), args.dot))
    return 0


if __name__ == "__main__":
    sys.exit(main())
