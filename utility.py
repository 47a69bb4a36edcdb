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


    Utility functions used in various places in the codebase.

"""
from typing import Iterable, List

import logging
from pathlib import Path

# Path which points to the root folder of Pcfg
PCFG_ROOT_DIR: Path = Path(__file__).parent.resolve()

# Other useful paths
CONFIG_DIR = PCFG_ROOT_DIR / "config"
CONFIG_FILE = CONFIG_DIR / "Pcfg.conf"

RESOURCES_DIR = PCFG_ROOT_DIR / "resources"


def log_level(name: str) -> int:
    """Convert a logging level name such as 'DEBUG' to its
    numeric value, defaulting to WARNING for unknown names."""
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        logging.warning(f"Unknown logging level '{name}', using WARNING")
        return logging.WARNING
    return level


def grammar_files(p: Path) -> List[Path]:
    """Return the grammar files in a directory, sorted by name"""
    p = p.resolve()
    assert (
        p.exists() and p.is_dir()
    ), f"Directory {str(p)} not found when searching for grammars"
    return sorted(f for f in p.glob("*.grammar") if not f.name.startswith("_"))


def format_probability(p: float, digits: int = 6) -> str:
    """Return a probability rounded for display, without trailing zeros"""
    s = f"{p:.{digits}f}".rstrip("0").rstrip(".")
    return s or "0"


def strings_of_length(terminals: Iterable[int], length: int) -> List[List[int]]:
    """Return all sequences of the given terminal ids having the given length"""
    result: List[List[int]] = [[]]
    ts = list(terminals)
    for _ in range(length):
        result = [s + [t] for s in result for t in ts]
    return result
