"""
    Pcfg: Probabilistic context-free grammar parsing

    Settings module

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


    This module reads and interprets the Pcfg.conf configuration file.

    Sections are identified like so: [ section_name ]

    Comments start with # signs.

    Sections are interpreted by section handlers. Environment variables
    provide the initial values, which the configuration file overrides.

"""

from typing import Union

import os
import threading

from reynir.basics import ConfigError, LineReader


def _env_int(name: str, default: str) -> int:
    sval = os.environ.get(name, default)
    try:
        return int(sval)
    except ValueError:
        raise ConfigError(
            "Invalid environment variable value: {0}={1}".format(name, sval)
        )


def _env_float(name: str, default: str) -> float:
    sval = os.environ.get(name, default)
    try:
        return float(sval)
    except ValueError:
        raise ConfigError(
            "Invalid environment variable value: {0}={1}".format(name, sval)
        )


def _env_bool(name: str, default: str) -> bool:
    sval = os.environ.get(name, default)
    try:
        return bool(int(sval))
    except ValueError:
        raise ConfigError(
            "Invalid environment variable value: {0}={1}".format(name, sval)
        )


class Settings:
    """Global settings"""

    _lock = threading.Lock()
    loaded = False

    # Levenberg-Marquardt budget for the erasure probability fit
    SOLVER_MAX_ITERATIONS = _env_int("PCFG_SOLVER_MAX_ITERATIONS", "1000")
    SOLVER_MAX_EVALUATIONS = _env_int("PCFG_SOLVER_MAX_EVALUATIONS", "1000")
    # Largest absolute residual accepted as a converged erasure solution
    SOLVER_TOLERANCE = _env_float("PCFG_SOLVER_TOLERANCE", "1e-9")
    # Raise instead of warn when the erasure fit does not converge
    STRICT_SOLVER = _env_bool("PCFG_STRICT_SOLVER", "0")

    # Sum the probabilities of duplicate rules created during CNF conversion
    # (if False, the first rule wins and later duplicates are dropped)
    MERGE_DUPLICATE_RULES = _env_bool("PCFG_MERGE_DUPLICATE_RULES", "1")

    # Reciprocal condition number below which the unit-rule system
    # is treated as singular
    MIN_RCOND = _env_float("PCFG_MIN_RCOND", "1e-12")

    LOG_LEVEL = os.environ.get("PCFG_LOG_LEVEL", "WARNING").upper()

    DEBUG = False

    # Configuration settings from the Pcfg.conf file
    @staticmethod
    def _handle_settings(s: str) -> None:
        """Handle config parameters in the settings section"""
        a = s.split("=", maxsplit=1)
        if len(a) != 2:
            raise ConfigError("Expected 'name = value' in '{0}'".format(s))
        par = a[0].strip().lower()
        sval = a[1].strip()
        val: Union[None, str, bool] = sval
        if sval.lower() == "none":
            val = None
        elif sval.lower() == "true":
            val = True
        elif sval.lower() == "false":
            val = False
        try:
            if par == "solver_max_iterations":
                Settings.SOLVER_MAX_ITERATIONS = int(val or 0)
            elif par == "solver_max_evaluations":
                Settings.SOLVER_MAX_EVALUATIONS = int(val or 0)
            elif par == "solver_tolerance":
                Settings.SOLVER_TOLERANCE = float(val or 0.0)
            elif par == "strict_solver":
                Settings.STRICT_SOLVER = bool(val)
            elif par == "merge_duplicate_rules":
                Settings.MERGE_DUPLICATE_RULES = bool(val)
            elif par == "min_rcond":
                Settings.MIN_RCOND = float(val or 0.0)
            elif par == "log_level":
                Settings.LOG_LEVEL = str(val).upper()
            elif par == "debug":
                Settings.DEBUG = bool(val)
            else:
                raise ConfigError("Unknown configuration parameter '{0}'".format(par))
        except ValueError:
            raise ConfigError("Invalid parameter value: {0}={1}".format(par, val))

    @staticmethod
    def read(fname: str) -> None:
        """Read configuration file"""

        with Settings._lock:

            if Settings.loaded:
                return

            CONFIG_HANDLERS = {
                "settings": Settings._handle_settings,
            }
            handler = None  # Current section handler

            rdr = None
            try:
                rdr = LineReader(fname)
                for s in rdr.lines():
                    # Ignore comments
                    ix = s.find("#")
                    if ix >= 0:
                        s = s[0:ix]
                    s = s.strip()
                    if not s:
                        # Blank line: ignore
                        continue
                    if s[0] == "[" and s[-1] == "]":
                        # New section
                        section = s[1:-1].strip().lower()
                        if section in CONFIG_HANDLERS:
                            handler = CONFIG_HANDLERS[section]
                            continue
                        raise ConfigError("Unknown section name '{0}'".format(section))
                    if handler is None:
                        raise ConfigError("No handler for config line '{0}'".format(s))
                    # Call the correct handler depending on the section
                    try:
                        handler(s)
                    except ConfigError as e:
                        # Add file name and line number information to the exception
                        # if it's not already there
                        e.set_pos(rdr.fname(), rdr.line())
                        raise e

            except ConfigError as e:
                # Add file name and line number information to the exception
                # if it's not already there
                if rdr:
                    e.set_pos(rdr.fname(), rdr.line())
                raise e

            Settings.loaded = True
