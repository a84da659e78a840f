"""Render extracted cross-module calls as a Graphviz ``digraph``.

Layout of the output, one declaration per line:

    digraph xr {
        "<unit>" [shape=ellipse]          analysed modules
        "<module>" [shape=box]            external / unknown modules
        "<unit>" -> "<module>"            static or dynamic-module call
        "<unit>" -> "<module>" [arrowhead=dot]   dynamic-function call
        /* ignored call to <module> */
        /* unhandled call <description> */
    }

Ignored and unrecognised calls are commented out rather than dropped, so the
file still shows what was skipped.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from xref_grapher.ignore import IgnoreFilter
from xref_grapher.models.call import (
    Call,
    DynAllCall,
    DynFunctionCall,
    DynModuleCall,
    ExtractionResult,
    StaticCall,
    Unimplemented,
    literal_module,
    target_label,
)

logger = logging.getLogger(__name__)

# Target values that never name a real module. "-" turns up in real
# extraction output; where it comes from is unknown.
PLACEHOLDER_TARGETS: frozenset[str] = frozenset({"-"})

_DOT_ID_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def quote(name: str) -> str:
    """Quote a node name so any identifier is a valid DOT ID."""
    escaped = name.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def comment(text: str) -> str:
    """DOT block comment; a ``*/`` inside ``text`` cannot terminate it early."""
    return f"/* {text.replace('*/', '* /')} */"


class GraphRenderer:
    """Turn ``(unit_name, calls)`` pairs into DOT text.

    The renderer is pure: the same input always yields the same string.
    """

    def __init__(
        self,
        ignore_filter: IgnoreFilter | None = None,
        graph_name: str = "xr",
    ) -> None:
        self.ignore_filter = ignore_filter or IgnoreFilter()
        self.graph_name = graph_name

    def render(self, results: Iterable[ExtractionResult | tuple[str, list[Call]]]) -> str:
        pairs = [(unit, list(calls)) for unit, calls in results]
        units = _unique(unit for unit, _ in pairs)
        known = set(units)
        external = _unique(
            module
            for _, calls in pairs
            for module in map(literal_module, calls)
            if module is not None and module not in known and module not in PLACEHOLDER_TARGETS
        )

        name = self.graph_name
        header = name if _DOT_ID_RE.fullmatch(name) else quote(name)
        lines = [f"digraph {header} {{"]
        lines.extend(f"\t{quote(unit)} [shape=ellipse]" for unit in units)
        lines.extend(f"\t{quote(module)} [shape=box]" for module in external)
        for unit, calls in pairs:
            lines.extend(f"\t{self.render_call(unit, call)}" for call in calls)
        lines.append("}")

        logger.debug(
            "Rendered %d units, %d external modules, %d calls",
            len(units),
            len(external),
            sum(len(calls) for _, calls in pairs),
        )
        return "\n".join(lines) + "\n"

    def render_call(self, unit: str, call: Call) -> str:
        """Edge (or comment) line for one call made by ``unit``."""
        if isinstance(call, Unimplemented):
            return comment(f"unhandled call {call.description}")

        module = literal_module(call)
        if self.ignore_filter.is_ignored(module):
            return comment(f"ignored call to {module}")

        edge = f"{quote(unit)} -> {quote(target_label(call))}"
        if isinstance(call, (DynFunctionCall, DynAllCall)):
            return f"{edge} [arrowhead=dot]"
        if isinstance(call, (StaticCall, DynModuleCall)):
            return edge
        raise TypeError(f"Unknown call type: {type(call).__name__}")


def _unique(names: Iterable[str]) -> list[str]:
    """Distinct names in first-seen order."""
    return list(dict.fromkeys(names))
