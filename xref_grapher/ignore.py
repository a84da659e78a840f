"""Ignore filter: modules whose calls are left out of the rendered graph.

The point of the graph is to show important dependencies. Leaf modules
with no interesting side effects rarely count as such, so calls into them
are commented out at render time. Extraction still records them.
"""

from __future__ import annotations

from dataclasses import dataclass

# erlang has plenty of side effects (spawn, timers, ...), but it is so full
# of pure BIFs that it clutters every graph.
DEFAULT_IGNORED_MODULES: frozenset[str] = frozenset(
    {
        "dict",
        "sets",
        "gb_sets",
        "lists",
        "proplists",
        "string",
        "io_lib",
        "re",
        "eunit",
        "erlang",
    }
)


@dataclass(frozen=True)
class IgnoreFilter:
    """Immutable set of module names treated as side-effect free."""

    modules: frozenset[str] = DEFAULT_IGNORED_MODULES

    def is_ignored(self, module: str | None) -> bool:
        return module is not None and module in self.modules

    def __contains__(self, module: object) -> bool:
        return isinstance(module, str) and module in self.modules
