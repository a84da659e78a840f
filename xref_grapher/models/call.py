"""Cross-module call records produced by the extractor.

One class per way the call target can be resolved, plus ``Unimplemented``
for target shapes the extractor does not understand. Only ``call M:F(...)``
sites produce records; local applications are never represented.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Iterator, Union


@dataclass(frozen=True)
class StaticCall:
    """Module and function are both literal atoms."""

    kind: ClassVar[str] = "static"

    target_module: str
    target_function: str
    arity: int


@dataclass(frozen=True)
class DynModuleCall:
    """Function is literal; module is held in a variable (its name is recorded)."""

    kind: ClassVar[str] = "dyn_module"

    target_module_expr: str
    target_function: str
    arity: int


@dataclass(frozen=True)
class DynFunctionCall:
    """Module is literal; function is held in a variable."""

    kind: ClassVar[str] = "dyn_function"

    target_module: str
    target_function_expr: str
    arity: int


@dataclass(frozen=True)
class DynAllCall:
    """Both module and function are held in variables."""

    kind: ClassVar[str] = "dyn_all"

    target_module_expr: str
    target_function_expr: str
    arity: int


@dataclass(frozen=True)
class Unimplemented:
    """A call whose target shape was not recognised; ``description`` dumps what was seen."""

    kind: ClassVar[str] = "unimplemented"

    description: str


Call = Union[StaticCall, DynModuleCall, DynFunctionCall, DynAllCall, Unimplemented]

CALL_TYPES: tuple[type, ...] = (
    StaticCall,
    DynModuleCall,
    DynFunctionCall,
    DynAllCall,
    Unimplemented,
)


def literal_module(call: Call) -> str | None:
    """Literal target module of a call, or None when the module is not a literal."""
    if isinstance(call, (StaticCall, DynFunctionCall)):
        return call.target_module
    return None


def target_label(call: Call) -> str | None:
    """Name used for the edge head: the literal module or the module variable's name."""
    if isinstance(call, (StaticCall, DynFunctionCall)):
        return call.target_module
    if isinstance(call, (DynModuleCall, DynAllCall)):
        return call.target_module_expr
    return None


def call_to_dict(call: Call) -> dict[str, Any]:
    return {"kind": call.kind, **asdict(call)}


def format_call(call: Call) -> str:
    """Human-readable one-liner, e.g. ``lists:map/2`` or ``Mod:start/0``."""
    if isinstance(call, StaticCall):
        return f"{call.target_module}:{call.target_function}/{call.arity}"
    if isinstance(call, DynModuleCall):
        return f"{call.target_module_expr}:{call.target_function}/{call.arity}"
    if isinstance(call, DynFunctionCall):
        return f"{call.target_module}:{call.target_function_expr}/{call.arity}"
    if isinstance(call, DynAllCall):
        return f"{call.target_module_expr}:{call.target_function_expr}/{call.arity}"
    return f"<unhandled {call.description}>"


@dataclass
class ExtractionResult:
    """All cross-module calls made by one compilation unit, in source order."""

    unit_name: str
    calls: list[Call] = field(default_factory=list)

    def __iter__(self) -> Iterator[Any]:
        # Allows ``for unit, calls in results``.
        yield self.unit_name
        yield self.calls
