"""Core Erlang syntax tree.

Mirrors the output of ``erlc +to_core``. Every expression, clause and
function definition produced by the parser is wrapped in :class:`Ann`,
which carries the ``-| [...]`` annotation list (possibly empty). Consumers
strip the wrapper with :func:`strip` before matching on the node type.

The set of expression classes is closed: ``EXPRESSION_TYPES`` lists every
one of them, and tree walkers are expected to handle each.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


# ── Constants (attributes, annotations, literals) ──


@dataclass
class Atom:
    name: str


@dataclass
class Integer:
    value: int


@dataclass
class Float:
    value: float


@dataclass
class Char:
    value: str  # source spelling, e.g. "$a" or "$\\n"


@dataclass
class String:
    value: str


@dataclass
class Nil:
    """The empty list ``[]``."""


@dataclass
class ConstTuple:
    elements: list[Const] = field(default_factory=list)


@dataclass
class ConstList:
    elements: list[Const]
    tail: Const | None = None


@dataclass
class ConstBinary:
    """Bit string constant; segments are kept as (value, size, unit, type, flags)."""

    segments: list[tuple[Const, ...]] = field(default_factory=list)


@dataclass
class ConstMap:
    pairs: list[tuple[Const, Const]] = field(default_factory=list)


Literal = Union[Atom, Integer, Float, Char, String, Nil]
Const = Union[Literal, ConstTuple, ConstList, ConstBinary, ConstMap]


# ── Annotation wrapper ──


@dataclass
class Ann(Generic[T]):
    """A node together with its ``-| [...]`` annotation list."""

    node: T
    annotations: list[Const] = field(default_factory=list)

    def unwrap(self) -> T:
        return self.node


def strip(value: Any) -> Any:
    """Return the wrapped node if ``value`` is annotated, else ``value`` itself."""
    if isinstance(value, Ann):
        return value.unwrap()
    return value


@dataclass
class FunName:
    name: str
    arity: int

    def __str__(self) -> str:
        return f"{self.name}/{self.arity}"


# ── Patterns (never contain calls) ──


@dataclass
class PVar:
    name: str


@dataclass
class PLit:
    literal: Literal


@dataclass
class PTuple:
    elements: list[Pattern] = field(default_factory=list)


@dataclass
class PList:
    elements: list[Pattern]
    tail: Pattern | None = None


@dataclass
class PBitSegment:
    pattern: Pattern
    size: Ann[Exp]
    unit: Ann[Exp]
    type: Ann[Exp]
    flags: Ann[Exp]


@dataclass
class PBinary:
    segments: list[PBitSegment] = field(default_factory=list)


@dataclass
class PMapPair:
    key: Ann[Exp]
    pattern: Pattern


@dataclass
class PMap:
    pairs: list[PMapPair] = field(default_factory=list)


@dataclass
class PAlias:
    var: PVar
    pattern: Pattern


Pattern = Union[PVar, PLit, PTuple, PList, PBinary, PMap, PAlias]


# ── Expressions ──


@dataclass
class Var:
    name: str


@dataclass
class Lit:
    literal: Literal


@dataclass
class FunRef:
    """Reference to a local function by name, e.g. ``'loop'/2``."""

    name: FunName


@dataclass
class Fun:
    params: list[str]
    body: Ann[Exp]


@dataclass
class App:
    """Local application: ``apply F (Args)``."""

    function: Ann[Exp]
    args: list[Ann[Exp]] = field(default_factory=list)


@dataclass
class ModCall:
    """Inter-module call: ``call M:F (Args)``."""

    module: Ann[Exp]
    function: Ann[Exp]
    args: list[Ann[Exp]] = field(default_factory=list)


@dataclass
class PrimOp:
    name: str
    args: list[Ann[Exp]] = field(default_factory=list)


@dataclass
class Seq:
    """``do First Then``."""

    first: Ann[Exp]
    then: Ann[Exp]


@dataclass
class Let:
    variables: list[str]
    value: Ann[Exp]
    body: Ann[Exp]


@dataclass
class LetRec:
    fundefs: list[Ann[FunDef]]
    body: Ann[Exp]


@dataclass
class Alt:
    """A case/receive clause. The guard is kept but never walked for calls."""

    patterns: list[Pattern]
    guard: Ann[Exp]
    body: Ann[Exp]


@dataclass
class Case:
    subject: Ann[Exp]
    clauses: list[Ann[Alt]] = field(default_factory=list)


@dataclass
class Receive:
    clauses: list[Ann[Alt]]
    timeout: Ann[Exp]
    action: Ann[Exp]


@dataclass
class Try:
    """``try Body of SuccessVars -> Success catch HandlerVars -> Handler``."""

    body: Ann[Exp]
    success_vars: list[str]
    success: Ann[Exp]
    handler_vars: list[str]
    handler: Ann[Exp]


@dataclass
class Catch:
    body: Ann[Exp]


@dataclass
class Tuple:
    elements: list[Ann[Exp]] = field(default_factory=list)


@dataclass
class List:
    elements: list[Ann[Exp]]
    tail: Ann[Exp] | None = None


@dataclass
class BitSegment:
    value: Ann[Exp]
    size: Ann[Exp]
    unit: Ann[Exp]
    type: Ann[Exp]
    flags: Ann[Exp]


@dataclass
class Binary:
    segments: list[BitSegment] = field(default_factory=list)


@dataclass
class MapPair:
    key: Ann[Exp]
    value: Ann[Exp]
    op: str = "=>"  # "=>" (assoc) or ":=" (exact)


@dataclass
class Map:
    pairs: list[MapPair] = field(default_factory=list)
    base: Ann[Exp] | None = None  # set for the update form ~{ Pairs | Base }~


@dataclass
class Values:
    """Value list ``< E1, ..., En >``."""

    elements: list[Ann[Exp]] = field(default_factory=list)


Exp = Union[
    Var,
    Lit,
    FunRef,
    Fun,
    App,
    ModCall,
    PrimOp,
    Seq,
    Let,
    LetRec,
    Case,
    Receive,
    Try,
    Catch,
    Tuple,
    List,
    Binary,
    Map,
    Values,
]

EXPRESSION_TYPES: tuple[type, ...] = Exp.__args__  # type: ignore[attr-defined]


@dataclass
class FunDef:
    name: FunName
    fun: Ann[Exp]  # always a Fun once stripped


@dataclass
class Module:
    name: Atom
    exports: list[FunName] = field(default_factory=list)
    attributes: list[tuple[Atom, Const]] = field(default_factory=list)
    fundefs: list[Ann[FunDef]] = field(default_factory=list)
