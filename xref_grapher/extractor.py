"""Cross-reference extractor: collect every ``call M:F(...)`` in a Core Erlang module.

The walk is depth-first and left-to-right over every sub-expression that
can hold a call: lambda bodies, let/letrec bindings (including the funs a
letrec introduces), sequences, case and receive clause bodies, try
body/success/handler, catch, tuples, lists, binaries, maps, value lists
and primop arguments. Clause guards are not walked. Patterns never are.

It uses an explicit work stack instead of recursion, so the long let-chains
the compiler produces for straight-line code cannot exhaust the interpreter
stack.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from xref_grapher.cerl.syntax import (
    Ann,
    App,
    Atom,
    Binary,
    Case,
    Catch,
    Exp,
    Fun,
    FunRef,
    Let,
    LetRec,
    List,
    Lit,
    Map,
    ModCall,
    Module,
    PrimOp,
    Receive,
    Seq,
    Try,
    Tuple,
    Values,
    Var,
    strip,
)
from xref_grapher.models.call import (
    CALL_TYPES,
    Call,
    DynAllCall,
    DynFunctionCall,
    DynModuleCall,
    ExtractionResult,
    StaticCall,
    Unimplemented,
)

logger = logging.getLogger(__name__)

# A child is either a sub-expression still to visit or a finished Call to emit.
_Children = Callable[[Any], list]


def classify_call(module: Ann[Exp] | Exp, function: Ann[Exp] | Exp, arity: int) -> Call:
    """Classify a ``call M:F/arity`` target by the shape of its two parts."""
    m = strip(module)
    f = strip(function)
    m_atom = _atom_name(m)
    f_atom = _atom_name(f)
    m_var = m.name if isinstance(m, Var) else None
    f_var = f.name if isinstance(f, Var) else None

    if m_atom is not None and f_atom is not None:
        return StaticCall(m_atom, f_atom, arity)
    if m_atom is not None and f_var is not None:
        return DynFunctionCall(m_atom, f_var, arity)
    if m_var is not None and f_atom is not None:
        return DynModuleCall(m_var, f_atom, arity)
    if m_var is not None and f_var is not None:
        return DynAllCall(m_var, f_var, arity)
    return Unimplemented(repr((m, f, arity)))


def _atom_name(node: Any) -> str | None:
    if isinstance(node, Lit) and isinstance(node.literal, Atom):
        return node.literal.name
    return None


def _mod_call(node: ModCall) -> list:
    call = classify_call(node.module, node.function, len(node.args))
    return [node.module, node.function, *node.args, call]


def _list(node: List) -> list:
    children: list = list(node.elements)
    if node.tail is not None:
        children.append(node.tail)
    return children


def _binary(node: Binary) -> list:
    return [
        part
        for seg in node.segments
        for part in (seg.value, seg.size, seg.unit, seg.type, seg.flags)
    ]


def _map(node: Map) -> list:
    children: list = [] if node.base is None else [node.base]
    for pair in node.pairs:
        children.extend((pair.key, pair.value))
    return children


def _nothing(node: Any) -> list:
    return []


# One entry per expression kind in cerl.syntax.Exp.
_CHILDREN: dict[type, _Children] = {
    Var: _nothing,
    Lit: _nothing,
    FunRef: _nothing,
    Fun: lambda n: [n.body],
    App: lambda n: [n.function, *n.args],
    ModCall: _mod_call,
    PrimOp: lambda n: list(n.args),
    Seq: lambda n: [n.first, n.then],
    Let: lambda n: [n.value, n.body],
    LetRec: lambda n: [*(strip(fd).fun for fd in n.fundefs), n.body],
    Case: lambda n: [n.subject, *(strip(c).body for c in n.clauses)],
    Receive: lambda n: [*(strip(c).body for c in n.clauses), n.timeout, n.action],
    Try: lambda n: [n.body, n.success, n.handler],
    Catch: lambda n: [n.body],
    Tuple: lambda n: list(n.elements),
    List: _list,
    Binary: _binary,
    Map: _map,
    Values: lambda n: list(n.elements),
}


def handled_expression_types() -> frozenset[type]:
    """Expression classes the walker dispatches on."""
    return frozenset(_CHILDREN)


def extract_calls(*roots: Ann[Exp] | Exp) -> list[Call]:
    """All cross-module calls under ``roots``, in left-to-right, outer-to-inner order."""
    calls: list[Call] = []
    stack: list = list(reversed(roots))
    while stack:
        item = stack.pop()
        if isinstance(item, CALL_TYPES):
            calls.append(item)
            continue
        node = strip(item)
        children = _CHILDREN.get(type(node))
        if children is None:
            raise TypeError(f"No cross-reference rule for {type(node).__name__}")
        stack.extend(reversed(children(node)))
    return calls


def extract_cross_refs(module: Ann[Module] | Module) -> ExtractionResult:
    """Extract ``(unit_name, calls)`` for one compiled module.

    Every top-level function definition is walked in file order. The result
    is deterministic: the same tree always yields the same list.
    """
    mod = strip(module)
    calls = extract_calls(*(strip(fd).fun for fd in mod.fundefs))
    logger.debug("Module %s: %d cross-module calls", mod.name.name, len(calls))
    return ExtractionResult(unit_name=mod.name.name, calls=calls)
