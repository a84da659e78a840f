"""Parse Core Erlang text (``erlc +to_core`` output) into a syntax tree.

A regex tokenizer feeds a recursive-descent parser. The grammar follows the
Core Erlang 1.0.3 grammar plus the map (``~{ }~``) extension that
newer OTP releases emit.

Annotated forms ``( X -| [Const, ...] )`` become :class:`Ann` wrappers.
Annotations on variables, patterns and constants are parsed and dropped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, TypeVar

from xref_grapher.cerl.syntax import (
    Alt,
    Ann,
    App,
    Atom,
    Binary,
    BitSegment,
    Case,
    Catch,
    Char,
    Const,
    ConstBinary,
    ConstList,
    ConstMap,
    ConstTuple,
    Exp,
    Float,
    Fun,
    FunDef,
    FunName,
    FunRef,
    Integer,
    Let,
    LetRec,
    List,
    Lit,
    Literal,
    Map,
    MapPair,
    ModCall,
    Module,
    Nil,
    PAlias,
    Pattern,
    PBinary,
    PBitSegment,
    PList,
    PLit,
    PMap,
    PMapPair,
    PrimOp,
    PTuple,
    PVar,
    Receive,
    Seq,
    String,
    Try,
    Tuple,
    Values,
    Var,
)
from xref_grapher.exceptions import CoreParseError

T = TypeVar("T")

_TOKEN_RE = re.compile(
    r"""
      (?P<ws>\s+|%[^\n]*)
    | (?P<atom>'(?:[^'\\]|\\.)*')
    | (?P<string>"(?:[^"\\]|\\.)*")
    | (?P<char>\$(?:\\(?:[0-7]{1,3}|x\{[0-9a-fA-F]+\}|\^.|.)|[^\\]))
    | (?P<float>[+-]?\d+\.\d+(?:[eE][+-]?\d+)?)
    | (?P<integer>[+-]?\d+)
    | (?P<var>[A-Z_][A-Za-z0-9_@]*)
    | (?P<name>[a-z][A-Za-z0-9_@]*)
    | (?P<punct>-\||->|=>|:=|\#\{|\}\#|~\{|\}~|\#<|[()\[\]{}<>,|:/=])
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPE_RE = re.compile(
    r"\\(?:([0-7]{1,3})|x\{([0-9a-fA-F]+)\}|x([0-9a-fA-F]{2})|\^(.)|(.))",
    re.DOTALL,
)

_SIMPLE_ESCAPES = {
    "b": "\b",
    "d": "\x7f",
    "e": "\x1b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "s": " ",
    "t": "\t",
    "v": "\v",
}

_LITERAL_KINDS = {"atom", "integer", "float", "char", "string"}


def _unescape(text: str) -> str:
    def repl(m: re.Match) -> str:
        octal, hex_braced, hex_pair, ctrl, other = m.groups()
        if octal:
            return chr(int(octal, 8))
        if hex_braced or hex_pair:
            return chr(int(hex_braced or hex_pair, 16))
        if ctrl:
            return chr(ord(ctrl) % 32)
        return _SIMPLE_ESCAPES.get(other, other)

    return _ESCAPE_RE.sub(repl, text)


def _position(text: str, pos: int) -> tuple[int, int]:
    """1-based (line, column) of a character offset."""
    line = text.count("\n", 0, pos) + 1
    column = pos - (text.rfind("\n", 0, pos) + 1) + 1
    return line, column


@dataclass
class Token:
    kind: str  # atom | string | char | float | integer | var | name | punct | eof
    value: str
    pos: int


def tokenize(text: str, filename: str | None = None) -> list[Token]:
    """Split Core Erlang text into tokens, dropping whitespace and ``%`` comments."""
    tokens: list[Token] = []
    pos = 0
    end = len(text)
    while pos < end:
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            line, column = _position(text, pos)
            raise CoreParseError(f"unexpected character {text[pos]!r}", line, column, filename)
        kind = m.lastgroup
        if kind != "ws":
            value = m.group()
            if kind in ("atom", "string"):
                value = _unescape(value[1:-1])
            tokens.append(Token(kind, value, pos))
        pos = m.end()
    tokens.append(Token("eof", "", end))
    return tokens


class _Parser:
    def __init__(self, text: str, filename: str | None = None) -> None:
        self._text = text
        self._filename = filename
        self._tokens = tokenize(text, filename)
        self._i = 0

    # ── token helpers ──

    def _peek(self, offset: int = 0) -> Token:
        return self._tokens[min(self._i + offset, len(self._tokens) - 1)]

    def _next(self) -> Token:
        tok = self._tokens[self._i]
        if tok.kind != "eof":
            self._i += 1
        return tok

    def _at(self, value: str, offset: int = 0) -> bool:
        tok = self._peek(offset)
        return tok.kind in ("punct", "name") and tok.value == value

    def _accept(self, value: str) -> bool:
        if self._at(value):
            self._next()
            return True
        return False

    def _expect(self, value: str) -> None:
        if not self._accept(value):
            raise self._error(f"expected {value!r}")

    def _expect_kind(self, kind: str) -> Token:
        if self._peek().kind != kind:
            raise self._error(f"expected {kind}")
        return self._next()

    def _error(self, message: str) -> CoreParseError:
        tok = self._peek()
        line, column = _position(self._text, tok.pos)
        found = tok.value if tok.kind != "eof" else "end of input"
        return CoreParseError(f"{message}, found {found!r}", line, column, self._filename)

    def _sequence(self, parse: Callable[[], T], close: str) -> list[T]:
        """Comma-separated items up to and including the ``close`` token."""
        items: list[T] = []
        if self._accept(close):
            return items
        items.append(parse())
        while self._accept(","):
            items.append(parse())
        self._expect(close)
        return items

    def _annotated(self, parse: Callable[[], T]) -> Ann[T]:
        if not self._accept("("):
            return Ann(parse())
        inner = self._annotated(parse)
        inner.annotations.extend(self._annotations())
        self._expect(")")
        return inner

    def _annotations(self) -> list[Const]:
        # Plain parentheses without "-|" are tolerated.
        if not self._accept("-|"):
            return []
        self._expect("[")
        return self._sequence(self._const, "]")

    def _cons_chain(self, parse: Callable[[], T]) -> tuple[list[T], T | None]:
        """Elements and tail of a non-empty list whose ``[`` is consumed.

        erlc prints lists as nested cells (``[1|[2|[3]]]``); directly nested
        cells flatten into one element list, so long lists parse in a loop.
        """
        elements: list[T] = []
        tail = None
        opened = 1
        while True:
            elements.append(parse())
            while self._accept(","):
                elements.append(parse())
            if not self._accept("|"):
                break
            if self._at("[") and not self._at("]", 1):
                self._next()
                opened += 1
                continue
            tail = parse()
            break
        for _ in range(opened):
            self._expect("]")
        return elements, tail

    # ── module level ──

    def parse_module(self) -> Ann[Module]:
        module = self._annotated(self._module)
        if self._peek().kind != "eof":
            raise self._error("expected end of input")
        return module

    def parse_expression(self) -> Ann[Exp]:
        expr = self._anno_expr()
        if self._peek().kind != "eof":
            raise self._error("expected end of input")
        return expr

    def _module(self) -> Module:
        self._expect("module")
        name = Atom(self._expect_kind("atom").value)
        self._expect("[")
        exports = self._sequence(self._fun_name, "]")
        self._expect("attributes")
        self._expect("[")
        attributes = self._sequence(self._attribute, "]")
        fundefs = []
        while not self._at("end"):
            fundefs.append(self._fundef())
        self._expect("end")
        return Module(name=name, exports=exports, attributes=attributes, fundefs=fundefs)

    def _bare_fun_name(self) -> FunName:
        name = self._expect_kind("atom").value
        self._expect("/")
        arity = int(self._expect_kind("integer").value)
        return FunName(name, arity)

    def _fun_name(self) -> FunName:
        return self._annotated(self._bare_fun_name).node

    def _attribute(self) -> tuple[Atom, Const]:
        key = self._annotated(lambda: Atom(self._expect_kind("atom").value)).node
        self._expect("=")
        return key, self._const()

    def _fundef(self) -> Ann[FunDef]:
        name = self._annotated(self._bare_fun_name)
        self._expect("=")
        fun = self._anno_expr()
        if not isinstance(fun.node, Fun):
            raise self._error(f"definition of {name.node} is not a fun")
        return Ann(FunDef(name.node, fun), name.annotations)

    # ── constants ──

    def _literal(self) -> Literal:
        if self._peek().kind not in _LITERAL_KINDS:
            raise self._error("expected literal")
        tok = self._next()
        if tok.kind == "atom":
            return Atom(tok.value)
        if tok.kind == "integer":
            return Integer(int(tok.value))
        if tok.kind == "float":
            return Float(float(tok.value))
        if tok.kind == "char":
            return Char(tok.value)
        return String(tok.value)

    def _const(self) -> Const:
        return self._annotated(self._bare_const).node

    def _bare_const(self) -> Const:
        if self._peek().kind in _LITERAL_KINDS:
            return self._literal()
        if self._accept("{"):
            return ConstTuple(self._sequence(self._const, "}"))
        if self._accept("["):
            if self._accept("]"):
                return Nil()
            return ConstList(*self._cons_chain(self._const))
        if self._accept("#{"):
            return ConstBinary(self._sequence(self._const_segment, "}#"))
        if self._accept("~{"):
            return ConstMap(self._sequence(self._const_pair, "}~"))
        raise self._error("expected constant")

    def _const_segment(self) -> tuple[Const, ...]:
        self._expect("#<")
        value = self._const()
        self._expect(">")
        self._expect("(")
        modifiers = self._sequence(self._const, ")")
        return (value, *modifiers)

    def _const_pair(self) -> tuple[Const, Const]:
        key = self._const()
        if not (self._accept("=>") or self._accept(":=")):
            raise self._error("expected '=>' or ':='")
        return key, self._const()

    # ── variables ──

    def _variable(self) -> str:
        return self._annotated(lambda: self._expect_kind("var").value).node

    def _variables(self) -> list[str]:
        if self._accept("<"):
            return self._sequence(self._variable, ">")
        return [self._variable()]

    # ── expressions ──

    def _anno_expr(self) -> Ann[Exp]:
        return self._annotated(self._expr)

    def _expr(self) -> Exp:
        tok = self._peek()
        if tok.kind == "var":
            self._next()
            return Var(tok.value)
        if tok.kind == "atom" and self._at("/", 1):
            return FunRef(self._bare_fun_name())
        if tok.kind in _LITERAL_KINDS:
            return Lit(self._literal())
        if tok.kind == "name" and tok.value in ("let", "do"):
            return self._binding_chain()
        if tok.kind == "name" and tok.value in self._KEYWORDS:
            self._next()
            return self._KEYWORDS[tok.value](self)
        if self._accept("["):
            if self._accept("]"):
                return Lit(Nil())
            return List(*self._cons_chain(self._anno_expr))
        if self._accept("{"):
            return Tuple(self._sequence(self._anno_expr, "}"))
        if self._accept("<"):
            return Values(self._sequence(self._anno_expr, ">"))
        if self._accept("#{"):
            return Binary(self._sequence(self._bit_segment, "}#"))
        if self._accept("~{"):
            return self._map()
        raise self._error("expected expression")

    def _bit_segment(self) -> BitSegment:
        self._expect("#<")
        value = self._anno_expr()
        self._expect(">")
        self._expect("(")
        modifiers = self._sequence(self._anno_expr, ")")
        if len(modifiers) != 4:
            raise self._error("bit segment needs size, unit, type and flags")
        return BitSegment(value, *modifiers)

    def _map(self) -> Map:
        pairs: list[MapPair] = []
        base = None
        if not self._at("}~") and not self._at("|"):
            pairs.append(self._map_pair())
            while self._accept(","):
                pairs.append(self._map_pair())
        if self._accept("|"):
            base = self._anno_expr()
        self._expect("}~")
        return Map(pairs, base)

    def _map_pair(self) -> MapPair:
        key = self._anno_expr()
        op = self._peek().value
        if not (self._accept("=>") or self._accept(":=")):
            raise self._error("expected '=>' or ':='")
        return MapPair(key, self._anno_expr(), op)

    def _fun(self) -> Fun:
        self._expect("(")
        params = self._sequence(self._variable, ")")
        self._expect("->")
        return Fun(params, self._anno_expr())

    def _binding_chain(self) -> Let | Seq:
        """A run of ``let ... in`` / ``do`` heads and the body that ends it.

        A function body of N statements is N nested lets, so the heads are
        collected in a loop and folded from the inside out.
        """
        heads: list[tuple[list[str] | None, Ann[Exp]]] = []
        while True:
            if self._accept("let"):
                variables = self._variables()
                self._expect("=")
                value = self._anno_expr()
                self._expect("in")
                heads.append((variables, value))
            elif self._accept("do"):
                heads.append((None, self._anno_expr()))
            else:
                break
        body = self._anno_expr()
        for variables, value in reversed(heads):
            node = Seq(value, body) if variables is None else Let(variables, value, body)
            body = Ann(node)
        return node

    def _letrec(self) -> LetRec:
        fundefs = []
        while not self._at("in"):
            fundefs.append(self._fundef())
        self._expect("in")
        return LetRec(fundefs, self._anno_expr())

    def _case(self) -> Case:
        subject = self._anno_expr()
        self._expect("of")
        clauses = self._clauses("end")
        self._expect("end")
        return Case(subject, clauses)

    def _receive(self) -> Receive:
        clauses = self._clauses("after")
        self._expect("after")
        timeout = self._anno_expr()
        self._expect("->")
        return Receive(clauses, timeout, self._anno_expr())

    def _apply(self) -> App:
        function = self._anno_expr()
        self._expect("(")
        return App(function, self._sequence(self._anno_expr, ")"))

    def _call(self) -> ModCall:
        module = self._anno_expr()
        self._expect(":")
        function = self._anno_expr()
        self._expect("(")
        return ModCall(module, function, self._sequence(self._anno_expr, ")"))

    def _primop(self) -> PrimOp:
        name = self._annotated(lambda: self._expect_kind("atom").value).node
        self._expect("(")
        return PrimOp(name, self._sequence(self._anno_expr, ")"))

    def _try(self) -> Try:
        body = self._anno_expr()
        self._expect("of")
        success_vars = self._variables()
        self._expect("->")
        success = self._anno_expr()
        self._expect("catch")
        handler_vars = self._variables()
        self._expect("->")
        return Try(body, success_vars, success, handler_vars, self._anno_expr())

    def _catch(self) -> Catch:
        return Catch(self._anno_expr())

    _KEYWORDS: dict[str, Callable[[_Parser], Exp]] = {
        "fun": _fun,
        "letrec": _letrec,
        "case": _case,
        "receive": _receive,
        "apply": _apply,
        "call": _call,
        "primop": _primop,
        "try": _try,
        "catch": _catch,
    }

    # ── clauses and patterns ──

    def _clauses(self, stop: str) -> list[Ann[Alt]]:
        clauses = []
        while not self._at(stop):
            clauses.append(self._clause())
        return clauses

    def _clause(self) -> Ann[Alt]:
        if self._at("("):
            # Either an annotated clause or a clause whose pattern is annotated.
            start = self._i
            self._next()
            patterns = self._patterns()
            if self._at("when"):
                alt = self._clause_rest(patterns)
                annotations = self._annotations()
                self._expect(")")
                return Ann(alt, annotations)
            self._i = start
        return Ann(self._clause_rest(self._patterns()))

    def _clause_rest(self, patterns: list[Pattern]) -> Alt:
        self._expect("when")
        guard = self._anno_expr()
        self._expect("->")
        return Alt(patterns, guard, self._anno_expr())

    def _patterns(self) -> list[Pattern]:
        if self._accept("<"):
            return self._sequence(self._pattern, ">")
        return [self._pattern()]

    def _pattern(self) -> Pattern:
        return self._annotated(self._bare_pattern).node

    def _bare_pattern(self) -> Pattern:
        tok = self._peek()
        if tok.kind == "var":
            self._next()
            if self._accept("="):
                return PAlias(PVar(tok.value), self._pattern())
            return PVar(tok.value)
        if tok.kind in _LITERAL_KINDS:
            return PLit(self._literal())
        if self._accept("["):
            if self._accept("]"):
                return PLit(Nil())
            return PList(*self._cons_chain(self._pattern))
        if self._accept("{"):
            return PTuple(self._sequence(self._pattern, "}"))
        if self._accept("#{"):
            return PBinary(self._sequence(self._pbit_segment, "}#"))
        if self._accept("~{"):
            return PMap(self._sequence(self._pmap_pair, "}~"))
        raise self._error("expected pattern")

    def _pbit_segment(self) -> PBitSegment:
        self._expect("#<")
        pattern = self._pattern()
        self._expect(">")
        self._expect("(")
        modifiers = self._sequence(self._anno_expr, ")")
        if len(modifiers) != 4:
            raise self._error("bit segment needs size, unit, type and flags")
        return PBitSegment(pattern, *modifiers)

    def _pmap_pair(self) -> PMapPair:
        key = self._anno_expr()
        self._expect(":=")
        return PMapPair(key, self._pattern())


def parse_module(text: str, filename: str | None = None) -> Ann[Module]:
    """Parse a complete ``.core`` file.

    Raises:
        CoreParseError: on any syntax error, with line and column.
    """
    try:
        return _Parser(text, filename).parse_module()
    except RecursionError:
        raise CoreParseError("expression nesting too deep", filename=filename) from None


def parse_expression(text: str) -> Ann[Exp]:
    """Parse a single (possibly annotated) Core Erlang expression."""
    try:
        return _Parser(text).parse_expression()
    except RecursionError:
        raise CoreParseError("expression nesting too deep") from None
