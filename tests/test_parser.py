"""Tests for the Core Erlang tokenizer and parser."""

from __future__ import annotations

import pytest

from xref_grapher.cerl.parser import parse_expression, parse_module, tokenize
from xref_grapher.cerl.syntax import (
    Ann,
    App,
    Atom,
    Binary,
    Case,
    Catch,
    Char,
    ConstList,
    ConstTuple,
    Float,
    Fun,
    FunName,
    FunRef,
    Integer,
    Let,
    LetRec,
    List,
    Lit,
    Map,
    ModCall,
    Nil,
    PAlias,
    PList,
    PLit,
    PMap,
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
    strip,
)
from xref_grapher.exceptions import CoreParseError
from xref_grapher.extractor import extract_cross_refs
from xref_grapher.models.call import StaticCall


def _expr(text: str):
    return strip(parse_expression(text))


# ── Tokenizer ──


class TestTokenize:
    def test_comments_and_whitespace_dropped(self):
        tokens = tokenize("%% Line 1\n  'ok' % trailing\n")
        assert [(t.kind, t.value) for t in tokens] == [("atom", "ok"), ("eof", "")]

    def test_punctuation(self):
        kinds = [t.value for t in tokenize("-| -> => := #{ }# ~{ }~ #<")][:-1]
        assert kinds == ["-|", "->", "=>", ":=", "#{", "}#", "~{", "}~", "#<"]

    def test_atom_escapes(self):
        (tok, _eof) = tokenize(r"'it\'s'")
        assert tok.value == "it's"

    def test_variables_and_keywords(self):
        tokens = tokenize("_0 Cor1 _@c2 let in")
        assert [t.kind for t in tokens[:-1]] == ["var", "var", "var", "name", "name"]

    def test_negative_numbers(self):
        tokens = tokenize("-12 -1.5e3")
        assert [(t.kind, t.value) for t in tokens[:-1]] == [
            ("integer", "-12"),
            ("float", "-1.5e3"),
        ]

    def test_unexpected_character(self):
        with pytest.raises(CoreParseError) as exc_info:
            tokenize("'a'\n  ?")
        assert exc_info.value.line == 2
        assert exc_info.value.column == 3


# ── Module level ──


class TestParseModule:
    def test_header(self, shop_core):
        module = parse_module(shop_core)
        assert isinstance(module, Ann)
        mod = module.node
        assert mod.name == Atom("shop")
        assert mod.exports == [
            FunName("checkout", 2),
            FunName("module_info", 0),
            FunName("module_info", 1),
        ]
        assert [str(e) for e in mod.exports] == ["checkout/2", "module_info/0", "module_info/1"]

    def test_attributes(self, shop_core):
        mod = parse_module(shop_core).node
        assert len(mod.attributes) == 1
        key, value = mod.attributes[0]
        assert key == Atom("file")
        assert isinstance(value, ConstList)
        file_tuple = value.elements[0]
        assert isinstance(file_tuple, ConstTuple)
        assert file_tuple.elements[1] == Integer(1)

    def test_fundefs_in_file_order(self, shop_core):
        mod = parse_module(shop_core).node
        names = [str(strip(fd).name) for fd in mod.fundefs]
        assert names == ["checkout/2", "module_info/0", "module_info/1"]

    def test_fun_annotations_kept(self, shop_core):
        fundef = strip(parse_module(shop_core).node.fundefs[0])
        assert isinstance(fundef.fun, Ann)
        assert isinstance(fundef.fun.node, Fun)
        assert fundef.fun.node.params == ["_0", "Db"]
        assert fundef.fun.annotations == [
            ConstTuple([Atom("function"), ConstTuple([Atom("checkout"), Integer(2)])])
        ]

    def test_empty_module(self):
        mod = parse_module("module 'empty' [] attributes [] end").node
        assert mod.name == Atom("empty")
        assert mod.exports == []
        assert mod.fundefs == []

    def test_annotated_module(self):
        module = parse_module("( module 'm' [] attributes [] end -| ['x'] )")
        assert module.node.name == Atom("m")
        assert module.annotations == [Atom("x")]

    def test_missing_end_reports_line(self):
        with pytest.raises(CoreParseError) as exc_info:
            parse_module("module 'm' [] attributes []\n")
        assert exc_info.value.line == 2
        assert "expected atom" in exc_info.value.message

    def test_definition_must_be_fun(self):
        with pytest.raises(CoreParseError, match="not a fun"):
            parse_module("module 'm' ['f'/0] attributes [] 'f'/0 = 'x' end")

    def test_filename_in_message(self):
        with pytest.raises(CoreParseError) as exc_info:
            parse_module("module 'm' [", filename="m.core")
        assert str(exc_info.value).startswith("m.core:1:")

    def test_trailing_input_rejected(self):
        with pytest.raises(CoreParseError, match="end of input"):
            parse_module("module 'm' [] attributes [] end 'extra'")

    def test_deep_nesting_is_a_parse_error(self):
        depth = 5000
        body = "{" * depth + "'a'" + "}" * depth
        text = f"module 'm' ['f'/0] attributes [] 'f'/0 = fun () -> {body} end"
        with pytest.raises(CoreParseError, match="nesting too deep"):
            parse_module(text)


# ── Expressions ──


class TestParseExpression:
    def test_literals(self):
        assert _expr("'ok'") == Lit(Atom("ok"))
        assert _expr("42") == Lit(Integer(42))
        assert _expr("-1.5e3") == Lit(Float(-1500.0))
        assert _expr("$a") == Lit(Char("$a"))
        assert _expr('"a\\nb"') == Lit(String("a\nb"))
        assert _expr("[]") == Lit(Nil())

    def test_variable(self):
        assert _expr("_cor0") == Var("_cor0")

    def test_annotation(self):
        node = parse_expression("( 'ok' -| ['compiler_generated'] )")
        assert node.node == Lit(Atom("ok"))
        assert node.annotations == [Atom("compiler_generated")]

    def test_nested_annotations_merge(self):
        node = parse_expression("( ( X -| [1] ) -| [2] )")
        assert node.node == Var("X")
        assert node.annotations == [Integer(1), Integer(2)]

    def test_remote_call(self):
        node = _expr("call 'lists':'map'(F, L)")
        assert isinstance(node, ModCall)
        assert strip(node.module) == Lit(Atom("lists"))
        assert strip(node.function) == Lit(Atom("map"))
        assert [strip(a) for a in node.args] == [Var("F"), Var("L")]

    def test_apply_fun_ref(self):
        node = _expr("apply 'loop'/2 (S, 0)")
        assert isinstance(node, App)
        assert strip(node.function) == FunRef(FunName("loop", 2))
        assert len(node.args) == 2

    def test_primop(self):
        node = _expr("primop 'match_fail'({'badmatch', X})")
        assert isinstance(node, PrimOp)
        assert node.name == "match_fail"
        assert isinstance(strip(node.args[0]), Tuple)

    def test_let_with_value_list(self):
        node = _expr("let <A, B> = <1, 2> in A")
        assert isinstance(node, Let)
        assert node.variables == ["A", "B"]
        assert isinstance(strip(node.value), Values)
        assert strip(node.body) == Var("A")

    def test_let_single_variable(self):
        node = _expr("let X = 1 in X")
        assert node.variables == ["X"]

    def test_letrec(self):
        node = _expr("letrec 'lc$^0'/1 = fun (_0) -> _0 in apply 'lc$^0'/1 (L)")
        assert isinstance(node, LetRec)
        assert len(node.fundefs) == 1
        assert strip(node.fundefs[0]).name == FunName("lc$^0", 1)
        assert isinstance(strip(node.body), App)

    def test_seq(self):
        node = _expr("do 'a' 'b'")
        assert node == Seq(Ann(Lit(Atom("a"))), Ann(Lit(Atom("b"))))

    def test_case_with_annotated_clause(self):
        node = _expr(
            """case X of
                 <'a'> when 'true' -> 1
                 ( <_1> when 'true' ->
                     primop 'match_fail'({'case_clause', _1})
                   -| ['compiler_generated'] )
               end"""
        )
        assert isinstance(node, Case)
        assert len(node.clauses) == 2
        first, second = node.clauses
        assert first.node.patterns == [PLit(Atom("a"))]
        assert strip(first.node.guard) == Lit(Atom("true"))
        assert second.annotations == [Atom("compiler_generated")]
        assert second.node.patterns == [PVar("_1")]
        assert isinstance(strip(second.node.body), PrimOp)

    def test_clause_with_annotated_pattern(self):
        node = _expr("case X of ( {A} -| ['p'] ) when 'true' -> A end")
        clause = node.clauses[0]
        assert clause.annotations == []
        assert clause.node.patterns == [PTuple([PVar("A")])]

    def test_alias_and_map_patterns(self):
        node = _expr("case X of <Y = {'a'}, ~{'k' := V}~> when 'true' -> V end")
        alias, map_pattern = node.clauses[0].node.patterns
        assert alias == PAlias(PVar("Y"), PTuple([PLit(Atom("a"))]))
        assert isinstance(map_pattern, PMap)
        assert map_pattern.pairs[0].pattern == PVar("V")

    def test_receive(self):
        node = _expr("receive <M> when 'true' -> M after 'infinity' -> 'true'")
        assert isinstance(node, Receive)
        assert len(node.clauses) == 1
        assert strip(node.timeout) == Lit(Atom("infinity"))
        assert strip(node.action) == Lit(Atom("true"))

    def test_try(self):
        node = _expr("try E of <R> -> R catch <C, T, S> -> 'error'")
        assert isinstance(node, Try)
        assert node.success_vars == ["R"]
        assert node.handler_vars == ["C", "T", "S"]
        assert strip(node.handler) == Lit(Atom("error"))

    def test_catch(self):
        node = _expr("catch call 'm':'f'()")
        assert isinstance(node, Catch)
        assert isinstance(strip(node.body), ModCall)

    def test_list_with_tail(self):
        node = _expr("[1, 2 | T]")
        assert isinstance(node, List)
        assert len(node.elements) == 2
        assert strip(node.tail) == Var("T")

    def test_binary(self):
        node = _expr("#{#<X>(8,1,'integer',['unsigned'|['big']])}#")
        assert isinstance(node, Binary)
        seg = node.segments[0]
        assert strip(seg.value) == Var("X")
        assert strip(seg.size) == Lit(Integer(8))
        assert strip(seg.type) == Lit(Atom("integer"))

    def test_binary_segment_needs_four_modifiers(self):
        with pytest.raises(CoreParseError, match="bit segment"):
            parse_expression("#{#<X>(8,1)}#")

    def test_map_update(self):
        node = _expr("~{'a' => 1, 'b' := 2 | M}~")
        assert isinstance(node, Map)
        assert [p.op for p in node.pairs] == ["=>", ":="]
        assert strip(node.base) == Var("M")

    def test_empty_map(self):
        assert _expr("~{}~") == Map([], None)

    def test_fun(self):
        node = _expr("fun (A, B) -> A")
        assert node == Fun(["A", "B"], Ann(Var("A")))

    def test_unknown_keyword(self):
        with pytest.raises(CoreParseError, match="expected expression"):
            parse_expression("when")


# ── Deep nesting ──


def _cons(items: list[str]) -> str:
    """``[a|[b|[c]]]``, the way erlc prints list literals."""
    return "".join(f"[{item}|" for item in items[:-1]) + f"[{items[-1]}]" + "]" * (len(items) - 1)


class TestDeepNesting:
    def test_long_let_chain(self):
        depth = 1_000
        heads = "".join(f"let <X{i}> = call 'm':'s{i}'() in\n" for i in range(depth))
        text = (
            "module 'big' ['run'/0]\n"
            "    attributes []\n"
            "'run'/0 =\n"
            "    fun () ->\n"
            f"{heads}call 'deep':'f'()\n"
            "end\n"
        )

        module = parse_module(text)

        node = strip(strip(module.node.fundefs[0]).fun).body
        lets = 0
        while isinstance(strip(node), Let):
            lets += 1
            node = strip(node).body
        assert lets == depth
        assert strip(node) == ModCall(Ann(Lit(Atom("deep"))), Ann(Lit(Atom("f"))), [])

        calls = extract_cross_refs(module).calls
        assert len(calls) == depth + 1
        assert calls[0] == StaticCall("m", "s0", 0)
        assert calls[-1] == StaticCall("deep", "f", 0)

    def test_mixed_let_and_do_chain(self):
        node = _expr("do call 'a':'f'() let X = 1 in do 'ok' X")
        assert isinstance(node, Seq)
        inner = strip(node.then)
        assert isinstance(inner, Let)
        assert strip(inner.body) == Seq(Ann(Lit(Atom("ok"))), Ann(Var("X")))

    def test_long_cons_list(self):
        n = 2_000
        node = _expr(f"call 'lists':'sum'({_cons([str(i) for i in range(n)])})")
        arg = strip(node.args[0])
        assert isinstance(arg, List)
        assert len(arg.elements) == n
        assert strip(arg.elements[-1]) == Lit(Integer(n - 1))
        assert arg.tail is None

    def test_long_cons_constant(self):
        n = 2_000
        text = (
            f"module 'big' [] attributes ['file' = {_cons([str(i) for i in range(n)])}] end"
        )
        _, value = parse_module(text).node.attributes[0]
        assert isinstance(value, ConstList)
        assert len(value.elements) == n
        assert value.tail is None

    def test_cons_with_open_tail(self):
        node = _expr("[1|[2|T]]")
        assert [strip(e) for e in node.elements] == [Lit(Integer(1)), Lit(Integer(2))]
        assert strip(node.tail) == Var("T")

    def test_explicit_nil_tail_kept(self):
        assert _expr("[1|[]]") == List([Ann(Lit(Integer(1)))], Ann(Lit(Nil())))

    def test_cons_pattern(self):
        node = _expr("case X of <[1|[2|T]]> when 'true' -> T end")
        assert node.clauses[0].node.patterns == [
            PList([PLit(Integer(1)), PLit(Integer(2))], PVar("T"))
        ]


class TestUnwrap:
    def test_strip_uses_unwrap(self):
        wrapped = Ann(Var("X"), [Atom("compiler_generated")])
        assert wrapped.unwrap() == Var("X")
        assert strip(wrapped) == wrapped.unwrap()

    def test_strip_passes_bare_nodes_through(self):
        assert strip(Var("X")) == Var("X")
