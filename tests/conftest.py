"""Shared pytest fixtures for xref-grapher tests."""

import textwrap

import pytest

# What `erlc +to_core shop.erl` emits (trimmed) for:
#
#   -module(shop).
#   -export([checkout/2]).
#   checkout(Cart, Db) ->
#       Items = cart:items(Cart),
#       Total = lists:foldl(fun(X, Acc) -> X + Acc end, 0, Items),
#       Db:store(Total),
#       try payment:charge(Total) catch _:E -> logger:error(E) end.
SHOP_CORE = textwrap.dedent(
    """\
    module 'shop' ['checkout'/2,
    \t       'module_info'/0,
    \t       'module_info'/1]
        attributes [%% Line 1
    \t\t'file' =
    \t\t    %% Line 1
    \t\t    [{[115|[104|[111|[112|[46|[101|[114|[108]]]]]]]],1}]]
    'checkout'/2 =
        %% Line 3
        ( fun (_0,Db) ->
    \t  let <Items> =
    \t      call 'cart':'items'
    \t\t  (_0)
    \t  in  let <Total> =
    \t\t  call 'lists':'foldl'
    \t\t      (( fun (_3,_2) ->
    \t\t\t     call 'erlang':'+'
    \t\t\t\t (_3, _2)
    \t\t\t -| [{'id',{0,0,'-checkout/2-fun-0-'}}] ), 0, Items)
    \t      in  do  call Db:'store'
    \t\t\t  (Total)
    \t\t      try
    \t\t\t  call 'payment':'charge'
    \t\t\t      (Total)
    \t\t      of <_4> ->
    \t\t\t  _4
    \t\t      catch <_7,_6,_5> ->
    \t\t\t  call 'logger':'error'
    \t\t\t      (_6)
    \t  -| [{'function',{'checkout',2}}] )
    'module_info'/0 =
        ( fun () ->
    \t  call 'erlang':'get_module_info'
    \t      ('shop')
          -| [{'function',{'module_info',0}}] )
    'module_info'/1 =
        ( fun (_0) ->
    \t  call 'erlang':'get_module_info'
    \t      ('shop', _0)
          -| [{'function',{'module_info',1}}] )
    end
    """
)


@pytest.fixture
def shop_core():
    return SHOP_CORE


@pytest.fixture
def shop_core_file(tmp_path):
    path = tmp_path / "shop.core"
    path.write_text(SHOP_CORE)
    return path

