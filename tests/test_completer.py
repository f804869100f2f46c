import pytest

from jsassist.completer import JsCompleter, rank
from jsassist.keywords import JS_KEYWORDS, keyword_completions
from jsassist.lang.javascript import JavaScriptTokenizer
from jsassist.models import CompletionContext, CompletionKind
from jsassist.settings import CompleterSettings


# ------------------------------------------------------------------ #
# helpers
# ------------------------------------------------------------------ #
def _end(source: str) -> dict:
    lines = source.split("\n")
    return {"line": len(lines) - 1, "ch": len(lines[-1])}


def _complete(source, caret=None, global_object=None, **settings):
    completer = JsCompleter(CompleterSettings(**settings), global_object=global_object)
    return completer.complete(source, caret or _end(source)).to_list()


def _one(display, postfix, score):
    return [{"display": display, "prefix": display[: len(display) - len(postfix)],
             "postfix": postfix, "score": score}]


# ------------------------------------------------------------------ #
# static analysis
# ------------------------------------------------------------------ #
@pytest.mark.parametrize(
    "source, expected",
    [
        ("var foobar; foo", _one("foobar", "bar", 0)),
        # property assignments
        ("foo.bar = 5; foo.b", _one("bar", "ar", 0)),
        # function calls
        ("foo.bar(); foo.b", _one("bar", "ar", 0)),
        # object literal assigned to a property
        ("foo.bar = {baz:5}; foo.bar.b", _one("baz", "az", 0)),
        # object literal in a declaration
        ("var foo = {bar:5}; foo.b", _one("bar", "ar", 0)),
        ('var foo = {"bar":5}; foo.b', _one("bar", "ar", 0)),
        ("this.bar = 5; this.b", _one("bar", "ar", 0)),
        # through the prototype
        ("F.prototype.bar = 0; var foo = new F(); foo.b", _one("bar", "ar", 0)),
        # keys that are not identifiers
        ('var foo = {"b*": 0}; foo.b', []),
        ("var foo = {b: {bar: 0}}; foo.b.b", _one("bar", "ar", 0)),
        ("f.foo = {bar: 0}; f.foo.b", _one("bar", "ar", 0)),
        # undefined functions
        ("init(); ini", _one("init", "t", 0)),
        # nothing is known about foo
        ("foo.b", []),
    ],
)
def test_static_completion(source, expected):
    assert _complete(source) == expected


def test_static_completion_through_else_clauses():
    source = "if (foo) {} else if (foo) {foo.bar = function () { foo.b }}"
    assert _complete(source, {"line": 0, "ch": len(source) - 3}) == _one("bar", "ar", 0)


def test_global_identifier():
    assert _complete("window.quux = 0; qu", global_identifier="window") == _one("quux", "ux", 0)


def test_dangling_dot_after_constructor():
    source = "function F() { this.x = 1; }\nvar f = new F();\nf."
    assert _complete(source) == _one("x", "x", 0)


def test_inner_symbols_rank_first():
    source = "var value = 0;\nfunction f(valid) {\n  va\n}"
    completion = _complete(source, {"line": 2, "ch": 4})
    displays = [c["display"] for c in completion]
    assert displays[:2] == ["valid", "value"]
    assert displays[-1] == "var"


# ------------------------------------------------------------------ #
# dynamic analysis
# ------------------------------------------------------------------ #
@pytest.mark.parametrize(
    "source, global_object, expected",
    [
        ("foo.ba", {"foo": {"bar": 0}}, _one("bar", "r", -1)),
        ('"foo".', {"String": {"prototype": {"big": 1}}}, _one("big", "big", -1)),
        ("/foo/.", {"RegExp": {"prototype": {"test": "something"}}}, _one("test", "test", -1)),
        # literals map to built-in constructors
        ("var foo = 0; foo.b", {"Number": {"prototype": {"bar": 0}}}, _one("bar", "ar", -1)),
        ("var foo = []; foo.b", {"Array": {"prototype": {"bar": 0}}}, _one("bar", "ar", -1)),
    ],
)
def test_dynamic_completion(source, global_object, expected):
    assert _complete(source, global_object=global_object) == expected


def test_static_candidates_win_over_dynamic_ones():
    completion = _complete("var total = 1; to", global_object={"toString": 1, "total": 2})
    assert [(c["display"], c["score"]) for c in completion] == [("total", 0), ("toString", -1)]


# ------------------------------------------------------------------ #
# keywords
# ------------------------------------------------------------------ #
def test_keyword_completion():
    completion = _complete("vo")
    assert completion[0]["display"] == "void"
    assert completion[0]["postfix"] == "id"
    assert _complete("vo", keywords_enabled=False) == []


def test_keyword_scores_follow_frequency():
    assert JS_KEYWORDS["this"] == -2
    assert JS_KEYWORDS["return"] == -5
    assert keyword_completions("ret").to_list() == _one("return", "urn", -5)
    assert len(keyword_completions("")) == 0


def test_keywords_only_for_bare_identifiers():
    ctx = CompletionContext(kind=CompletionKind.IDENTIFIER, chain=["foo", "vo"])
    assert len(rank(ctx, None, None, JS_KEYWORDS, JavaScriptTokenizer())) == 0


# ------------------------------------------------------------------ #
# ranking properties
# ------------------------------------------------------------------ #
def test_candidates_are_sorted_unique_and_prefixed():
    source = "var delta = 1, deltas = [];\nfunction d(depth) {\n  de\n}"
    caret = {"line": 2, "ch": 4}
    completer = JsCompleter(global_object={"decodeURI": 1, "delta": 2})
    completion = completer.complete(source, caret)

    scores = [c.score for c in completion]
    assert scores == sorted(scores, reverse=True)
    displays = completion.displays()
    assert len(displays) == len(set(displays))
    for c in completion:
        assert c.display.startswith(c.prefix) and len(c.display) > len(c.prefix)
    assert {"delta", "deltas", "depth", "decodeURI", "debugger", "default", "delete"} <= set(displays)

    # same input, same answer
    assert completer.complete(source, caret).displays() == displays


# ------------------------------------------------------------------ #
# static cache
# ------------------------------------------------------------------ #
GOOD = "var foo = {bar: 1};\nfoo.b"
BROKEN = GOOD + "\nvar = ;"
CARET = {"line": 1, "ch": 5}


def test_stale_cache_survives_parse_failure():
    completer = JsCompleter()
    assert completer.complete(GOOD, CARET).displays() == ["bar"]
    version = completer.cache_version

    assert completer.invalidate_cache(BROKEN, CARET) is False
    assert completer.cache_version == version
    assert completer.complete(BROKEN, CARET, fire_static_analysis=True).displays() == ["bar"]


def test_cache_is_reused_until_fired():
    completer = JsCompleter()
    completer.complete("var alpha; al", {"line": 0, "ch": 13})
    source = "var beta; be"
    assert completer.complete(source, _end(source)).displays() == []
    assert completer.complete(source, _end(source), fire_static_analysis=True).displays() == ["beta"]


def test_unchanged_source_is_not_reanalysed():
    completer = JsCompleter()
    assert completer.invalidate_cache(GOOD, CARET) is True
    store = completer.static_store

    assert completer.invalidate_cache(GOOD, CARET) is True
    assert completer.static_store is store
    assert completer.cache_version == 1

    assert completer.invalidate_cache(GOOD, {"line": 1, "ch": 4}) is True
    assert completer.static_store is not store
    assert completer.cache_version == 2


def test_deeply_nested_functions():
    depth = 1200
    line = "var inner = 1; inn"
    source = "function f() {\n" * depth + line + "\n" + "}\n" * depth
    completion = JsCompleter().complete(source, {"line": depth, "ch": len(line)})
    assert "inner" in completion.displays()


def test_context_from_current_line():
    completer = JsCompleter()
    completion = completer.complete(GOOD, CARET, context_from="foo.b")
    assert completion.displays() == ["bar"]


def test_background_rebuild():
    settings = CompleterSettings(background_parse=True)
    with JsCompleter(settings) as completer:
        assert completer.invalidate_cache_async(GOOD, CARET).result(timeout=30) is True
        assert completer.complete(GOOD, CARET).displays() == ["bar"]


def test_outdated_background_rebuild_is_discarded():
    other = "var foo = {baz: 1};\nfoo.b"
    with JsCompleter() as completer:
        first = completer.invalidate_cache_async(GOOD, CARET)
        assert completer.invalidate_cache(other, CARET) is True
        first.result(timeout=30)
        assert completer.cache_version == 2
        assert completer.complete(other, CARET).displays() == ["baz"]
