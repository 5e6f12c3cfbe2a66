import pytest

from tensorlab.errors import TemplateSyntaxError
from tensorlab.template import TemplateEngine


def test_placeholders_are_replaced_and_unknown_ones_pass_through():
    engine = TemplateEngine()
    out = engine.generate("$a + $b = $c", {"a": "1", "b": 2})
    assert out == "1 + 2 = $c"


def test_if_else_selects_branch_by_config():
    text = "\n".join(["start", "#if FLAG", "yes", "#else", "no", "#endif", "end"])
    engine = TemplateEngine()
    assert engine.generate(text, {}, {"FLAG": True}) == "start\nyes\nend"
    assert engine.generate(text, {}, {"FLAG": False}) == "start\nno\nend"
    # Missing keys count as false.
    assert engine.generate(text) == "start\nno\nend"


def test_ifnot_and_elseif():
    text = "\n".join(["#ifnot A", "not a", "#elseif B", "b", "#else", "other", "#endif"])
    engine = TemplateEngine()
    assert engine.generate(text, config={"A": False}) == "not a"
    assert engine.generate(text, config={"A": True, "B": True}) == "b"
    assert engine.generate(text, config={"A": True}) == "other"


def test_nested_blocks():
    text = "\n".join(
        ["#if A", "  a", "  #if B", "  ab", "  #endif", "#endif", "tail"]
    )
    engine = TemplateEngine()
    assert engine.generate(text, config={"A": True, "B": True}) == "  a\n  ab\ntail"
    assert engine.generate(text, config={"A": True}) == "  a\ntail"
    assert engine.generate(text, config={"B": True}) == "tail"


def test_standalone_placeholder_indents_multiline_replacement():
    text = "def f():\n    $body\n    return 1"
    out = TemplateEngine().generate(text, {"body": "x = 1\ny = 2"})
    assert out == "def f():\n    x = 1\n    y = 2\n    return 1"


def test_inline_placeholder_does_not_reindent():
    out = TemplateEngine().generate("a = $v", {"v": "1\n2"})
    assert out == "a = 1\n2"


def test_compile_is_cached_by_text():
    engine = TemplateEngine()
    g1 = engine.compile("x $y")
    g2 = engine.compile("x $y")
    assert g1 is g2
    assert len(engine) == 1
    assert engine.compile("x $z") is not g1


@pytest.mark.parametrize(
    "text, message",
    [
        ("#if A\nbody", "Unterminated"),
        ("#if\nx\n#endif", "Missing condition"),
        ("#ifnot\nx\n#endif", "Missing condition"),
        ("#if A\n#elseif\n#endif", "Missing condition"),
        ("#if A\n#else B\n#endif", "Unexpected condition after #else"),
        ("#if A\n#endif A", "Unexpected condition after #endif"),
        ("#if A\n#else\n#else\n#endif", "#else after #else"),
        ("#if A\n#else\n#elseif B\n#endif", "#elseif after #else"),
        ("#else", "Unexpected #else"),
        ("#elseif A", "Unexpected #elseif"),
        ("x\n#endif", "Unexpected #endif"),
    ],
)
def test_malformed_directives_fail_at_compile_time(text, message):
    with pytest.raises(TemplateSyntaxError, match=message):
        TemplateEngine().compile(text)


def test_syntax_error_carries_line_information():
    with pytest.raises(TemplateSyntaxError) as excinfo:
        TemplateEngine().compile("a\nb\n  #endif")
    err = excinfo.value
    assert err.line == 3
    assert err.line_text == "  #endif"
    assert "(line 3)" in str(err)
    assert isinstance(err, ValueError)


def test_comment_lines_that_look_like_directives_are_text():
    out = TemplateEngine().generate("#iffy\n# if A")
    assert out == "#iffy\n# if A"
