import pytest

from metallb.config.selector import (
    Operator,
    Requirement,
    Selector,
    SelectorError,
    everything,
    from_label_selector,
    nothing,
)


def test_everything_matches_all():
    sel = everything()
    assert sel.is_empty()
    assert sel.matches({})
    assert sel.matches({"foo": "bar"})
    assert str(sel) == ""


def test_nothing_matches_none():
    sel = nothing()
    assert not sel.is_empty()
    assert not sel.matches({})
    assert sel != everything()


def test_empty_inputs_give_everything():
    assert from_label_selector({}, []) == everything()


def test_string_form_from_source():
    sel = from_label_selector({"foo": "bar"}, [("bar", "In", ["quux"])])
    assert str(sel) == "bar in (quux),foo=bar"


def test_order_independent():
    a = from_label_selector({"foo": "bar"}, [("bar", "In", ["y", "x"])])
    b = from_label_selector({"foo": "bar"}, [("bar", "In", ["x", "y"])])
    assert a == b


def test_matches():
    sel = from_label_selector({"foo": "bar"}, [("bar", "In", ["quux"])])
    assert sel.matches({"foo": "bar", "bar": "quux"})
    assert not sel.matches({"foo": "bar"})
    assert not sel.matches({"foo": "baz", "bar": "quux"})


def test_notin_exists_doesnotexist():
    sel = from_label_selector(
        {}, [("a", "NotIn", ["x"]), ("b", "Exists", []), ("c", "DoesNotExist", [])]
    )
    assert sel.matches({"b": "1"})
    assert not sel.matches({"a": "x", "b": "1"})
    assert not sel.matches({"b": "1", "c": "1"})
    assert not sel.matches({})


@pytest.mark.parametrize(
    "expr",
    [
        ("", "In", ["foo", "bar"]),
        ("foo", "", ["foo", "bar"]),
        ("foo", "Surrounds", ["foo", "bar"]),
        ("foo", "In", []),
        ("foo", "Exists", ["x"]),
        ("bad key!", "Exists", []),
    ],
)
def test_invalid_expressions(expr):
    with pytest.raises(SelectorError):
        from_label_selector({}, [expr])


def test_invalid_label_value():
    with pytest.raises(SelectorError):
        from_label_selector({"foo": "not a value"}, [])


def test_requirement_values_sorted():
    r = Requirement("k", Operator.IN, ("b", "a"))
    assert r.values == ("a", "b")
    assert Selector((r,)).matches({"k": "a"})