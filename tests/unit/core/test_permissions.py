import pytest

from tributary.core.connectors.domain.permissions import (
    Permission,
    explicit_permissions,
    is_read_granted,
    parse_settable_permission,
)


def test_nearest_explicit_none_blocks_read_granted_higher_up():
    explicit = {"A": Permission.READ, "A.B": Permission.NONE}

    assert not is_read_granted(["A.B.item1", "A.B", "A"], explicit)
    assert is_read_granted(["A.C.item2", "A.C", "A"], explicit)


def test_explicit_read_on_node_beats_none_on_ancestor():
    explicit = {"A": Permission.NONE, "A.B.item1": Permission.READ}

    assert is_read_granted(["A.B.item1", "A.B", "A"], explicit)


def test_no_explicit_choice_means_not_granted():
    assert not is_read_granted(["A.B.item1", "A.B", "A"], {})


def test_inherited_entries_do_not_decide():
    explicit = explicit_permissions(
        [("A.B", Permission.INHERITED), ("A", Permission.READ), ("A.X", None)]
    )

    assert explicit == {"A": Permission.READ}
    assert is_read_granted(["A.B.item1", "A.B", "A"], explicit)


def test_explicit_permissions_accepts_raw_strings():
    assert explicit_permissions([("A", "read"), ("B", "none"), ("C", "inherited")]) == {
        "A": Permission.READ,
        "B": Permission.NONE,
    }


@pytest.mark.parametrize("value", ["read", "none"])
def test_parse_settable_permission(value):
    assert parse_settable_permission(value) == Permission(value)


@pytest.mark.parametrize("value", ["inherited", "write", ""])
def test_parse_settable_permission_rejects_other_values(value):
    with pytest.raises(ValueError):
        parse_settable_permission(value)
