"""
Permission Model
================

Tri-state permission attached to every node of a connector's permission tree,
and the rule that turns a node's ancestor chain into an effective grant.
"""

from collections.abc import Mapping, Sequence
from enum import Enum


class Permission(str, Enum):
    """
    Permission stored on a node.

    READ and NONE are explicit user choices; INHERITED marks rows created by
    the sync engine because an ancestor is read-granted.
    """

    READ = "read"
    NONE = "none"
    INHERITED = "inherited"


SETTABLE_PERMISSIONS = frozenset({Permission.READ, Permission.NONE})


def parse_settable_permission(value: str) -> Permission:
    """
    Parse a permission sent by a caller of set_permissions.

    Raises:
        ValueError: if the value is not ``read`` or ``none``.
    """
    try:
        permission = Permission(value)
    except ValueError:
        raise ValueError(f"Invalid permission: {value}") from None
    if permission not in SETTABLE_PERMISSIONS:
        raise ValueError(f"Invalid permission: {value}")
    return permission


def is_read_granted(chain: Sequence[str], explicit: Mapping[str, Permission]) -> bool:
    """
    Resolve the effective read access of a node.

    ``chain`` is the node's internal id followed by its ancestors, nearest
    first. The nearest explicit choice wins: an explicit ``read`` on the node
    beats a ``none`` on any ancestor, and a ``none`` on an intermediate
    container blocks a ``read`` granted higher up.
    """
    for internal_id in chain:
        permission = explicit.get(internal_id)
        if permission == Permission.READ:
            return True
        if permission == Permission.NONE:
            return False
    return False


def explicit_permissions(pairs) -> dict[str, Permission]:
    """Keep only the explicit (READ / NONE) entries of ``(internal_id, permission)`` pairs."""
    return {
        internal_id: Permission(permission)
        for internal_id, permission in pairs
        if permission is not None and Permission(permission) in SETTABLE_PERMISSIONS
    }
