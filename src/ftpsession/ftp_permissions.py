import re
from typing import Union

from ftpsession.errors import InvalidPermissionsError

SYMBOLIC_PERMISSIONS_RE = re.compile(r"^[r-][w-][x-][r-][w-][x-][r-][w-][x-]$")
OCTAL_PERMISSIONS_RE = re.compile(r"^[0-7]{3,4}$")
PERMISSION_BITS = {"r": 4, "w": 2, "x": 1, "-": 0}
MAX_PERMISSIONS = 0o7777


def _group_value(group: str) -> int:
    return sum(PERMISSION_BITS[flag] for flag in group)


def parse_permissions(permissions: Union[int, str]) -> int:
    """Convert ``0o754``, ``"0754"`` or ``"rwxr-xr--"`` into a numeric mode.

    Integers pass through unchanged. Symbolic strings are decoded one
    owner/group/world triplet at a time with r=4, w=2, x=1.
    """
    if isinstance(permissions, bool):
        raise InvalidPermissionsError(permissions)
    if isinstance(permissions, int):
        if permissions < 0 or permissions > MAX_PERMISSIONS:
            raise InvalidPermissionsError(permissions)
        return permissions
    if not isinstance(permissions, str):
        raise InvalidPermissionsError(permissions)

    value = permissions.strip()
    if OCTAL_PERMISSIONS_RE.match(value):
        return int(value, 8)
    if not SYMBOLIC_PERMISSIONS_RE.match(value):
        raise InvalidPermissionsError(permissions)

    owner = _group_value(value[0:3])
    group = _group_value(value[3:6])
    world = _group_value(value[6:9])
    return (owner << 6) | (group << 3) | world


def format_permissions(mode: int) -> str:
    return f"0{mode:03o}"
