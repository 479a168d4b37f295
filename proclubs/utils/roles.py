from typing import Any

from proclubs.models.enums import Role
from proclubs.utils.misc_utils import parse_int

# EA position ids: 0 GK, 1-8 back line, 9-19 midfield, 20-27 front line.
_POSITION_CODE_RANGES = (
    (0, 0, Role.GOALKEEPER),
    (1, 8, Role.DEFENDER),
    (9, 19, Role.MIDFIELDER),
    (20, 27, Role.FORWARD),
)

# Checked in order; "defensive midfielder" must resolve to midfield.
_LABEL_KEYWORDS = (
    (("attack", "forward", "striker"), Role.FORWARD),
    (("mid",), Role.MIDFIELDER),
    (("def", "back"), Role.DEFENDER),
    (("keeper", "gk", "goalie"), Role.GOALKEEPER),
)


def normalize_role(value: Any) -> Role:
    """Maps an EA position code or label to a display Role."""
    if value is None or isinstance(value, bool):
        return Role.UNKNOWN

    code = parse_int(value)
    if code is not None:
        for low, high, role in _POSITION_CODE_RANGES:
            if low <= code <= high:
                return role
        return Role.UNKNOWN

    label = str(value).strip().lower()
    if not label:
        return Role.UNKNOWN
    for keywords, role in _LABEL_KEYWORDS:
        if any(keyword in label for keyword in keywords):
            return role
    return Role.UNKNOWN
