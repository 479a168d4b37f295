# proclubs/utils/misc_utils.py
from typing import Any, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")


def normalize_match_id(raw_id: Any) -> Optional[str]:
    """Returns the match id as a stripped string, or None when absent."""
    if raw_id is None or isinstance(raw_id, bool):
        return None
    if isinstance(raw_id, float) and raw_id.is_integer():
        raw_id = int(raw_id)
    match_id = str(raw_id).strip()
    return match_id or None


def parse_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Parses ints the EA API sends as numbers or numeric strings."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def chunked(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """Yields consecutive lists of at most `size` items."""
    chunk: List[T] = []
    for item in items:
        chunk.append(item)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk
