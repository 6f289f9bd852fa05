"""
Room permalink parsing.

Understands matrix.to links and matrix: URIs, e.g.::

    https://matrix.to/#/#room:example.org?via=example.org
    https://matrix.to/#/!abc:example.org/$event?via=a.org&via=b.org
    matrix:r/room:example.org?via=example.org
    matrix:roomid/abc:example.org?via=example.org
"""

from typing import List, Tuple
from urllib.parse import parse_qs, unquote

MATRIX_TO_PREFIX = "https://matrix.to"
MATRIX_URI_PREFIX = "matrix:"

# matrix: URI path segment -> room sigil
_URI_SIGILS = {
    "r": "#",
    "roomid": "!",
}


def is_permalink(text: str) -> bool:
    """Return True if ``text`` uses the matrix.to or matrix: scheme."""
    return text.startswith(MATRIX_TO_PREFIX) or text.startswith(MATRIX_URI_PREFIX)


def _split_query(text: str) -> Tuple[str, List[str]]:
    path, _, query = text.partition("?")
    via = parse_qs(query).get("via", []) if query else []
    return path, via


def parse_permalink(text: str) -> Tuple[str, List[str]]:
    """
    Decompose a permalink into a room reference and routing hints.

    Args:
        text: matrix.to link or matrix: URI

    Returns:
        Tuple of (room_id_or_alias, via_servers)

    Raises:
        ValueError: If the text is not a room permalink
    """
    if text.startswith(MATRIX_TO_PREFIX):
        _, sep, fragment = text.partition("#/")
        if not sep or not fragment:
            raise ValueError(f"Not a room permalink: {text}")
        path, via = _split_query(fragment)
        # Event permalinks carry the event ID as a second segment
        room_ref = unquote(path.split("/")[0])
        if not room_ref or room_ref[0] not in "#!":
            raise ValueError(f"Not a room permalink: {text}")
        return room_ref, via

    if text.startswith(MATRIX_URI_PREFIX):
        path, via = _split_query(text[len(MATRIX_URI_PREFIX):])
        segments = path.split("/")
        if len(segments) < 2 or segments[0] not in _URI_SIGILS or not segments[1]:
            raise ValueError(f"Not a room permalink: {text}")
        return _URI_SIGILS[segments[0]] + unquote(segments[1]), via

    raise ValueError(f"Not a room permalink: {text}")
