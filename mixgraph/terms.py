"""Python representation of Erlang terms.

Atoms are ``Atom`` (a ``str`` subclass), binaries are ``str`` (or ``bytes``
when not valid UTF-8), Erlang strings are ``Charlist``, tuples, lists and maps
are the matching Python containers. ``true``/``false`` become ``bool`` and
``nil`` becomes ``None``.
"""

import base64
from typing import Any


class Atom(str):
    """An Erlang atom."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Atom({str.__repr__(self)})"


class Charlist(str):
    """An Erlang string, i.e. a list of character codes."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Charlist({str.__repr__(self)})"


class RawExpr(str):
    """Source text of an expression that is not a literal term."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"RawExpr({str.__repr__(self)})"


def is_keyword(value: Any) -> bool:
    """Return True for a list of ``(Atom, value)`` pairs (including ``[]``)."""
    if not isinstance(value, list):
        return False
    return all(
        isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], Atom)
        for item in value
    )


def keyword_get(keyword: Any, key: str, default: Any = None) -> Any:
    """Return the first value stored under ``key`` in a keyword list."""
    if not isinstance(keyword, list):
        return default
    for item in keyword:
        if isinstance(item, tuple) and len(item) == 2 and item[0] == key:
            return item[1]
    return default


def atom_name(value: Any) -> str | None:
    """Return the string form of an atom, or None for anything else."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Atom):
        return str(value)
    return None


def to_json(value: Any) -> Any:
    """Convert a term into JSON-compatible data.

    Keyword lists become objects, tuples become arrays, atoms and charlists
    become strings and non-UTF-8 binaries become base64 strings.
    """
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return str(value)
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, list):
        if value and is_keyword(value):
            return {str(key): to_json(item) for key, item in value}
        return [to_json(item) for item in value]
    if isinstance(value, tuple):
        return [to_json(item) for item in value]
    if isinstance(value, dict):
        return {_json_key(key): to_json(item) for key, item in value.items()}
    return str(value)


def _json_key(key: Any) -> str:
    if isinstance(key, str):
        return str(key)
    if isinstance(key, bytes):
        return base64.b64encode(key).decode("ascii")
    return repr(to_json(key))


def plain_string(value: Any) -> str | None:
    """Return ``value`` if it is a binary string (not an atom, charlist or raw expression)."""
    if isinstance(value, str) and not isinstance(value, (Atom, Charlist, RawExpr)):
        return value
    return None
