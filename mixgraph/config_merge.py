"""Deep merging of application configuration fragments."""

import logging
from collections.abc import Iterable
from functools import reduce
from pathlib import Path
from typing import Any

from .errors import TermDecodeError
from .etf import binary_to_term
from .terms import Atom, is_keyword

logger = logging.getLogger(__name__)


def deep_merge(acc: Any, new: Any) -> Any:
    """Merge ``new`` over ``acc``.

    Keyword lists merge like ``Keyword.merge``: keys of ``acc`` missing from
    ``new`` keep their order, followed by the entries of ``new``. Values that
    are keyword lists (or maps) on both sides merge recursively. Anything
    else, including plain lists, is replaced by ``new``.
    """
    if is_keyword(acc) and is_keyword(new):
        previous: dict[Atom, Any] = {}
        for key, value in acc:
            previous.setdefault(key, value)
        new_keys = {key for key, _ in new}
        merged = [(key, value) for key, value in acc if key not in new_keys]
        for key, value in new:
            if key in previous:
                value = deep_merge(previous[key], value)
            merged.append((key, value))
        return merged
    if isinstance(acc, dict) and isinstance(new, dict):
        merged_map = dict(acc)
        for key, value in new.items():
            merged_map[key] = deep_merge(acc[key], value) if key in acc else value
        return merged_map
    return new


def merge(fragments: Iterable[list]) -> list:
    """Fold fragments left to right, later fragments winning."""
    return reduce(deep_merge, fragments, [])


def merge_app_config(existing: list, new: list) -> list:
    """Merge two configurations of the same application."""
    return deep_merge(existing, new)


def merge_by_app(pairs: Iterable[tuple[Atom, list]]) -> list:
    """Group ``(app, config)`` pairs by application and merge each group.

    Applications keep the order in which they first appear.
    """
    grouped: dict[Atom, list] = {}
    for app, config in pairs:
        grouped[app] = merge_app_config(grouped.get(app, []), config)
    return list(grouped.items())


def as_fragment(term: Any) -> list | None:
    """Normalize a decoded term to a keyword list of application configs.

    Accepts a keyword list or a single ``{app, config}`` tuple.
    """
    if isinstance(term, tuple) and len(term) == 2 and isinstance(term[0], Atom):
        term = [term]
    if is_keyword(term):
        return term
    return None


def read_fragment(path: str | Path) -> list:
    """Read one ETF config fragment.

    Unreadable or undecodable files and terms that are not keyword lists
    yield an empty fragment.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.warning("Cannot read config fragment %s: %s", path, exc)
        return []
    try:
        term = binary_to_term(data)
    except TermDecodeError as exc:
        logger.warning("Cannot decode config fragment %s: %s", path, exc)
        return []
    fragment = as_fragment(term)
    if fragment is None:
        logger.warning("Dropping config fragment %s: not a keyword list of applications", path)
        return []
    return fragment


def merge_files(paths: Iterable[str | Path]) -> list:
    """Read and merge fragment files in order."""
    return merge(read_fragment(path) for path in paths)
