"""mix.lock reading and dependency provenance resolution."""

import logging
from collections import deque
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .errors import LockFileError, TermParseError
from .models import (
    DependencySpec,
    LocalPathProvenance,
    Provenance,
    RegistryProvenance,
    ResolvedDependency,
    UnknownProvenance,
    VersionControlProvenance,
)
from .term_text import ELIXIR, parse_term
from .terms import Atom, atom_name, is_keyword, keyword_get, plain_string

logger = logging.getLogger(__name__)

# Registry lock tuples: legacy {:hex, name, vsn, checksum}, then forms that
# append managers, deps, repo and finally the outer checksum.
REGISTRY_ARITIES = (4, 6, 7, 8)


def parse_lock(content: str, source: str = "mix.lock") -> dict[str, Any]:
    """Parse mix.lock text into a mapping of package name to lock entry.

    Raises:
        LockFileError: If the text is not a literal map
    """
    if not content.strip():
        return {}
    try:
        term = parse_term(content, ELIXIR)
    except TermParseError as exc:
        raise LockFileError(f"Cannot parse {source}: {exc}") from exc
    if not isinstance(term, dict):
        raise LockFileError(f"{source} does not contain a map of lock entries")
    return {str(name): entry for name, entry in term.items()}


def read_lock(path: str | Path) -> dict[str, Any]:
    """Read a lock file; a missing file yields no entries."""
    path = Path(path)
    if not path.is_file():
        logger.warning("Lock file %s not found, resolving without lock entries", path)
        return {}
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise LockFileError(f"Cannot read {path}: {exc}") from exc
    return parse_lock(content, str(path))


def _sub_dependency(item: Any) -> tuple[str, bool] | None:
    """Normalize ``{:dep, req, opts}``, ``{:dep, req}`` or ``:dep`` to (name, optional)."""
    if isinstance(item, tuple) and item:
        name = atom_name(item[0])
        options = next((part for part in item[1:] if isinstance(part, list)), [])
        optional = keyword_get(options, "optional") is True
    elif isinstance(item, (Atom, str)):
        name = str(item)
        optional = False
    else:
        return None
    return (name, optional) if name else None


def _sub_dependencies(items: Any) -> list[tuple[str, bool]]:
    if not isinstance(items, list):
        return []
    seen: dict[str, bool] = {}
    for item in items:
        normalized = _sub_dependency(item)
        if normalized and normalized[0] not in seen:
            seen[normalized[0]] = normalized[1]
    return list(seen.items())


def classify_entry(
    name: str, entry: Any, declaration: DependencySpec | None = None
) -> tuple[Provenance, list[tuple[str, bool]]]:
    """Determine provenance and ``(name, optional)`` sub-dependencies for one package.

    Lock entries take precedence: a git tuple first, then a hex tuple. Without
    a usable lock entry, a declared local path (or umbrella sibling) applies.
    """
    if isinstance(entry, tuple) and entry:
        kind = entry[0]
        if kind == Atom("git") and len(entry) >= 3 and plain_string(entry[1]):
            options = entry[3] if len(entry) > 3 and is_keyword(entry[3]) else []
            provenance = VersionControlProvenance(
                url=entry[1],
                resolved_ref=plain_string(entry[2]),
                sparse_subpath=plain_string(keyword_get(options, "sparse")),
                branch=plain_string(keyword_get(options, "branch")),
                tag=plain_string(keyword_get(options, "tag")),
                submodules=keyword_get(options, "submodules") is True,
            )
            return provenance, _sub_dependencies(keyword_get(options, "deps"))

        if kind == Atom("hex") and len(entry) in REGISTRY_ARITIES:
            hex_name = atom_name(entry[1]) or plain_string(entry[1]) or name
            managers = entry[4] if len(entry) > 4 and isinstance(entry[4], list) else []
            outer = entry[7] if len(entry) == 8 else None
            provenance = RegistryProvenance(
                hex_name=hex_name,
                resolved_version=str(entry[2]),
                integrity_checksum=plain_string(outer),
                inner_checksum=plain_string(entry[3]),
                managers=tuple(str(manager) for manager in managers),
                repo=plain_string(entry[6]) if len(entry) > 6 else None,
            )
            sub_deps = _sub_dependencies(entry[5]) if len(entry) > 5 else []
            return provenance, sub_deps

        logger.warning("Unrecognised lock entry for %s: %r", name, entry)

    if declaration is not None:
        if declaration.path is not None:
            return LocalPathProvenance(relative_path=declaration.path), []
        if declaration.in_umbrella:
            return LocalPathProvenance(relative_path=f"../{name}"), []
    return UnknownProvenance(), []


def resolve(
    declared_deps: Iterable[DependencySpec],
    lock_entries: dict[str, Any],
    excluded: Iterable[str] = (),
) -> list[ResolvedDependency]:
    """Resolve declared dependencies and everything they pull in from the lock.

    Args:
        declared_deps: Dependencies enabled for the current environment
        lock_entries: Parsed lock file, see ``read_lock``
        excluded: Declared names disabled for the current environment; lock
            entries only they reach are left out

    Returns:
        One ResolvedDependency per package in the transitive set, declared
        dependencies first. A required sub-dependency missing from the lock
        becomes an Unknown dependency; a missing optional one is dropped.
    """
    resolved: dict[str, ResolvedDependency] = {}
    children: dict[str, list[tuple[str, bool]]] = {}
    queue: deque[str] = deque()

    def add(name: str, declaration: DependencySpec | None) -> None:
        provenance, sub_deps = classify_entry(name, lock_entries.get(name), declaration)
        if name not in lock_entries and declaration is None:
            logger.warning("Dependency %s has no lock entry", name)
        resolved[name] = ResolvedDependency(
            name=name,
            provenance=provenance,
            declaration=declaration,
        )
        children[name] = sub_deps
        queue.append(name)

    def drain() -> None:
        while queue:
            current = queue.popleft()
            kept = []
            for child, optional in children[current]:
                if child not in resolved:
                    if child in lock_entries:
                        add(child, None)
                    elif optional:
                        logger.debug("Pruning optional %s of %s (not locked)", child, current)
                        continue
                    else:
                        add(child, None)
                kept.append(child)
            resolved[current].immediate_dependencies = kept

    for spec in declared_deps:
        if spec.name in resolved:
            continue
        if spec.name not in lock_entries and spec.path is None and not spec.in_umbrella:
            logger.warning("Declared dependency %s has no lock entry", spec.name)
        add(spec.name, spec)
    drain()

    excluded_only = _reachable(excluded, lock_entries) - resolved.keys()
    for name in sorted(lock_entries):
        if name not in resolved and name not in excluded_only:
            add(name, None)
            drain()

    return list(resolved.values())


def _reachable(names: Iterable[str], lock_entries: dict[str, Any]) -> set[str]:
    seen: set[str] = set()
    queue = deque(names)
    while queue:
        name = queue.popleft()
        if name in seen:
            continue
        seen.add(name)
        _, sub_deps = classify_entry(name, lock_entries.get(name))
        queue.extend(child for child, _ in sub_deps if child in lock_entries)
    return seen
