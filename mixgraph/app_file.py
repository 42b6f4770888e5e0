"""Locating and reading ``.app`` application resource files."""

import logging
from pathlib import Path
from typing import Any

from .errors import TermParseError
from .models import AppDescriptor, StartCallback
from .term_text import consult
from .terms import Atom, atom_name, is_keyword, keyword_get

logger = logging.getLogger(__name__)


def find_app_file(
    name: str,
    package_path: str | Path,
    root_path: str | Path | None = None,
    env: str = "dev",
) -> Path | None:
    """Return the first ``<name>.app`` found in the conventional locations.

    Search order: ``<package>/ebin``, ``<package>/_build/*/lib/<name>/ebin``,
    and for dependencies ``<root>/_build/<env>/lib/<name>/ebin``.
    """
    package_path = Path(package_path)
    filename = f"{name}.app"

    candidate = package_path / "ebin" / filename
    if candidate.is_file():
        return candidate

    for candidate in sorted(package_path.glob(f"_build/*/lib/{name}/ebin/{filename}")):
        if candidate.is_file():
            return candidate

    if root_path is not None and Path(root_path).resolve() != package_path.resolve():
        candidate = Path(root_path) / "_build" / env / "lib" / name / "ebin" / filename
        if candidate.is_file():
            return candidate
    return None


def _names(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if atom_name(item)]


def _text(value: Any) -> str:
    if isinstance(value, str):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return ""


def parse_app_file(content: str, name: str) -> AppDescriptor | None:
    """Parse ``{application, Name, Spec}.`` text, or None if it is not one for ``name``."""
    try:
        terms = consult(content)
    except TermParseError as exc:
        logger.warning("Malformed application file for %s: %s", name, exc)
        return None
    if len(terms) != 1:
        return None
    term = terms[0]
    if not (
        isinstance(term, tuple)
        and len(term) == 3
        and term[0] == Atom("application")
        and term[1] == Atom(name)
        and is_keyword(term[2])
    ):
        logger.warning("Application file for %s does not describe that application", name)
        return None

    spec = term[2]
    mod = keyword_get(spec, "mod")
    start = None
    if isinstance(mod, tuple) and len(mod) == 2 and atom_name(mod[0]):
        start = StartCallback(module=str(mod[0]), args=mod[1])
    env = keyword_get(spec, "env", [])

    return AppDescriptor(
        vsn=_text(keyword_get(spec, "vsn")),
        description=_text(keyword_get(spec, "description")),
        modules=_names(keyword_get(spec, "modules")),
        registered=_names(keyword_get(spec, "registered")),
        applications=_names(keyword_get(spec, "applications")),
        optional_applications=_names(keyword_get(spec, "optional_applications")),
        included_applications=_names(keyword_get(spec, "included_applications")),
        mod=start,
        env=env if is_keyword(env) else [],
        spec=spec,
    )


def extract(
    name: str,
    package_path: str | Path,
    root_path: str | Path | None = None,
    env: str = "dev",
) -> AppDescriptor | None:
    """Find and read the application descriptor for a package.

    Returns:
        AppDescriptor, or None when no file is found or it cannot be read
    """
    path = find_app_file(name, package_path, root_path, env)
    if path is None:
        logger.debug("No application file for %s", name)
        return None
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Cannot read %s: %s", path, exc)
        return None
    return parse_app_file(content, name)


def find_app_src(name: str, package_path: str | Path) -> str | None:
    """Relative path of the package's ``<name>.app.src``, if present."""
    package_path = Path(package_path)
    for relative in (f"src/{name}.app.src", f"{name}.app.src"):
        if (package_path / relative).is_file():
            return relative
    return None
