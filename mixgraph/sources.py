"""Source file classification for a package directory."""

import logging
import os
import re
from pathlib import Path

from .models import SourceProfile

logger = logging.getLogger(__name__)

SCAN_DIRS = ("", "src", "lib", "include")
EXCLUDED_DIRS = {"deps", "_build"}

# Erlang sources that other modules need at compile time
COMPILE_FIRST_PATTERNS = [
    re.compile(r"^-export\(\s*\[[^\]]*\bparse_transform\s*/\s*2", re.MULTILINE),  # exported transform
    re.compile(r"^parse_transform\s*\(", re.MULTILINE),  # transform definition
    re.compile(r"^-callback\s", re.MULTILINE),  # behaviour callbacks
    re.compile(r"^behaviour_info\s*\(", re.MULTILINE),  # old-style behaviour
]


def _walk(package_path: Path) -> list[str]:
    """Relative paths of every file under the scanned directories, sorted."""
    found: set[str] = set()
    for name in SCAN_DIRS:
        top = package_path / name if name else package_path
        if not top.is_dir():
            continue
        for dirpath, dirnames, filenames in os.walk(top):
            dirnames[:] = [d for d in dirnames if d not in EXCLUDED_DIRS]
            for filename in filenames:
                relative = Path(dirpath, filename).relative_to(package_path)
                if EXCLUDED_DIRS.isdisjoint(relative.parts[:-1]):
                    found.add(relative.as_posix())
    return sorted(found)


def needs_compile_first(content: str) -> bool:
    """Whether Erlang source text declares a parse transform or behaviour."""
    return any(pattern.search(content) for pattern in COMPILE_FIRST_PATTERNS)


def classify(package_path: str | Path) -> SourceProfile:
    """Classify the source files shipped by a package.

    Args:
        package_path: Package root directory

    Returns:
        SourceProfile; an empty profile when the directory does not exist
    """
    package_path = Path(package_path)
    if not package_path.is_dir():
        logger.debug("No package directory at %s", package_path)
        return SourceProfile()

    files = _walk(package_path)
    erl_files = [path for path in files if path.endswith(".erl")]

    compile_first = []
    for relative in erl_files:
        try:
            content = (package_path / relative).read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Cannot read %s: %s", package_path / relative, exc)
            continue
        if needs_compile_first(content):
            compile_first.append(relative)

    return SourceProfile(
        has_primary_source=any(path.endswith(".ex") for path in files),
        has_secondary_source=bool(erl_files),
        has_headers=any(path.endswith(".hrl") for path in files),
        generated_inputs=[path for path in files if path.endswith(".xrl")]
        + [path for path in files if path.endswith(".yrl")],
        compile_first=compile_first,
    )
