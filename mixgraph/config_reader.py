"""Static evaluation of ``config/*.exs`` files.

Only top-level ``config`` and ``import_config`` calls with literal arguments
are understood. ``config_env()``, ``config_target()``, ``Mix.env()`` and
``Mix.target()`` resolve to the requested environment and target.
"""

import logging
from pathlib import Path
from typing import Any

from .config_merge import deep_merge, merge
from .errors import TermParseError
from .term_text import ELIXIR, Token, TokenReader, tokenize
from .terms import Atom, atom_name, is_keyword, plain_string

logger = logging.getLogger(__name__)

_OPENERS = {"{", "[", "(", "%{", "<<"}
_CLOSERS = {"}", "]", ")", ">>"}


class ConfigScript:
    """One configuration file and the files it imports."""

    def __init__(
        self,
        path: str | Path,
        env: str,
        target: str = "host",
        imports: bool = True,
        parents: frozenset[Path] = frozenset(),
    ):
        self.path = Path(path)
        self.env = env
        self.target = target
        self.imports = imports
        self.parents = parents
        self.bindings = {
            "config_env()": Atom(env),
            "config_target()": Atom(target),
            "Mix.env()": Atom(env),
            "Mix.target()": Atom(target),
        }
        self.source = ""

    def _starts_line(self, token: Token) -> bool:
        line_start = self.source.rfind("\n", 0, token.start) + 1
        return not self.source[line_start:token.start].strip()

    def _line(self, token: Token) -> int:
        return self.source.count("\n", 0, token.start) + 1

    def _at_boundary(self, reader: TokenReader) -> bool:
        token = reader.peek()
        if token.kind in ("eof", ",") or token.kind in _CLOSERS:
            return True
        previous = reader.tokens[reader.index - 1] if reader.index else None
        continued = previous is not None and previous.kind in ("op", ",", "=>", "|", "-", "kwkey")
        return self._starts_line(token) and token.kind != "op" and not continued

    def _skip(self, reader: TokenReader) -> None:
        """Advance to the end of the current value or statement."""
        depth = 0
        while True:
            token = reader.peek()
            if token.kind == "eof":
                return
            if depth == 0 and reader.index > 0 and self._at_boundary(reader):
                return
            if token.kind in _OPENERS or (token.kind == "ident" and token.value in ("do", "fn")):
                depth += 1
            elif token.kind in _CLOSERS or (token.kind == "ident" and token.value == "end"):
                depth -= 1
            reader.advance()

    def read(self) -> list:
        """Evaluate the file into a keyword list of application configs."""
        try:
            self.source = self.path.read_text(encoding="utf-8")
            tokens = tokenize(self.source, ELIXIR)
        except (OSError, UnicodeDecodeError, TermParseError) as exc:
            logger.warning("Cannot read config file %s: %s", self.path, exc)
            return []

        reader = TokenReader(self.source, tokens, ELIXIR, bindings=self.bindings)
        result: list = []
        depth = 0
        while not reader.at("eof"):
            token = reader.peek()
            if token.kind == "ident" and token.value in ("config", "import_config"):
                if depth > 0:
                    logger.warning(
                        "Skipping %s inside a block at %s:%d",
                        token.value, self.path, self._line(token),
                    )
                elif self._starts_line(token):
                    if token.value == "config":
                        fragment = self._config_call(reader)
                    else:
                        fragment = self._import_call(reader)
                    result = deep_merge(result, fragment)
                    continue
            if token.kind in _OPENERS or (token.kind == "ident" and token.value in ("do", "fn")):
                depth += 1
            elif token.kind in _CLOSERS or (token.kind == "ident" and token.value == "end"):
                depth = max(depth - 1, 0)
            reader.advance()
        return result

    def _keywords(self, reader: TokenReader, closer: str | None = None) -> list:
        pairs = []
        while reader.at("kwkey"):
            key = Atom(reader.advance().value)
            start = reader.index
            try:
                if reader.at("[") and reader.peek(1).kind == "kwkey":
                    reader.advance()
                    value: Any = self._keywords(reader, "]")
                    reader.expect("]")
                else:
                    value = reader.parse_value()
                if not self._at_boundary(reader):
                    raise TermParseError("Not a literal value", reader.peek().start)
                pairs.append((key, value))
            except TermParseError:
                reader.index = start
                self._skip(reader)
                logger.warning(
                    "Skipping non-literal value for %s in %s:%d",
                    key, self.path, self._line(reader.tokens[start]),
                )
            if not reader.accept(","):
                break
        if closer is not None and not reader.at(closer):
            raise TermParseError(f"Expected {closer!r}", reader.peek().start)
        return pairs

    def _config_call(self, reader: TokenReader) -> list:
        call = reader.advance()
        paren = reader.accept("(")
        try:
            app = reader.parse_value()
            if not atom_name(app):
                raise TermParseError("Application name must be an atom", call.start)
            reader.expect(",")
            if reader.at("kwkey"):
                fragment = [(app, self._keywords(reader, ")" if paren else None))]
            else:
                key = reader.parse_value()
                reader.expect(",")
                if reader.at("[") and reader.peek(1).kind == "kwkey":
                    reader.advance()
                    options = self._keywords(reader, "]")
                    reader.expect("]")
                elif reader.at("kwkey"):
                    options = self._keywords(reader, ")" if paren else None)
                else:
                    options = reader.parse_value()
                if not is_keyword(options):
                    raise TermParseError("config/3 expects a keyword list", call.start)
                fragment = [(app, [(key, options)])]
            if paren:
                reader.expect(")")
            return fragment
        except TermParseError as exc:
            logger.warning("Skipping config call at %s:%d: %s", self.path, self._line(call), exc)
            self._skip(reader)
            return []

    def _import_call(self, reader: TokenReader) -> list:
        call = reader.advance()
        paren = reader.accept("(")
        try:
            name = plain_string(reader.parse_value())
            if paren:
                reader.expect(")")
        except TermParseError as exc:
            logger.warning("Skipping import_config at %s:%d: %s", self.path, self._line(call), exc)
            self._skip(reader)
            return []
        if name is None:
            logger.warning("import_config at %s:%d needs a string path", self.path, self._line(call))
            return []
        if not self.imports:
            logger.info("Imports disabled, ignoring import_config %r", name)
            return []

        target = (self.path.parent / name).resolve()
        if target in self.parents or target == self.path.resolve():
            logger.warning("Circular import_config of %s from %s", target, self.path)
            return []
        if not target.is_file():
            logger.warning("import_config target %s does not exist", target)
            return []
        logger.debug("Importing %s", target)
        nested = ConfigScript(
            target,
            self.env,
            self.target,
            self.imports,
            self.parents | {self.path.resolve()},
        )
        return nested.read()


def read_config_file(path: str | Path, env: str, target: str = "host", imports: bool = True) -> list:
    """Evaluate a single configuration file."""
    return ConfigScript(path, env, target, imports).read()


def read_config(base_dir: str | Path, env: str, imports: bool = True, target: str = "host") -> list:
    """Read ``config/config.exs`` then ``config/<env>.exs`` and merge them.

    Returns:
        Keyword list of ``(app, config)`` pairs; empty when neither file exists
    """
    config_dir = Path(base_dir) / "config"
    fragments = []
    for name in ("config.exs", f"{env}.exs"):
        path = config_dir / name
        if path.is_file():
            logger.debug("Reading %s", path)
            fragments.append(read_config_file(path, env, target, imports))
        else:
            logger.debug("No %s found", path)
    return merge(fragments)
