"""Static reading of a Mix project's mix.exs."""

import logging
from pathlib import Path
from typing import Any

from .errors import DescriptorError, TermParseError
from .models import DependencySpec, ProjectDescriptor
from .term_text import ELIXIR, Token, TokenReader, tokenize
from .terms import Atom, RawExpr, atom_name, is_keyword, keyword_get, plain_string

logger = logging.getLogger(__name__)


class MixExsReader:
    """Reader for mix.exs files that never evaluates the project's code.

    Module attributes with literal values, the keyword lists returned by
    ``project/0`` and ``application/0`` and the dependency list are parsed
    into terms. Anything that is not a literal is kept as ``RawExpr``.
    """

    def __init__(self, content: str, path: str = "mix.exs"):
        self.content = content
        self.path = path
        try:
            self.tokens = tokenize(content, ELIXIR)
        except TermParseError as exc:
            raise DescriptorError(f"Cannot read {path}: {exc}") from exc
        self.attributes: dict[str, Any] = {}
        self.functions: dict[str, int] = {}

    def _reader(self, index: int) -> TokenReader:
        reader = TokenReader(self.content, self.tokens, ELIXIR, self.attributes)
        reader.index = index
        return reader

    def _starts_line(self, token: Token) -> bool:
        line_start = self.content.rfind("\n", 0, token.start) + 1
        return not self.content[line_start:token.start].strip()

    def _scan(self) -> None:
        """Collect attribute definitions and the first clause of each function of arity 0 or 1."""
        tokens = self.tokens
        for index, token in enumerate(tokens):
            if token.kind == "attr" and self._starts_line(token):
                reader = self._reader(index + 1)
                try:
                    self.attributes[token.value] = reader.parse_value()
                except TermParseError:
                    logger.debug("Skipping non-literal attribute @%s", token.value)
            elif token.kind == "ident" and token.value in ("def", "defp"):
                body = self._function_body(index + 1)
                if body is not None:
                    name, start = body
                    self.functions.setdefault(name, start)

    def _function_body(self, index: int) -> tuple[str, int] | None:
        tokens = self.tokens
        name_token = tokens[index]
        if name_token.kind != "ident":
            return None
        index += 1
        if tokens[index].kind == "(":
            if tokens[index + 1].kind == ")":
                index += 2
            elif tokens[index + 1].kind in ("ident", "atom") and tokens[index + 2].kind == ")":
                # single-argument clause such as deps(:prod) or deps(env)
                index += 3
            else:
                return None
        token = tokens[index]
        if token.kind == "ident" and token.value == "do":
            return name_token.value, index + 1
        if token.kind == "," and tokens[index + 1].kind == "kwkey" and tokens[index + 1].value == "do":
            return name_token.value, index + 2
        return None

    def _tolerant_value(self, reader: TokenReader, closer: str) -> Any:
        """Parse a literal, or skip the expression and keep its source."""
        start = reader.index
        try:
            value = reader.parse_value()
            if reader.at(",") or reader.at(closer):
                return value
        except TermParseError:
            pass
        reader.index = start
        return reader.skip_expression()

    def _tolerant_sequence(self, reader: TokenReader, closer: str) -> list:
        """Read the entries of a list or tuple body up to ``closer``.

        Keyword pairs become ``(Atom, value)`` tuples.
        """
        items: list = []
        while not reader.at(closer) and not reader.at("eof"):
            if reader.at("kwkey"):
                key = Atom(reader.advance().value)
                items.append((key, self._tolerant_value(reader, closer)))
            elif reader.at("{"):
                items.append(self._tolerant_tuple(reader))
            else:
                items.append(self._tolerant_value(reader, closer))
            if not reader.accept(","):
                break
        reader.expect(closer)
        return items

    def _tolerant_tuple(self, reader: TokenReader) -> Any:
        start = reader.index
        try:
            value = reader.parse_value()
            if reader.at(",") or reader.at("]") or reader.at("}"):
                return value
        except TermParseError:
            pass
        reader.index = start
        reader.expect("{")
        entries = self._tolerant_sequence(reader, "}")
        leading = [item for item in entries if not _is_pair(item)]
        trailing = [item for item in entries if _is_pair(item)]
        return tuple(leading + ([trailing] if trailing else []))

    def _list_at(self, index: int) -> list | None:
        reader = self._reader(index)
        if not reader.accept("["):
            return None
        try:
            return self._tolerant_sequence(reader, "]")
        except TermParseError as exc:
            logger.warning("Cannot read list in %s: %s", self.path, exc)
            return None

    def _function_list(self, name: str) -> list | None:
        start = self.functions.get(name)
        if start is None:
            return None
        return self._list_at(start)

    def parse(self) -> ProjectDescriptor:
        """Read the project, application and dependency declarations.

        Raises:
            DescriptorError: If there is no ``project/0`` keyword list or it
                does not name the application
        """
        self._scan()
        project = self._function_list("project")
        if project is None:
            raise DescriptorError(f"{self.path} does not define project/0 as a keyword list")
        project = [item for item in project if _is_pair(item)]

        app = atom_name(keyword_get(project, "app"))
        if not app:
            raise DescriptorError(f"{self.path} does not declare a literal app: name")
        version = plain_string(keyword_get(project, "version"))

        application = self._function_list("application") or []
        application = [item for item in application if _is_pair(item)]

        return ProjectDescriptor(
            path=self.path,
            app=app,
            version=version,
            project=project,
            deps=self._dependencies(keyword_get(project, "deps")),
            application=application,
        )

    def _dependencies(self, value: Any) -> list[DependencySpec]:
        if value is None:
            return []
        if isinstance(value, RawExpr):
            function = str(value).split("(", 1)[0].strip()
            entries = self._function_list(function)
            if entries is None:
                logger.warning("Cannot resolve deps: %s in %s", value, self.path)
                return []
        elif isinstance(value, list):
            entries = value
        else:
            return []

        specs = []
        for entry in entries:
            spec = dependency_spec(entry)
            if spec is None:
                logger.warning("Skipping unrecognised dependency %s", entry)
                continue
            specs.append(spec)
        return specs


def _is_pair(item: Any) -> bool:
    return isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], Atom)


def dependency_spec(entry: Any) -> DependencySpec | None:
    """Build a DependencySpec from a ``{:name, requirement, opts}`` term."""
    if isinstance(entry, Atom):
        return DependencySpec(name=str(entry))
    if not isinstance(entry, tuple) or not entry:
        return None
    name = atom_name(entry[0])
    if not name:
        return None

    requirement = None
    options: dict[str, Any] = {}
    raw_parts = []
    for item in entry[1:]:
        if isinstance(item, list) and is_keyword(item):
            options.update((str(key), value) for key, value in item)
        elif plain_string(item) is not None and requirement is None:
            requirement = item
        elif isinstance(item, RawExpr):
            raw_parts.append(str(item))
    for value in options.values():
        if isinstance(value, RawExpr):
            raw_parts.append(str(value))
    return DependencySpec(
        name=name,
        requirement=requirement,
        options=options,
        raw=", ".join(raw_parts) or None,
    )


def parse_descriptor(content: str, path: str = "mix.exs") -> ProjectDescriptor:
    """Parse mix.exs source text."""
    return MixExsReader(content, path).parse()


def read_descriptor(project_dir: str | Path) -> ProjectDescriptor:
    """Read ``mix.exs`` from a project directory.

    Raises:
        DescriptorError: If the file is missing, unreadable or has no
            statically readable project definition
    """
    path = Path(project_dir) / "mix.exs"
    if not path.is_file():
        raise DescriptorError(f"No mix.exs found in {project_dir}")
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DescriptorError(f"Cannot read {path}: {exc}") from exc
    return parse_descriptor(content, str(path))
