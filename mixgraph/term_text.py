"""Reading and writing Elixir/Erlang term literals as text.

The lexer accepts arbitrary Elixir source so callers can walk files such as
``mix.exs`` without executing them; only the parser insists on literals.
"""

import re
from dataclasses import dataclass
from typing import Any

from .errors import TermParseError
from .terms import Atom, Charlist, RawExpr

ELIXIR = "elixir"
ERLANG = "erlang"

_OPENERS = {"{", "[", "(", "%{", "#{", "<<"}
_CLOSERS = {"}", "]", ")", ">>"}
_OP_CHARS = set("=<>!&|+-*/\\^~?:;")
_IDENT_START = re.compile(r"[a-z_]")
_IDENT = re.compile(r"[a-z_][A-Za-z0-9_]*[?!]?")
_ERL_ATOM = re.compile(r"[a-z][A-Za-z0-9_@]*")
_ERL_VAR = re.compile(r"[A-Z_][A-Za-z0-9_]*")
_ALIAS = re.compile(r"[A-Z][A-Za-z0-9_]*(?:\.[A-Z][A-Za-z0-9_]*)*")
_ATOM_BODY = re.compile(r"[A-Za-z_][A-Za-z0-9_@]*[?!]?")
_SIGIL_START = re.compile(r"~([a-z]|[A-Z][A-Z0-9]*)[/|\"'(\[{<]")
_NUMBER = re.compile(
    r"0x[0-9A-Fa-f_]+|0o[0-7_]+|0b[01_]+"
    r"|[0-9][0-9_]*(?:\.[0-9][0-9_]*(?:[eE][+-]?[0-9]+)?)?"
)
_ERL_NUMBER = re.compile(
    r"[0-9]+#[0-9A-Za-z]+"
    r"|[0-9][0-9_]*(?:\.[0-9][0-9_]*(?:[eE][+-]?[0-9]+)?)?"
)
_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "s": " ", "0": "\0", "a": "\a",
    "b": "\b", "d": "\x7f", "e": "\x1b", "f": "\f", "v": "\v",
}
_SIGIL_PAIRS = {"(": ")", "[": "]", "{": "}", "<": ">"}
_ERLANG_RESERVED = {
    "after", "and", "andalso", "band", "begin", "bnot", "bor", "bsl", "bsr",
    "bxor", "case", "catch", "cond", "div", "else", "end", "fun", "if", "let",
    "maybe", "not", "of", "or", "orelse", "receive", "rem", "try", "when", "xor",
}


@dataclass
class Token:
    """A lexical token with its source span."""

    kind: str
    value: Any
    start: int
    end: int


@dataclass
class Interpolation:
    """An ``#{...}`` segment inside an Elixir string."""

    code: str


class _Lexer:
    def __init__(self, text: str, dialect: str):
        if dialect not in (ELIXIR, ERLANG):
            raise ValueError(f"Unknown term dialect: {dialect}")
        self.text = text
        self.dialect = dialect
        self.pos = 0
        self.tokens: list[Token] = []

    def run(self) -> list[Token]:
        text = self.text
        while True:
            self._skip_space()
            if self.pos >= len(text):
                break
            start = self.pos
            if self.dialect == ELIXIR:
                self._lex_elixir(start)
            else:
                self._lex_erlang(start)
        self.tokens.append(Token("eof", None, len(text), len(text)))
        return self.tokens

    def _emit(self, kind: str, value: Any, start: int) -> None:
        self.tokens.append(Token(kind, value, start, self.pos))

    def _skip_space(self) -> None:
        text = self.text
        comment = "#" if self.dialect == ELIXIR else "%"
        while self.pos < len(text):
            char = text[self.pos]
            if char.isspace():
                self.pos += 1
            elif char == comment and not (
                self.dialect == ELIXIR and text.startswith("#{", self.pos)
            ):
                end = text.find("\n", self.pos)
                self.pos = len(text) if end == -1 else end + 1
            else:
                break

    # -- Elixir -----------------------------------------------------------

    def _lex_elixir(self, start: int) -> None:
        text = self.text
        char = text[start]

        if text.startswith('"""', start):
            self.pos = start + 3
            parts = self._read_string('"""', interpolate=True)
            self._emit("string", parts, start)
            return
        if char == '"':
            self.pos = start + 1
            parts = self._read_string('"', interpolate=True)
            if self._at_keyword_colon() and all(isinstance(p, str) for p in parts):
                self.pos += 1
                self._emit("kwkey", "".join(parts), start)
            else:
                self._emit("string", parts, start)
            return
        if char == "'":
            self.pos = start + 1
            parts = self._read_string("'", interpolate=True)
            if not all(isinstance(p, str) for p in parts):
                raise TermParseError("Interpolated charlists are not supported", start)
            self._emit("charlist", "".join(parts), start)
            return
        if char == ":" and start + 1 < len(text):
            nxt = text[start + 1]
            if nxt == '"':
                self.pos = start + 2
                parts = self._read_string('"', interpolate=True)
                if not all(isinstance(p, str) for p in parts):
                    raise TermParseError("Interpolated atoms are not supported", start)
                self._emit("atom", "".join(parts), start)
                return
            if nxt != ":":
                match = _ATOM_BODY.match(text, start + 1)
                if match:
                    self.pos = match.end()
                    self._emit("atom", match.group(0), start)
                    return
        if text.startswith("%{", start):
            self.pos = start + 2
            self._emit("%{", None, start)
            return
        if char == "@":
            match = _IDENT.match(text, start + 1)
            if match:
                self.pos = match.end()
                self._emit("attr", match.group(0), start)
                return
        if char == "?" and start + 1 < len(text):
            self.pos = start + 1
            self._emit("int", ord(self._read_char()), start)
            return
        if char == "~" and _SIGIL_START.match(text, start):
            self._read_sigil(start)
            return
        if "0" <= char <= "9":
            match = _NUMBER.match(text, start)
            self.pos = match.end()
            self._emit(*_number_token(match.group(0)), start)
            return
        if _IDENT_START.match(char):
            match = _IDENT.match(text, start)
            self.pos = match.end()
            if self._at_keyword_colon():
                self.pos += 1
                self._emit("kwkey", match.group(0), start)
            else:
                self._emit("ident", match.group(0), start)
            return
        if "A" <= char <= "Z":
            match = _ALIAS.match(text, start)
            self.pos = match.end()
            if self._at_keyword_colon():
                self.pos += 1
                self._emit("kwkey", match.group(0), start)
            else:
                self._emit("alias", match.group(0), start)
            return
        self._lex_punct(start)

    def _at_keyword_colon(self) -> bool:
        text = self.text
        pos = self.pos
        if pos >= len(text) or text[pos] != ":":
            return False
        if pos + 1 < len(text) and text[pos + 1] == ":":
            return False
        return pos + 1 >= len(text) or text[pos + 1].isspace()

    def _read_sigil(self, start: int) -> None:
        text = self.text
        letters = _SIGIL_START.match(text, start).group(1)
        pos = start + 1 + len(letters)
        if text.startswith('"""', pos):
            opener, closer = '"""', '"""'
        else:
            if pos >= len(text):
                raise TermParseError("Unterminated sigil", start)
            opener = text[pos]
            closer = _SIGIL_PAIRS.get(opener, opener)
        pos += len(opener)
        depth = 0
        body_start = pos
        while True:
            if pos >= len(text):
                raise TermParseError("Unterminated sigil", start)
            if text[pos] == "\\":
                pos += 2
                continue
            if text.startswith(closer, pos) and depth == 0:
                break
            if opener != closer and text[pos] == opener:
                depth += 1
            elif opener != closer and text[pos] == closer:
                depth -= 1
            pos += 1
        body = text[body_start:pos]
        pos += len(closer)
        modifiers = re.match(r"[a-zA-Z]*", text[pos:]).group(0)
        self.pos = pos + len(modifiers)
        self._emit("sigil", (letters, body, modifiers), start)

    # -- Erlang -----------------------------------------------------------

    def _lex_erlang(self, start: int) -> None:
        text = self.text
        char = text[start]

        if char == '"':
            self.pos = start + 1
            parts = self._read_string('"', interpolate=False)
            self._emit("charlist", "".join(parts), start)
            return
        if char == "'":
            self.pos = start + 1
            parts = self._read_string("'", interpolate=False)
            self._emit("atom", "".join(parts), start)
            return
        if text.startswith("#{", start):
            self.pos = start + 2
            self._emit("#{", None, start)
            return
        if char == "$" and start + 1 < len(text):
            self.pos = start + 1
            self._emit("int", ord(self._read_char()), start)
            return
        if "0" <= char <= "9":
            match = _ERL_NUMBER.match(text, start)
            self.pos = match.end()
            self._emit(*_number_token(match.group(0)), start)
            return
        if "a" <= char <= "z":
            match = _ERL_ATOM.match(text, start)
            self.pos = match.end()
            self._emit("atom", match.group(0), start)
            return
        if "A" <= char <= "Z" or char == "_":
            match = _ERL_VAR.match(text, start)
            self.pos = match.end()
            self._emit("var", match.group(0), start)
            return
        self._lex_punct(start)

    # -- shared -----------------------------------------------------------

    def _lex_punct(self, start: int) -> None:
        text = self.text
        char = text[start]
        if char in "{}[](),.":
            if text.startswith("..", start):
                self.pos = start + 2
                self._emit("op", "..", start)
                return
            self.pos = start + 1
            self._emit(char, None, start)
            return
        if char in _OP_CHARS:
            end = start
            while end < len(text) and text[end] in _OP_CHARS:
                end += 1
            if end - start > 1 and text[end - 1] == "-" and end < len(text) and text[end].isdigit():
                end -= 1
            op = text[start:end]
            if op == "<<>>":
                self.pos = start + 2
                self._emit("<<", None, start)
                start = self.pos
                op = ">>"
            self.pos = end
            if op in ("=>", "|", "<<", ">>", "-"):
                self._emit(op, None, start)
            else:
                self._emit("op", op, start)
            return
        self.pos = start + 1
        self._emit("op", char, start)

    def _read_char(self) -> str:
        text = self.text
        char = text[self.pos]
        if char == "\\" and self.pos + 1 < len(text):
            self.pos += 2
            escaped = text[self.pos - 1]
            return _ESCAPES.get(escaped, escaped)
        self.pos += 1
        return char

    def _read_string(self, delimiter: str, interpolate: bool) -> list:
        text = self.text
        start = self.pos
        parts: list = []
        buffer: list[str] = []
        while True:
            if self.pos >= len(text):
                raise TermParseError("Unterminated string", start)
            if text.startswith(delimiter, self.pos):
                self.pos += len(delimiter)
                break
            char = text[self.pos]
            if char == "\\":
                self.pos += 1
                if self.pos >= len(text):
                    raise TermParseError("Unterminated string", start)
                escaped = text[self.pos]
                self.pos += 1
                if escaped == "x":
                    buffer.append(self._read_hex_escape())
                elif escaped == "u" and self.dialect == ELIXIR:
                    buffer.append(self._read_unicode_escape())
                elif escaped == "\n":
                    continue
                else:
                    buffer.append(_ESCAPES.get(escaped, escaped))
            elif interpolate and text.startswith("#{", self.pos):
                if buffer:
                    parts.append("".join(buffer))
                    buffer = []
                parts.append(Interpolation(self._read_interpolation()))
            else:
                buffer.append(char)
                self.pos += 1
        if buffer or not parts:
            parts.append("".join(buffer))
        return parts

    def _read_interpolation(self) -> str:
        text = self.text
        start = self.pos
        self.pos += 2
        depth = 1
        code_start = self.pos
        while self.pos < len(text):
            char = text[self.pos]
            if char == '"':
                self.pos += 1
                self._read_string('"', interpolate=True)
                continue
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    code = text[code_start:self.pos]
                    self.pos += 1
                    return code
            self.pos += 1
        raise TermParseError("Unterminated interpolation", start)

    def _read_hex_escape(self) -> str:
        text = self.text
        if text.startswith("{", self.pos):
            end = text.index("}", self.pos)
            code = text[self.pos + 1:end]
            self.pos = end + 1
        else:
            code = text[self.pos:self.pos + 2]
            self.pos += 2
        return chr(int(code, 16))

    def _read_unicode_escape(self) -> str:
        text = self.text
        if text.startswith("{", self.pos):
            end = text.index("}", self.pos)
            code = text[self.pos + 1:end]
            self.pos = end + 1
        else:
            code = text[self.pos:self.pos + 4]
            self.pos += 4
        return chr(int(code, 16))


def _number_token(literal: str) -> tuple[str, Any]:
    clean = literal.replace("_", "")
    if "#" in clean:
        base, digits = clean.split("#", 1)
        return "int", int(digits, int(base))
    if clean.startswith(("0x", "0o", "0b")):
        return "int", int(clean, 0)
    if "." in clean:
        return "float", float(clean)
    return "int", int(clean)


def tokenize(text: str, dialect: str = ELIXIR) -> list[Token]:
    """Split source text into tokens, ending with an ``eof`` token."""
    return _Lexer(text, dialect).run()


class TokenReader:
    """Cursor over a token list that parses literal terms.

    ``attributes`` resolves ``@name`` references and ``bindings`` resolves
    zero-arity calls such as ``config_env()`` or ``Mix.env()``, including
    inside string interpolation.
    """

    def __init__(
        self,
        source: str,
        tokens: list[Token],
        dialect: str = ELIXIR,
        attributes: dict[str, Any] | None = None,
        bindings: dict[str, Any] | None = None,
    ):
        self.source = source
        self.tokens = tokens
        self.dialect = dialect
        self.attributes = attributes or {}
        self.bindings = bindings or {}
        self.index = 0

    def peek(self, offset: int = 0) -> Token:
        index = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.peek()
        if token.kind != "eof":
            self.index += 1
        return token

    def at(self, kind: str, value: Any = None) -> bool:
        token = self.peek()
        return token.kind == kind and (value is None or token.value == value)

    def expect(self, kind: str) -> Token:
        token = self.peek()
        if token.kind != kind:
            raise self._error(f"Expected {kind!r}, found {token.kind!r}", token)
        return self.advance()

    def accept(self, kind: str) -> bool:
        if self.peek().kind == kind:
            self.advance()
            return True
        return False

    def _error(self, message: str, token: Token | None = None) -> TermParseError:
        token = token or self.peek()
        return TermParseError(message, token.start)

    def skip_expression(self) -> RawExpr:
        """Skip to the next top-level comma or closing bracket.

        Returns the skipped source text.
        """
        start_token = self.peek()
        depth = 0
        last_end = start_token.start
        while True:
            token = self.peek()
            if token.kind == "eof":
                break
            if depth == 0 and token.kind == ",":
                break
            if token.kind in _OPENERS or (token.kind == "ident" and token.value in ("do", "fn")):
                depth += 1
            elif token.kind in _CLOSERS or (token.kind == "ident" and token.value == "end"):
                if depth == 0:
                    break
                depth -= 1
            last_end = token.end
            self.advance()
        return RawExpr(self.source[start_token.start:last_end].strip())

    def parse_value(self) -> Any:
        if self.dialect == ELIXIR:
            return self._elixir_value()
        return self._erlang_value()

    def parse_keywords(self) -> list:
        """Parse bracket-less ``key: value`` pairs, as in call arguments."""
        pairs = []
        while self.at("kwkey"):
            key = Atom(self.advance().value)
            pairs.append((key, self.parse_value()))
            if not self.accept(","):
                break
        return pairs

    # -- Elixir -----------------------------------------------------------

    def _elixir_value(self) -> Any:
        token = self.peek()
        kind = token.kind
        if kind == "{":
            self.advance()
            return tuple(self._elixir_sequence("}", allow_keyword_tail=True))
        if kind == "[":
            self.advance()
            return self._elixir_sequence("]", allow_keyword_tail=False)
        if kind == "%{":
            self.advance()
            return self._elixir_map()
        if kind == "op" and token.value == "%" and self.peek(1).kind == "alias":
            self.advance()
            struct = Atom("Elixir." + self.advance().value)
            self.expect("{")
            fields = self._elixir_map()
            return {Atom("__struct__"): struct, **fields}
        if kind == "<<":
            self.advance()
            return self._binary(">>")
        if kind == "string":
            self.advance()
            return self._interpolate(token)
        if kind == "charlist":
            self.advance()
            return Charlist(token.value)
        if kind == "atom":
            self.advance()
            return _atom_value(token.value)
        if kind in ("int", "float"):
            self.advance()
            return token.value
        if kind == "-" and self.peek(1).kind in ("int", "float"):
            self.advance()
            return -self.advance().value
        if kind == "ident":
            return self._elixir_ident()
        if kind == "alias":
            return self._elixir_alias()
        if kind == "attr":
            self.advance()
            if token.value in self.attributes:
                return self.attributes[token.value]
            raise self._error(f"Unknown module attribute @{token.value}", token)
        if kind == "sigil":
            self.advance()
            return _sigil_value(token)
        raise self._error(f"Unexpected token {kind!r}", token)

    def _elixir_ident(self) -> Any:
        token = self.advance()
        name = token.value
        if name in ("true", "false", "nil") and not self.at("("):
            return {"true": True, "false": False, "nil": None}[name]
        call = f"{name}()"
        if self.at("(") and self.peek(1).kind == ")":
            self.advance()
            self.advance()
        if call in self.bindings:
            return self.bindings[call]
        raise self._error(f"Not a literal: {name}", token)

    def _elixir_alias(self) -> Any:
        token = self.advance()
        if self.at(".") and self.peek(1).kind == "ident":
            self.advance()
            function = self.advance().value
            if self.at("(") and self.peek(1).kind == ")":
                self.advance()
                self.advance()
            call = f"{token.value}.{function}()"
            if call in self.bindings:
                return self.bindings[call]
            raise self._error(f"Not a literal: {call}", token)
        return Atom("Elixir." + token.value)

    def _elixir_sequence(self, closer: str, allow_keyword_tail: bool) -> list:
        items: list = []
        keywords: list | None = None
        while not self.at(closer):
            if self.at("kwkey"):
                key = Atom(self.advance().value)
                value = self.parse_value()
                if allow_keyword_tail:
                    if keywords is None:
                        keywords = []
                        items.append(keywords)
                    keywords.append((key, value))
                else:
                    items.append((key, value))
                    keywords = items
            elif keywords is not None:
                raise self._error("Keyword pairs must come last")
            else:
                items.append(self.parse_value())
            if not self.accept(","):
                break
        self.expect(closer)
        return items

    def _elixir_map(self) -> dict:
        result: dict = {}
        while not self.at("}"):
            if self.at("kwkey"):
                key: Any = Atom(self.advance().value)
            else:
                key = self.parse_value()
                self.expect("=>")
            result[_hashable(key, self)] = self.parse_value()
            if not self.accept(","):
                break
        self.expect("}")
        return result

    def _interpolate(self, token: Token) -> str:
        pieces: list[str] = []
        for part in token.value:
            if isinstance(part, str):
                pieces.append(part)
                continue
            code = part.code.strip()
            key = code if code.endswith(")") else f"{code}()"
            if key in self.bindings:
                pieces.append(str(self.bindings[key]))
            elif code.startswith("@") and code[1:] in self.attributes:
                pieces.append(str(self.attributes[code[1:]]))
            else:
                raise self._error(f"Cannot interpolate #{{{code}}}", token)
        return "".join(pieces)

    # -- Erlang -----------------------------------------------------------

    def _erlang_value(self) -> Any:
        token = self.peek()
        kind = token.kind
        if kind == "{":
            self.advance()
            return tuple(self._erlang_sequence("}"))
        if kind == "[":
            self.advance()
            return self._erlang_sequence("]")
        if kind == "#{":
            self.advance()
            result: dict = {}
            while not self.at("}"):
                key = self.parse_value()
                self.expect("=>")
                result[_hashable(key, self)] = self.parse_value()
                if not self.accept(","):
                    break
            self.expect("}")
            return result
        if kind == "<<":
            self.advance()
            return self._binary(">>")
        if kind == "charlist":
            pieces = []
            while self.at("charlist"):
                pieces.append(self.advance().value)
            return Charlist("".join(pieces))
        if kind == "atom":
            self.advance()
            return _atom_value(token.value)
        if kind in ("int", "float"):
            self.advance()
            return token.value
        if kind == "-" and self.peek(1).kind in ("int", "float"):
            self.advance()
            return -self.advance().value
        raise self._error(f"Unexpected token {kind!r}", token)

    def _erlang_sequence(self, closer: str) -> list:
        items: list = []
        while not self.at(closer):
            items.append(self.parse_value())
            if self.at("|"):
                raise self._error("Improper lists are not supported")
            if not self.accept(","):
                break
        self.expect(closer)
        return items

    def _binary(self, closer: str) -> Any:
        data = bytearray()
        while not self.at(closer):
            token = self.advance()
            if token.kind in ("charlist", "string"):
                text = token.value if token.kind == "charlist" else self._interpolate(token)
                segment: bytes | None = None
                if self.at("op", "/"):
                    self.advance()
                    modifier = self.advance()
                    if modifier.value in ("utf8", "utf-8"):
                        segment = text.encode("utf-8")
                if segment is None:
                    if token.kind == "string":
                        segment = text.encode("utf-8")
                    else:
                        try:
                            segment = text.encode("latin-1")
                        except UnicodeEncodeError:
                            raise self._error("Binary segment out of byte range", token)
                data.extend(segment)
            elif token.kind == "int" and 0 <= token.value < 256:
                data.append(token.value)
            else:
                raise self._error("Unsupported binary segment", token)
            if not self.accept(","):
                break
        self.expect(closer)
        raw = bytes(data)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw


def _atom_value(name: str) -> Any:
    if name == "true":
        return True
    if name == "false":
        return False
    if name == "nil":
        return None
    return Atom(name)


def _sigil_value(token: Token) -> Any:
    letter, body, modifiers = token.value
    if letter in ("w", "W"):
        words = body.split()
        if "a" in modifiers:
            return [Atom(word) for word in words]
        if "c" in modifiers:
            return [Charlist(word) for word in words]
        return words
    if letter in ("s", "S"):
        return body
    if letter in ("c", "C"):
        return Charlist(body)
    raise TermParseError(f"Unsupported sigil ~{letter}", token.start)


def _hashable(key: Any, reader: TokenReader) -> Any:
    try:
        hash(key)
    except TypeError:
        raise reader._error("Map keys must be hashable terms")
    return key


def parse_term(
    text: str,
    dialect: str = ELIXIR,
    attributes: dict[str, Any] | None = None,
    bindings: dict[str, Any] | None = None,
) -> Any:
    """Parse exactly one literal term from ``text``.

    Args:
        text: Source text of the term
        dialect: ``"elixir"`` or ``"erlang"``
        attributes: Values for ``@name`` references (Elixir only)
        bindings: Values for zero-arity calls such as ``"config_env()"``

    Returns:
        The term in the representation described in ``mixgraph.terms``

    Raises:
        TermParseError: If the text is not a single literal term
    """
    reader = TokenReader(text, tokenize(text, dialect), dialect, attributes, bindings)
    if dialect == ELIXIR and reader.at("kwkey"):
        value = reader.parse_keywords()
    else:
        value = reader.parse_value()
    if dialect == ERLANG:
        reader.accept(".")
    if not reader.at("eof"):
        raise reader._error("Unexpected trailing input")
    return value


def consult(text: str) -> list:
    """Read every dot-terminated term from Erlang source text."""
    reader = TokenReader(text, tokenize(text, ERLANG), ERLANG)
    terms = []
    while not reader.at("eof"):
        terms.append(reader.parse_value())
        reader.expect(".")
    return terms


# -- Erlang text output ---------------------------------------------------

def _quote(text: str, quote: str) -> str:
    out = []
    for char in text:
        if char in (quote, "\\"):
            out.append("\\" + char)
        elif char == "\n":
            out.append("\\n")
        elif char == "\t":
            out.append("\\t")
        elif char == "\r":
            out.append("\\r")
        elif ord(char) < 32 or ord(char) == 127:
            out.append(f"\\x{{{ord(char):X}}}")
        else:
            out.append(char)
    return quote + "".join(out) + quote


def format_atom(name: str) -> str:
    if _ERL_ATOM.fullmatch(name) and name not in _ERLANG_RESERVED:
        return name
    return _quote(name, "'")


def _format_float(value: float) -> str:
    if value != value or value in (float("inf"), float("-inf")):
        raise ValueError(f"Cannot represent {value!r} as an Erlang float")
    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        if "." not in mantissa:
            mantissa += ".0"
        return f"{mantissa}e{int(exponent)}"
    return text


def _format_flat(term: Any) -> str:
    if term is None:
        return "nil"
    if term is True:
        return "true"
    if term is False:
        return "false"
    if isinstance(term, RawExpr):
        raise TypeError(f"Cannot format non-literal expression {term!r}")
    if isinstance(term, Atom):
        return format_atom(term)
    if isinstance(term, Charlist):
        return _quote(term, '"')
    if isinstance(term, str):
        if term.isascii():
            return "<<" + _quote(term, '"') + ">>"
        return "<<" + _quote(term, '"') + "/utf8>>"
    if isinstance(term, bytes):
        return "<<" + ",".join(str(byte) for byte in term) + ">>"
    if isinstance(term, int):
        return str(term)
    if isinstance(term, float):
        return _format_float(term)
    if isinstance(term, tuple):
        return "{" + ",".join(_format_flat(item) for item in term) + "}"
    if isinstance(term, list):
        return "[" + ",".join(_format_flat(item) for item in term) + "]"
    if isinstance(term, dict):
        entries = (f"{_format_flat(k)} => {_format_flat(v)}" for k, v in term.items())
        return "#{" + ",".join(entries) + "}"
    raise TypeError(f"Cannot format {type(term).__name__} as an Erlang term")


def format_term(term: Any, indent: int = 0, width: int = 80) -> str:
    """Render a term as Erlang source text, breaking long containers over lines."""
    flat = _format_flat(term)
    if indent + len(flat) <= width or not isinstance(term, (tuple, list, dict)) or not term:
        return flat
    if isinstance(term, dict):
        pad = " " * (indent + 2)
        entries = [
            f"{_format_flat(key)} => {format_term(value, indent + 2, width)}"
            for key, value in term.items()
        ]
        return "#{" + (",\n" + pad).join(entries) + "}"
    opener, closer = ("{", "}") if isinstance(term, tuple) else ("[", "]")
    pad = " " * (indent + 1)
    items = [format_term(item, indent + 1, width) for item in term]
    return opener + (",\n" + pad).join(items) + closer
