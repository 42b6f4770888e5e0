"""Erlang External Term Format encoding and decoding."""

import struct
import zlib
from typing import Any

from .errors import TermDecodeError
from .terms import Atom, Charlist, RawExpr

VERSION = 131

NEW_FLOAT_EXT = 70
COMPRESSED = 80
SMALL_INTEGER_EXT = 97
INTEGER_EXT = 98
FLOAT_EXT = 99
ATOM_EXT = 100
SMALL_TUPLE_EXT = 104
LARGE_TUPLE_EXT = 105
NIL_EXT = 106
STRING_EXT = 107
LIST_EXT = 108
BINARY_EXT = 109
SMALL_BIG_EXT = 110
LARGE_BIG_EXT = 111
SMALL_ATOM_EXT = 115
MAP_EXT = 116
ATOM_UTF8_EXT = 118
SMALL_ATOM_UTF8_EXT = 119


def term_to_binary(term: Any) -> bytes:
    """Encode a term as External Term Format bytes."""
    out = bytearray([VERSION])
    _encode(term, out)
    return bytes(out)


def binary_to_term(data: bytes) -> Any:
    """Decode External Term Format bytes into a term.

    Raises:
        TermDecodeError: If the data is truncated, has trailing bytes or uses
            an unsupported tag (pids, references, funs, improper lists)
    """
    if not data or data[0] != VERSION:
        raise TermDecodeError("Missing external term format version byte")
    decoder = _Decoder(data, 1)
    if decoder.peek() == COMPRESSED:
        decoder.pos += 1
        size = decoder.unpack(">I")
        try:
            payload = zlib.decompress(data[decoder.pos:])
        except zlib.error as exc:
            raise TermDecodeError(f"Corrupt compressed term: {exc}") from exc
        if len(payload) != size:
            raise TermDecodeError("Compressed term size mismatch")
        decoder = _Decoder(payload, 0)
    term = decoder.decode()
    if decoder.pos != len(decoder.data):
        raise TermDecodeError("Trailing bytes after term")
    return term


def _encode_atom(name: str, out: bytearray) -> None:
    raw = name.encode("utf-8")
    if len(raw) < 256:
        out.append(SMALL_ATOM_UTF8_EXT)
        out.append(len(raw))
    elif len(raw) < 65536:
        out.append(ATOM_UTF8_EXT)
        out += struct.pack(">H", len(raw))
    else:
        raise ValueError(f"Atom too long: {len(raw)} bytes")
    out += raw


def _encode(term: Any, out: bytearray) -> None:
    if term is None:
        _encode_atom("nil", out)
    elif term is True:
        _encode_atom("true", out)
    elif term is False:
        _encode_atom("false", out)
    elif isinstance(term, RawExpr):
        raise TypeError(f"Cannot encode non-literal expression {term!r}")
    elif isinstance(term, Atom):
        _encode_atom(term, out)
    elif isinstance(term, Charlist):
        codes = [ord(char) for char in term]
        if not codes:
            out.append(NIL_EXT)
        elif len(codes) < 65536 and max(codes) < 256:
            out.append(STRING_EXT)
            out += struct.pack(">H", len(codes))
            out += bytes(codes)
        else:
            out.append(LIST_EXT)
            out += struct.pack(">I", len(codes))
            for code in codes:
                _encode(code, out)
            out.append(NIL_EXT)
    elif isinstance(term, str):
        raw = term.encode("utf-8")
        out.append(BINARY_EXT)
        out += struct.pack(">I", len(raw))
        out += raw
    elif isinstance(term, (bytes, bytearray)):
        out.append(BINARY_EXT)
        out += struct.pack(">I", len(term))
        out += term
    elif isinstance(term, int):
        _encode_int(term, out)
    elif isinstance(term, float):
        out.append(NEW_FLOAT_EXT)
        out += struct.pack(">d", term)
    elif isinstance(term, tuple):
        if len(term) < 256:
            out.append(SMALL_TUPLE_EXT)
            out.append(len(term))
        else:
            out.append(LARGE_TUPLE_EXT)
            out += struct.pack(">I", len(term))
        for item in term:
            _encode(item, out)
    elif isinstance(term, list):
        if term:
            out.append(LIST_EXT)
            out += struct.pack(">I", len(term))
            for item in term:
                _encode(item, out)
        out.append(NIL_EXT)
    elif isinstance(term, dict):
        out.append(MAP_EXT)
        out += struct.pack(">I", len(term))
        for key, value in term.items():
            _encode(key, out)
            _encode(value, out)
    else:
        raise TypeError(f"Cannot encode {type(term).__name__} as an Erlang term")


def _encode_int(value: int, out: bytearray) -> None:
    if 0 <= value < 256:
        out.append(SMALL_INTEGER_EXT)
        out.append(value)
    elif -(2 ** 31) <= value < 2 ** 31:
        out.append(INTEGER_EXT)
        out += struct.pack(">i", value)
    else:
        sign = 1 if value < 0 else 0
        magnitude = abs(value)
        digits = magnitude.to_bytes((magnitude.bit_length() + 7) // 8, "little")
        if len(digits) < 256:
            out.append(SMALL_BIG_EXT)
            out.append(len(digits))
        else:
            out.append(LARGE_BIG_EXT)
            out += struct.pack(">I", len(digits))
        out.append(sign)
        out += digits


class _Decoder:
    def __init__(self, data: bytes, pos: int):
        self.data = data
        self.pos = pos

    def peek(self) -> int:
        if self.pos >= len(self.data):
            raise TermDecodeError("Unexpected end of term data")
        return self.data[self.pos]

    def take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self.data):
            raise TermDecodeError("Unexpected end of term data")
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def unpack(self, fmt: str) -> Any:
        size = struct.calcsize(fmt)
        return struct.unpack(fmt, self.take(size))[0]

    def decode(self) -> Any:
        tag = self.unpack(">B")
        if tag == SMALL_INTEGER_EXT:
            return self.unpack(">B")
        if tag == INTEGER_EXT:
            return self.unpack(">i")
        if tag == NEW_FLOAT_EXT:
            return self.unpack(">d")
        if tag == FLOAT_EXT:
            text = self.take(31).split(b"\x00", 1)[0]
            try:
                return float(text.decode("ascii"))
            except ValueError as exc:
                raise TermDecodeError(f"Invalid float text {text!r}") from exc
        if tag in (ATOM_UTF8_EXT, ATOM_EXT):
            return self._atom(self.take(self.unpack(">H")), tag == ATOM_EXT)
        if tag in (SMALL_ATOM_UTF8_EXT, SMALL_ATOM_EXT):
            return self._atom(self.take(self.unpack(">B")), tag == SMALL_ATOM_EXT)
        if tag == SMALL_TUPLE_EXT:
            return tuple(self.decode() for _ in range(self.unpack(">B")))
        if tag == LARGE_TUPLE_EXT:
            return tuple(self.decode() for _ in range(self.unpack(">I")))
        if tag == NIL_EXT:
            return []
        if tag == STRING_EXT:
            return Charlist(self.take(self.unpack(">H")).decode("latin-1"))
        if tag == LIST_EXT:
            count = self.unpack(">I")
            items = [self.decode() for _ in range(count)]
            if self.unpack(">B") != NIL_EXT:
                raise TermDecodeError("Improper lists are not supported")
            return items
        if tag == BINARY_EXT:
            raw = self.take(self.unpack(">I"))
            try:
                return raw.decode("utf-8")
            except UnicodeDecodeError:
                return raw
        if tag in (SMALL_BIG_EXT, LARGE_BIG_EXT):
            size = self.unpack(">B") if tag == SMALL_BIG_EXT else self.unpack(">I")
            sign = self.unpack(">B")
            value = int.from_bytes(self.take(size), "little")
            return -value if sign else value
        if tag == MAP_EXT:
            result = {}
            for _ in range(self.unpack(">I")):
                key = self.decode()
                value = self.decode()
                try:
                    result[key] = value
                except TypeError as exc:
                    raise TermDecodeError("Map keys must be hashable terms") from exc
            return result
        raise TermDecodeError(f"Unsupported external term tag {tag}")

    @staticmethod
    def _atom(raw: bytes, latin1: bool) -> Any:
        try:
            name = raw.decode("latin-1" if latin1 else "utf-8")
        except UnicodeDecodeError as exc:
            raise TermDecodeError("Atom is not valid UTF-8") from exc
        if name == "true":
            return True
        if name == "false":
            return False
        if name == "nil":
            return None
        return Atom(name)
