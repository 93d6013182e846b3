"""Unquoting of Go string literals: ``"..."``, ``'x'`` and back-quoted raw strings."""

from __future__ import annotations

from string import hexdigits, octdigits

_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
}
_HEX_WIDTHS = {"x": 2, "u": 4, "U": 8}


def _syntax_error(text: str) -> ValueError:
    return ValueError(f"invalid quoted literal {text!r}")


def unquote(text: str) -> bytes:
    """Return the bytes a quoted literal denotes.

    ``\\x`` and octal escapes produce single raw bytes; everything else is
    UTF-8 encoded. A single-quoted literal must hold exactly one character.
    Raises ``ValueError`` when ``text`` is not a valid literal.
    """
    if len(text) < 2 or text[0] != text[-1]:
        raise _syntax_error(text)
    quote, inner = text[0], text[1:-1]
    if quote == "`":
        if "`" in inner:
            raise _syntax_error(text)
        return inner.replace("\r", "").encode()
    if quote not in "\"'" or "\n" in inner:
        raise _syntax_error(text)

    out = bytearray()
    chars = 0
    pos = 0
    while pos < len(inner):
        char = inner[pos]
        if char == quote:
            raise _syntax_error(text)
        chars += 1
        if char != "\\":
            out += char.encode()
            pos += 1
            continue
        if pos + 1 >= len(inner):
            raise _syntax_error(text)
        escape = inner[pos + 1]
        pos += 2
        if escape in _SIMPLE_ESCAPES:
            out += _SIMPLE_ESCAPES[escape].encode()
        elif escape == quote:
            out += escape.encode()
        elif escape in _HEX_WIDTHS:
            width = _HEX_WIDTHS[escape]
            digits = inner[pos : pos + width]
            if len(digits) != width or any(d not in hexdigits for d in digits):
                raise _syntax_error(text)
            pos += width
            value = int(digits, 16)
            if escape == "x":
                out.append(value)
            elif value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
                raise _syntax_error(text)
            else:
                out += chr(value).encode()
        elif escape in octdigits:
            digits = inner[pos - 1 : pos + 2]
            if len(digits) != 3 or any(d not in octdigits for d in digits):
                raise _syntax_error(text)
            pos += 2
            value = int(digits, 8)
            if value > 0xFF:
                raise _syntax_error(text)
            out.append(value)
        else:
            raise _syntax_error(text)
    if quote == "'" and chars != 1:
        raise _syntax_error(text)
    return bytes(out)
