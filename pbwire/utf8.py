"""Strict UTF-8 validation of NUL-terminated text."""

from __future__ import annotations


def validate_utf8(data):
    """Return True if ``data`` up to its first NUL byte is valid UTF-8.

    Overlong forms, surrogates, U+FFFE, U+FFFF and code points above
    U+10FFFF are rejected.
    """
    if isinstance(data, str):
        data = data.encode("utf-8", "surrogatepass")
    s = bytes(data).split(b"\0", 1)[0]

    def at(i: int) -> int:
        return s[i] if i < len(s) else 0

    pos = 0
    while pos < len(s):
        b0, b1 = s[pos], at(pos + 1)
        if b0 < 0x80:
            pos += 1
        elif b0 & 0xE0 == 0xC0:
            if b1 & 0xC0 != 0x80 or b0 & 0xFE == 0xC0:
                return False
            pos += 2
        elif b0 & 0xF0 == 0xE0:
            b2 = at(pos + 2)
            if (
                b1 & 0xC0 != 0x80
                or b2 & 0xC0 != 0x80
                or (b0 == 0xE0 and b1 & 0xE0 == 0x80)
                or (b0 == 0xED and b1 & 0xE0 == 0xA0)
                or (b0 == 0xEF and b1 == 0xBF and b2 & 0xFE == 0xBE)
            ):
                return False
            pos += 3
        elif b0 & 0xF8 == 0xF0:
            b2, b3 = at(pos + 2), at(pos + 3)
            if (
                b1 & 0xC0 != 0x80
                or b2 & 0xC0 != 0x80
                or b3 & 0xC0 != 0x80
                or (b0 == 0xF0 and b1 & 0xF0 == 0x80)
                or (b0 == 0xF4 and b1 > 0x8F)
                or b0 > 0xF4
            ):
                return False
            pos += 4
        else:
            return False
    return True