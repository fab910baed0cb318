"""Free-text values written into generated XML."""

from __future__ import annotations

import re

# Complement of the XML 1.0 ``Char`` production.
_ILLEGAL_XML_CHARS = re.compile(
    "[^\t\n\r\x20-\U0000D7FF\U0000E000-\U0000FFFD\U00010000-\U0010FFFF]"
)


def xml_text(value) -> str:
    """
    ``str(value)`` with every character XML 1.0 cannot carry replaced by a space.

    Control characters pasted into descriptions, notes or party names
    (vertical tab, form feed, NUL) would otherwise make lxml refuse the
    whole document.
    """
    return _ILLEGAL_XML_CHARS.sub(" ", str(value))
