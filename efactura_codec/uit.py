"""
UIT (e-Transport correlation code) checksum.

A UIT has 16 characters: 14 characters from ``UIT_CHARSET`` followed by two
decimal check digits, which are the last two digits of the ASCII sum of the
first 14 characters.
"""

from __future__ import annotations

import re

UIT_LENGTH = 16
UIT_CHARSET = "0123456789ACDEFHJKLMNPQRTUVWXY"

_PREFIX_RE = re.compile(rf"^[{UIT_CHARSET}]{{14}}$")
_CHECK_RE = re.compile(r"^\d{2}$")


def compute_uit_check_digits(prefix: str) -> str:
    """Two-digit check value for a 14-character prefix."""
    return f"{sum(ord(ch) for ch in prefix) % 100:02d}"


def validate_uit(code: str) -> str | None:
    """Return None when ``code`` is a valid UIT, otherwise the reason."""
    if len(code) != UIT_LENGTH:
        return (
            f'UIT-ul "{code}" trebuie sa aiba exact {UIT_LENGTH} caractere '
            f"(lungime curenta: {len(code)})."
        )

    prefix, check = code[:14], code[14:]
    if not _PREFIX_RE.match(prefix):
        return (
            f'UIT-ul "{code}" contine caractere invalide in primele 14 pozitii. '
            "Sunt acceptate: 0-9, A, C, D, E, F, H, J, K, L, M, N, P, Q, R, T, U, V, W, X, Y."
        )
    if not _CHECK_RE.match(check):
        return (
            f'UIT-ul "{code}": ultimele 2 caractere TREBUIE sa fie cifre zecimale '
            f'(valoare: "{check}").'
        )

    expected = compute_uit_check_digits(prefix)
    if check != expected:
        ascii_sum = sum(ord(ch) for ch in prefix)
        return (
            f'UIT-ul "{code}" are cifra de control incorecta. '
            f"Suma ASCII a primelor 14 caractere este {ascii_sum}; "
            f'ultimele 2 cifre asteptate: "{expected}", primite: "{check}".'
        )
    return None


def is_valid_uit(code: str) -> bool:
    return validate_uit(code) is None
