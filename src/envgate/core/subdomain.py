"""Subdomain admissibility.

Subdomains are DNS labels that may also carry shell glob wildcards, since
they double as match patterns elsewhere. A candidate must satisfy both
grammars.
"""

from __future__ import annotations

import re

from envgate.exceptions import InvalidSubdomain

DNS_NAME_WITH_PATTERN = re.compile(
    r"[a-z*?\[\]](?:[a-z0-9\-*?\[\]]{0,61}[a-z0-9*?\[\]])?"
)


def _check_glob(pattern: str) -> None:
    """Glob syntax check for ``pattern``.

    ``fnmatch`` treats a malformed bracket class as literal text instead of
    failing, so classes are checked here: each must be terminated, non-empty,
    and no element or range bound may be ``-`` or ``]``.
    """
    i = 0
    n = len(pattern)
    while i < n:
        if pattern[i] != "[":
            i += 1
            continue
        i += 1
        elements = 0
        while True:
            if i >= n:
                raise InvalidSubdomain("syntax error in pattern")
            if pattern[i] == "]" and elements > 0:
                i += 1
                break
            if pattern[i] in "-]":
                raise InvalidSubdomain("syntax error in pattern")
            i += 1
            if i < n and pattern[i] == "-":
                i += 1
                if i >= n or pattern[i] in "-]":
                    raise InvalidSubdomain("syntax error in pattern")
                i += 1
            elements += 1


def validate_subdomain(candidate: str) -> str:
    """Return the lowercased subdomain, or raise InvalidSubdomain."""
    subdomain = (candidate or "").lower()
    if not DNS_NAME_WITH_PATTERN.fullmatch(subdomain):
        raise InvalidSubdomain("subdomain includes invalid characters")
    _check_glob(subdomain)
    return subdomain
