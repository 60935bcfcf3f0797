# screens/programs/codes.py
"""
Program code generation.

Suggested code: PREFIX-YYMMDD, at most 10 characters. Admins may replace
it with their own code when the program is created.
  PREFIX  first 3 letters/digits of the program name, upper-cased
  YYMMDD  creation date taken from `now`

    >>> generate_program_code("Bachelor Of Science", datetime(2024, 6, 6))
    'BAC-240606'
"""
from __future__ import annotations

import re
from datetime import datetime

MAX_CODE_LENGTH = 10
DATE_FORMAT = "%y%m%d"

_NON_ALNUM = re.compile(r"[^0-9A-Za-z]+")
_CODE = re.compile(rf"^[0-9A-Z][0-9A-Z-]{{0,{MAX_CODE_LENGTH - 1}}}$")


def generate_program_code(name: str, now: datetime) -> str:
    """Deterministic code for a program name at a given moment."""
    date_part = now.strftime(DATE_FORMAT)
    prefix_len = MAX_CODE_LENGTH - 1 - len(date_part)
    prefix = _NON_ALNUM.sub("", name or "")[:prefix_len].upper()
    if not prefix:
        raise ValueError("Program name must contain at least one letter or digit")
    return f"{prefix}-{date_part}"


def is_valid_code(code: str) -> bool:
    """Admin-entered codes: upper-case letters, digits and dashes."""
    return bool(_CODE.match(code or ""))
