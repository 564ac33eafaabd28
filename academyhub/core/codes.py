"""Sequential human-readable codes (``S01``, ``C12``, ``B003``...)."""

from __future__ import annotations

from collections.abc import Iterable

from academyhub.models.enums import UserRole

CODE_PREFIXES: dict[UserRole, str] = {
    UserRole.SUPER_ADMIN: "SA",
    UserRole.ADMIN: "A",
    UserRole.COACH: "C",
    UserRole.STUDENT: "S",
    UserRole.SUBSCRIBER: "U",
}

BATCH_CODE_PREFIX = "B"


def format_code(prefix: str, number: int, width: int = 2) -> str:
    """Return ``prefix`` followed by ``number`` zero-padded to ``width`` digits.

    Numbers wider than ``width`` are kept whole, so ``format_code("S", 123)``
    is ``"S123"``.
    """
    if number < 1:
        raise ValueError("Sequential codes start at 1")
    return f"{prefix}{number:0{width}d}"


def code_prefix_for(role: UserRole) -> str:
    """Prefix used for users of ``role``."""
    return CODE_PREFIXES[role]


def code_number(prefix: str, code: str | None) -> int | None:
    """Sequence number of ``code`` under ``prefix``, or None if it is not one.

    ``code_number("S", "SA01")`` is None: the remainder must be all digits.
    """
    if not code or not code.startswith(prefix):
        return None
    digits = code[len(prefix):]
    return int(digits) if digits.isdigit() else None


def next_code(prefix: str, existing: Iterable[str | None], width: int = 2) -> str:
    """Code following the highest one already issued under ``prefix``."""
    numbers = [n for n in (code_number(prefix, code) for code in existing) if n is not None]
    return format_code(prefix, max(numbers, default=0) + 1, width)
