"""
tipdraw.engine.policy — Recipient & Currency Eligibility
=========================================================

A tip only counts when it was sent to one of the guild's allowed recipients
and in an accepted currency.

Recipient matching is deliberately permissive: both sides are stripped of
mention markup and compared case-insensitively, and a match is exact
equality **or** substring containment in either direction (``bob`` allows
``bobby`` and vice versa).  tip.cc renders recipients as ids in some layouts
and as truncated usernames in others, so admins register whichever form they
see.  This one rule is used everywhere a recipient is compared.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from typing import Any

from tipdraw.engine.state import GuildConfig

__all__ = [
    "clean_identifier",
    "is_accepted_currency",
    "is_allowed_recipient",
    "is_eligible",
    "recipient_matches",
    "valid_recipients",
]

_DECORATION = re.compile(r"[@<>!\s]")


def clean_identifier(value: str) -> str:
    """Strip mention markup (``<@!…>``, ``@``) and whitespace; lower-case."""
    return _DECORATION.sub("", value).lower()


def recipient_matches(allowed: str, recipient: str) -> bool:
    """Exact or bidirectional-substring match after cleaning both sides."""
    a = clean_identifier(allowed)
    r = clean_identifier(recipient)
    if not a or not r:
        return False
    return a == r or a in r or r in a


def valid_recipients(raw: Iterable[Any]) -> Iterator[str]:
    """Yield only well-formed (non-empty string) allow-list entries."""
    for entry in raw:
        if isinstance(entry, str) and entry.strip():
            yield entry


def is_allowed_recipient(recipient: str, config: GuildConfig) -> bool:
    return any(
        recipient_matches(allowed, recipient)
        for allowed in valid_recipients(config.allowed_recipients)
    )


def is_accepted_currency(currency: str, config: GuildConfig) -> bool:
    symbol = currency.upper()
    return any(symbol == c.upper() for c in config.currencies)


def is_eligible(recipient: str, currency: str, config: GuildConfig) -> bool:
    """True when *recipient* is allowed and *currency* is accepted."""
    return is_allowed_recipient(recipient, config) and is_accepted_currency(currency, config)
