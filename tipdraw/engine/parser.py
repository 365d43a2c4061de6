"""
tipdraw.engine.parser — tip.cc Message Grammars
================================================

tip.cc announces transfers in a handful of layouts depending on how the tip
was issued.  Each layout is a :class:`TipGrammar`; :func:`parse_donation`
tries them in order (most structured first) and the first match wins.
Nothing is merged across grammars.

No match is ``None``: tip.cc posts plenty of unrelated messages (balances,
airdrops, errors), so "not a tip" is the common case, not an error.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT_GRAMMARS", "ParsedTip", "TipGrammar", "parse_amount", "parse_donation"]

# Custom emoji (<:LTC:123>, <a:spin:456>) used as decoration around amounts
_EMOJI = r"(?:<a?:\w+:\d+>\s*)"
_MENTION = r"<@!?(?P<{name}>\d+)>"
_AMOUNT = r"(?P<amount>\d[\d,]*(?:\.\d+)?|\.\d+)"
_APPROX = r"\(\s*≈\s*\$[\d.,]+\s*\)"


# ---------------------------------------------------------------------------
# Parse result
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ParsedTip:
    """One recognised transfer: *sender* tipped *amount* *currency* to *recipient*."""

    sender: str
    recipient: str
    amount: Decimal
    currency: str
    grammar: str

    @property
    def sender_is_id(self) -> bool:
        """True when the sender was captured from a mention (a user id)."""
        return self.sender.isdigit()


def parse_amount(raw: str) -> Decimal | None:
    """Return *raw* as a positive finite :class:`Decimal`, else ``None``."""
    try:
        value = Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None
    if not value.is_finite() or value <= 0:
        return None
    return value


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TipGrammar:
    """A named regex with ``sender``/``recipient``/``amount``/``currency`` groups."""

    name: str
    pattern: re.Pattern[str]

    def try_parse(self, text: str) -> ParsedTip | None:
        match = self.pattern.search(text)
        if match is None:
            return None
        amount = parse_amount(match.group("amount"))
        if amount is None:
            logger.debug("Grammar %s matched but amount %r is invalid", self.name, match.group("amount"))
            return None
        return ParsedTip(
            sender=match.group("sender"),
            recipient=match.group("recipient"),
            amount=amount,
            currency=match.group("currency").upper(),
            grammar=self.name,
        )


def _grammar(name: str, pattern: str) -> TipGrammar:
    return TipGrammar(name=name, pattern=re.compile(pattern, re.IGNORECASE))


DEFAULT_GRAMMARS: tuple[TipGrammar, ...] = (
    # <:LTC:123> <@!111> sent <@222> **0.5 LTC** (≈ $10.00).
    _grammar(
        "custom_emoji",
        _EMOJI + r"+" + _MENTION.format(name="sender") + r"\s*sent\s*"
        + _MENTION.format(name="recipient") + r"\s*\*\*\s*" + _EMOJI + r"*"
        + _AMOUNT + r"\s*(?P<currency>[A-Z]+)\s*\*\*\s*" + _APPROX + r"\.?",
    ),
    # 💰 @alice sent @bob 0.5 LTC (≈ $10.00).
    _grammar(
        "money_bag_username",
        r"💰\s*@(?P<sender>\w+)\s*sent\s*@(?P<recipient>\w+)\s*" + _EMOJI + r"*"
        + _AMOUNT + r"\s*(?P<currency>\w+)\s*" + _APPROX + r"\.?",
    ),
    # <@111> sent <@222> 0.5 LTC (≈ $10.00).
    _grammar(
        "mention_ids",
        _MENTION.format(name="sender") + r"\s*sent\s*" + _MENTION.format(name="recipient")
        + r"\s*\**\s*" + _EMOJI + r"*" + _AMOUNT + r"\s*(?P<currency>\w+)\s*\**\s*"
        + _APPROX + r"\.?",
    ),
    # alice sent 0.5 LTC to bob
    _grammar(
        "plain_to",
        r"(?P<sender>\w+)\s+sent\s+" + _EMOJI + r"*" + _AMOUNT
        + r"\s*(?P<currency>\w+)\s+to\s+@?(?P<recipient>\w+)",
    ),
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def parse_donation(
    text: str, grammars: Sequence[TipGrammar] = DEFAULT_GRAMMARS
) -> ParsedTip | None:
    """Run *grammars* in order over *text*; return the first match or ``None``."""
    for grammar in grammars:
        tip = grammar.try_parse(text)
        if tip is not None:
            logger.debug(
                "Matched grammar %s: %s -> %s, %s %s",
                grammar.name, tip.sender, tip.recipient, tip.amount, tip.currency,
            )
            return tip
    return None
