"""
tipdraw.engine.state — Guild State Model
=========================================

The per-guild document decoded into dataclasses.  Every engine stage takes
these objects by reference and mutates them in place; the service layer
works on a deep copy and hands the result to the store only when the whole
pipeline succeeded.

Documents are JSON: ids are strings and timestamps are ISO-8601 (epoch
milliseconds are accepted when reading older documents).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from tipdraw.constants import DEFAULT_ACCEPTED_CRYPTOCURRENCIES, DEFAULT_FEATURE_TOGGLES

__all__ = [
    "Donation",
    "DonorRole",
    "Draw",
    "GuildConfig",
    "GuildState",
    "Streak",
    "User",
]


def _dt_to_json(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _dt_from_json(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _optional_str(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None


def _optional_float(value: Any) -> float | None:
    return float(value) if value not in (None, "") else None


def _optional_int(value: Any) -> int | None:
    return int(value) if value not in (None, "") else None


def _entry_ledger(raw: Any) -> dict[str, int]:
    return {str(k): max(int(v), 0) for k, v in (raw or {}).items()}


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class Donation:
    """One recognised tip, already valued in USD."""

    amount: float
    currency: str
    original_amount: float
    timestamp: datetime
    recipient: str

    def to_dict(self) -> dict:
        return {
            "amount": self.amount,
            "currency": self.currency,
            "originalAmount": self.original_amount,
            "timestamp": _dt_to_json(self.timestamp),
            "recipient": self.recipient,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> Donation:
        return cls(
            amount=float(raw.get("amount", 0)),
            currency=str(raw.get("currency", "")),
            original_amount=float(raw.get("originalAmount", 0)),
            timestamp=_dt_from_json(raw.get("timestamp")) or datetime.now(UTC),
            recipient=str(raw.get("recipient", "")),
        )


@dataclass(slots=True)
class Streak:
    current: int = 0
    longest: int = 0
    last_donation: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "longest": self.longest,
            "lastDonation": _dt_to_json(self.last_donation),
        }

    @classmethod
    def from_dict(cls, raw: dict | None) -> Streak:
        raw = raw or {}
        return cls(
            current=int(raw.get("current", 0)),
            longest=int(raw.get("longest", 0)),
            last_donation=_dt_from_json(raw.get("lastDonation")),
        )


@dataclass(slots=True)
class User:
    """A guild member known to the bot (created lazily, never deleted)."""

    id: str
    total_donated: float = 0.0
    donations: list[Donation] = field(default_factory=list)
    entries: dict[str, int] = field(default_factory=dict)
    achievements: list[str] = field(default_factory=list)
    wins: int = 0
    streak: Streak = field(default_factory=Streak)
    selected_draw: str | None = None
    referred_by: str | None = None

    def to_dict(self) -> dict:
        return {
            "totalDonated": self.total_donated,
            "donations": [d.to_dict() for d in self.donations],
            "entries": dict(self.entries),
            "achievements": list(self.achievements),
            "wins": self.wins,
            "streaks": self.streak.to_dict(),
            "selectedDraw": self.selected_draw,
            "referredBy": self.referred_by,
        }

    @classmethod
    def from_dict(cls, user_id: str, raw: dict) -> User:
        achievements: list[str] = []
        for key in raw.get("achievements") or []:
            if isinstance(key, str) and key not in achievements:
                achievements.append(key)
        return cls(
            id=str(user_id),
            total_donated=max(float(raw.get("totalDonated", 0) or 0), 0.0),
            donations=[Donation.from_dict(d) for d in raw.get("donations") or []],
            entries=_entry_ledger(raw.get("entries")),
            achievements=achievements,
            wins=int(raw.get("wins", 0) or 0),
            streak=Streak.from_dict(raw.get("streaks")),
            selected_draw=_optional_str(raw.get("selectedDraw")),
            referred_by=_optional_str(raw.get("referredBy")),
        )


# ---------------------------------------------------------------------------
# Draws
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class Draw:
    """A lottery-style reward pool with its entry ledger."""

    id: str
    name: str
    reward: str
    min_amount: float
    max_amount: float | None = None
    max_entries: int | None = None
    vip_only: bool = False
    manual_entries_only: bool = False
    active: bool = True
    entries: dict[str, int] = field(default_factory=dict)
    winner: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    winner_selected_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "reward": self.reward,
            "minAmount": self.min_amount,
            "maxAmount": self.max_amount,
            "maxEntries": self.max_entries,
            "vipOnly": self.vip_only,
            "manualEntriesOnly": self.manual_entries_only,
            "active": self.active,
            "entries": dict(self.entries),
            "winner": self.winner,
            "createdBy": self.created_by,
            "createdAt": _dt_to_json(self.created_at),
            "winnerSelectedAt": _dt_to_json(self.winner_selected_at),
        }

    @classmethod
    def from_dict(cls, draw_id: str, raw: dict) -> Draw:
        return cls(
            id=str(raw.get("id") or draw_id),
            name=str(raw.get("name", draw_id)),
            reward=str(raw.get("reward", "")),
            min_amount=float(raw.get("minAmount", 0) or 0),
            max_amount=_optional_float(raw.get("maxAmount")),
            max_entries=_optional_int(raw.get("maxEntries")),
            vip_only=bool(raw.get("vipOnly", False)),
            manual_entries_only=bool(raw.get("manualEntriesOnly", False)),
            active=bool(raw.get("active", False)),
            entries=_entry_ledger(raw.get("entries")),
            winner=_optional_str(raw.get("winner")),
            created_by=_optional_str(raw.get("createdBy")),
            created_at=_dt_from_json(raw.get("createdAt")),
            winner_selected_at=_dt_from_json(raw.get("winnerSelectedAt")),
        )


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class DonorRole:
    """A Discord role bound to a cumulative-donation range."""

    role_id: str
    name: str
    min_amount: float
    max_amount: float | None = None

    def contains(self, total: float) -> bool:
        return total >= self.min_amount and (
            self.max_amount is None or total <= self.max_amount
        )

    def to_dict(self) -> dict:
        return {
            "id": self.role_id,
            "name": self.name,
            "minAmount": self.min_amount,
            "maxAmount": self.max_amount,
        }

    @classmethod
    def from_dict(cls, role_id: str, raw: dict) -> DonorRole:
        return cls(
            role_id=str(raw.get("id") or role_id),
            name=str(raw.get("name", "")),
            min_amount=float(raw.get("minAmount", 0) or 0),
            max_amount=_optional_float(raw.get("maxAmount")),
        )


@dataclass(slots=True)
class GuildConfig:
    """Admin-managed settings for one guild.

    ``allowed_recipients`` is kept exactly as stored: older documents can
    hold non-string junk, which the policy layer ignores and
    ``clean_recipients`` removes.
    """

    allowed_recipients: list[Any] = field(default_factory=list)
    accepted_cryptocurrencies: list[str] | None = None
    donor_roles: dict[str, DonorRole] = field(default_factory=dict)
    feature_toggles: dict[str, bool] = field(
        default_factory=lambda: dict(DEFAULT_FEATURE_TOGGLES)
    )
    admin_role_id: str | None = None
    vip_role_id: str | None = None
    notification_channel_id: str | None = None

    @property
    def currencies(self) -> list[str]:
        """Accepted symbols, falling back to the system-wide default list."""
        if self.accepted_cryptocurrencies is None:
            return list(DEFAULT_ACCEPTED_CRYPTOCURRENCIES)
        return self.accepted_cryptocurrencies

    def feature_enabled(self, name: str) -> bool:
        return self.feature_toggles.get(name, DEFAULT_FEATURE_TOGGLES.get(name, False))

    def to_dict(self) -> dict:
        return {
            "allowedRecipients": list(self.allowed_recipients),
            "acceptedCryptocurrencies": (
                list(self.accepted_cryptocurrencies)
                if self.accepted_cryptocurrencies is not None else None
            ),
            "donorRoles": {k: r.to_dict() for k, r in self.donor_roles.items()},
            "featureToggles": dict(self.feature_toggles),
            "adminRoleId": self.admin_role_id,
            "vipRoleId": self.vip_role_id,
            "notificationChannelId": self.notification_channel_id,
        }

    @classmethod
    def from_dict(cls, raw: dict | None) -> GuildConfig:
        raw = raw or {}
        currencies = raw.get("acceptedCryptocurrencies")
        toggles = dict(DEFAULT_FEATURE_TOGGLES)
        toggles.update({str(k): bool(v) for k, v in (raw.get("featureToggles") or {}).items()})
        return cls(
            allowed_recipients=list(raw.get("allowedRecipients") or []),
            accepted_cryptocurrencies=(
                [str(c).upper() for c in currencies] if currencies is not None else None
            ),
            donor_roles={
                str(k): DonorRole.from_dict(str(k), v)
                for k, v in (raw.get("donorRoles") or {}).items()
                if isinstance(v, dict)
            },
            feature_toggles=toggles,
            admin_role_id=_optional_str(raw.get("adminRoleId")),
            vip_role_id=_optional_str(raw.get("vipRoleId")),
            notification_channel_id=_optional_str(raw.get("notificationChannelId")),
        )


# ---------------------------------------------------------------------------
# GuildState — the whole document
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class GuildState:
    guild_id: int
    config: GuildConfig = field(default_factory=GuildConfig)
    users: dict[str, User] = field(default_factory=dict)
    draws: dict[str, Draw] = field(default_factory=dict)

    def get_or_create_user(self, user_id: str) -> User:
        """Fetch a user, creating an empty record on first sight."""
        user_id = str(user_id)
        user = self.users.get(user_id)
        if user is None:
            user = User(id=user_id)
            self.users[user_id] = user
        return user

    def to_document(self) -> dict:
        return {
            "config": self.config.to_dict(),
            "users": {uid: u.to_dict() for uid, u in self.users.items()},
            "donationDraws": {did: d.to_dict() for did, d in self.draws.items()},
        }

    @classmethod
    def from_document(cls, guild_id: int, document: dict | None) -> GuildState:
        document = document or {}
        return cls(
            guild_id=guild_id,
            config=GuildConfig.from_dict(document.get("config")),
            users={
                str(uid): User.from_dict(str(uid), raw)
                for uid, raw in (document.get("users") or {}).items()
            },
            draws={
                str(did): Draw.from_dict(str(did), raw)
                for did, raw in (document.get("donationDraws") or {}).items()
            },
        )
