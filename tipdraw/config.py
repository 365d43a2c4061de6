"""
tipdraw.config — config.yaml Loader
====================================

``config.yaml`` holds what the process needs before it can talk to Discord:
the community's name, the command prefix, which account is the tip bot,
the price-lookup timeout and an optional owner override.  Anything a
server admin changes at runtime (draws, allowed recipients, donor roles,
toggles) is per-guild data in :mod:`tipdraw.services.store`.

::

    cfg = load_config()            # ./config.yaml
    cfg.tip_bot_id                 # 617037497574359050 unless overridden
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from tipdraw.constants import TIPCC_BOT_ID


@dataclass(frozen=True, slots=True)
class TipDrawConfig:
    community_name: str
    bot_prefix: str = "!"
    tip_bot_id: int = TIPCC_BOT_ID
    price_timeout_seconds: float = 5.0
    owner_id: int | None = None  # skips the admin-role check everywhere

    def __post_init__(self) -> None:
        if self.price_timeout_seconds <= 0:
            raise ValueError("price_timeout_seconds must be positive")


def _optional_int(raw: dict[str, Any], key: str) -> int | None:
    value = raw.get(key)
    return int(value) if value not in (None, "") else None


def load_config(path: str | Path = "config.yaml") -> TipDrawConfig:
    """Parse *path* into a :class:`TipDrawConfig`.

    Raises
    ------
    FileNotFoundError
        *path* does not exist.
    KeyError
        ``community_name`` is missing.
    ValueError
        A value is present but unusable.
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    raw: dict[str, Any] = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    defaults = TipDrawConfig(community_name="")

    return TipDrawConfig(
        community_name=str(raw["community_name"]),
        bot_prefix=str(raw.get("bot_prefix", defaults.bot_prefix)),
        tip_bot_id=_optional_int(raw, "tip_bot_id") or defaults.tip_bot_id,
        price_timeout_seconds=float(
            raw.get("price_timeout_seconds", defaults.price_timeout_seconds)
        ),
        owner_id=_optional_int(raw, "owner_id"),
    )
