"""
kachna.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for soft settings (club identity, reservation
windows, state planner cadence).  Secrets (``DATABASE_URL``,
``JWT_SECRET``) stay in ``.env``.

Usage::

    from kachna.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.club_name)             # "Kachna"
    print(cfg.default_loan_days)     # 14
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class KachnaConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    club_name: str

    # Board games
    reservation_pickup_days: int = 7  # How long a reserved game waits for pickup
    default_loan_days: int = 14  # Loan length when a game has no default of its own

    # State planning
    transition_check_seconds: int = 30
    fitwide_discord_webhook_url: str | None = None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> KachnaConfig:
    """Read *path* and return a :class:`KachnaConfig` instance.

    ``FITWIDE_DISCORD_WEBHOOK_URL`` in the environment overrides the
    webhook URL from the file.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    webhook_url = (
        os.getenv("FITWIDE_DISCORD_WEBHOOK_URL", "").strip()
        or raw.get("fitwide_discord_webhook_url")
        or None
    )

    return KachnaConfig(
        club_name=raw["club_name"],
        reservation_pickup_days=int(raw.get("reservation_pickup_days", 7)),
        default_loan_days=int(raw.get("default_loan_days", 14)),
        transition_check_seconds=int(raw.get("transition_check_seconds", 30)),
        fitwide_discord_webhook_url=webhook_url,
    )
