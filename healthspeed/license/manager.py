"""License tiers, key validation and the single-file license store.

Entitlement is always read through ``effective_tier()``, which downgrades an
expired Trial to Free. Nothing should branch on ``License.tier`` directly.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

KEY_PREFIX = "HSPC"
TRIAL_DURATION_SECONDS = 14 * 86_400


class LicenseTier(str, Enum):
    FREE = "free"
    TRIAL = "trial"
    PRO = "pro"


class ProFeature(str, Enum):
    AUTOMATION = "automation"


class LicenseError(Exception):
    """Raised when the license file cannot be read, parsed or written."""


class InvalidLicenseKeyError(LicenseError):
    """Raised by ``activate_pro`` for a key that fails format/checksum checks."""


@dataclass
class License:
    tier: LicenseTier = LicenseTier.FREE
    key: str | None = None
    activated_at: int = 0
    expires_at: int | None = None

    def is_trial_expired(self, now: float | None = None) -> bool:
        if self.tier is not LicenseTier.TRIAL or self.expires_at is None:
            return False
        now = time.time() if now is None else now
        return now > self.expires_at

    def effective_tier(self, now: float | None = None) -> LicenseTier:
        if self.tier is LicenseTier.TRIAL and self.is_trial_expired(now):
            return LicenseTier.FREE
        return self.tier

    def has_pro_feature(self, feature: ProFeature, now: float | None = None) -> bool:
        tier = self.effective_tier(now)
        if feature is ProFeature.AUTOMATION:
            return tier in (LicenseTier.PRO, LicenseTier.TRIAL)
        return False

    def trial_days_remaining(self, now: float | None = None) -> int:
        if self.tier is not LicenseTier.TRIAL or self.expires_at is None:
            return 0
        now = time.time() if now is None else now
        remaining = self.expires_at - now
        return int(remaining // 86_400) if remaining > 0 else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier.value,
            "key": self.key,
            "activated_at": self.activated_at,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> License:
        expires = data.get("expires_at")
        license = cls(
            tier=LicenseTier(data["tier"]),
            key=data.get("key"),
            activated_at=int(data["activated_at"]),
            expires_at=int(expires) if expires is not None else None,
        )
        if (
            license.tier is LicenseTier.TRIAL
            and license.expires_at is not None
            and license.expires_at <= license.activated_at
        ):
            raise ValueError("trial expiry must be after its activation time")
        return license


# ── Key validation ───────────────────────────────────────────────────────────


def _base36(ch: str) -> int:
    return int(ch, 36)


def validate_key(key: str) -> bool:
    """Check an ``HSPC-XXXX-XXXX-XXXX-YYYY`` key locally.

    The last character of the final segment must equal, in base 36, the sum
    of the payload characters' base-36 values mod 36. Returns False for any
    deviation; never raises.
    """
    if not isinstance(key, str):
        return False
    parts = key.split("-")
    if len(parts) != 5 or parts[0] != KEY_PREFIX:
        return False

    for segment in parts[1:]:
        if len(segment) != 4:
            return False
        if not all(c.isascii() and c.isalnum() for c in segment):
            return False

    total = sum(_base36(c) for c in "".join(parts[1:4]))
    return _base36(parts[4][-1]) == total % 36


def checksum_char(payload: str) -> str:
    """Base-36 checksum digit for a 12-character payload (upper case)."""
    total = sum(_base36(c) for c in payload)
    return "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"[total % 36]


# ── Manager ──────────────────────────────────────────────────────────────────


class LicenseManager:
    """Loads, saves and mutates the license file.

    ``clock`` returns unix seconds; tests pass a fixed one.
    """

    def __init__(self, license_path: Path | str, clock: Callable[[], float] = time.time) -> None:
        self.license_path = Path(license_path)
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def default_license(self) -> License:
        return License(tier=LicenseTier.FREE, activated_at=self._now())

    def load(self) -> License:
        """Read the license file. A missing file means Free; a broken one is an error."""
        if not self.license_path.exists():
            return self.default_license()
        try:
            content = self.license_path.read_text(encoding="utf-8")
        except OSError as e:
            raise LicenseError(f"Failed to read license file: {e}") from e
        try:
            return License.from_dict(json.loads(content))
        except (ValueError, KeyError, TypeError) as e:
            raise LicenseError(f"Failed to parse license file: {e}") from e

    def save(self, license: License) -> None:
        try:
            self.license_path.parent.mkdir(parents=True, exist_ok=True)
            self.license_path.write_text(json.dumps(license.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            raise LicenseError(f"Failed to write license file: {e}") from e

    validate_key = staticmethod(validate_key)

    def activate_pro(self, key: str) -> License:
        if not validate_key(key):
            raise InvalidLicenseKeyError("Invalid license key format")

        license = License(
            tier=LicenseTier.PRO,
            key=key.upper(),
            activated_at=self._now(),
            expires_at=None,
        )
        self.save(license)
        logger.info("Pro license activated")
        return license

    def start_trial(self) -> License:
        """Start a 14-day trial, or return the running one unchanged.

        A trial is granted once: an expired trial is refused rather than renewed.
        """
        current = self.load()
        if current.tier is LicenseTier.PRO:
            raise LicenseError("Pro license is already active")

        now = self._now()
        if current.tier is LicenseTier.TRIAL:
            if current.is_trial_expired(now):
                raise LicenseError("Trial period has expired. Please upgrade to Pro.")
            return current

        license = License(
            tier=LicenseTier.TRIAL,
            key=None,
            activated_at=now,
            expires_at=now + TRIAL_DURATION_SECONDS,
        )
        self.save(license)
        logger.info("Trial started, expires at %d", license.expires_at)
        return license

    def downgrade_to_free(self) -> License:
        license = self.default_license()
        self.save(license)
        logger.info("License downgraded to Free")
        return license

    def effective_tier(self) -> LicenseTier:
        return self.load().effective_tier(self._now())

    def has_pro_feature(self, feature: ProFeature) -> bool:
        return self.load().has_pro_feature(feature, self._now())
