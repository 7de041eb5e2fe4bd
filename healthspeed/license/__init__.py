"""License gate — tiers, trial expiry, Pro key validation."""

from .manager import (
    InvalidLicenseKeyError,
    License,
    LicenseError,
    LicenseManager,
    LicenseTier,
    ProFeature,
    validate_key,
)
