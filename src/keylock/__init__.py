"""Keylock: license keys bound to their first consuming environment."""

from keylock.client import LicenseClient
from keylock.licensing.engine import VerificationRequest, Verdict, verify
from keylock.licensing.keygen import generate_key, validate_format
from keylock.licensing.records import DistributionMeta, LicenseRecord

__all__ = [
    "LicenseClient",
    "VerificationRequest",
    "Verdict",
    "verify",
    "generate_key",
    "validate_format",
    "DistributionMeta",
    "LicenseRecord",
]
__version__ = "0.1.0"
