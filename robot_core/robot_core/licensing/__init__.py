"""License status derivation and license administration."""

from robot_core.licensing.issuance import LicenseIssuanceService
from robot_core.licensing.status_engine import LicenseStatusEngine, StatusDecision, derive_status

__all__ = [
    "LicenseIssuanceService",
    "LicenseStatusEngine",
    "StatusDecision",
    "derive_status",
]
