"""Canned log-analysis results, keyed by application."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class CannedAnalysis:
    error_pattern: str
    root_cause: str
    suggested_fix: str
    log_excerpt: str
    correlated_event: str | None = None

    def as_fields(self) -> dict[str, Any]:
        return asdict(self)


CANNED_ANALYSES: dict[str, CannedAnalysis] = {
    "Finance App": CannedAnalysis(
        error_pattern="APPROVAL_SERVICE_TIMEOUT",
        root_cause="Misconfigured connection string to approval-db after deployment of approval-service v1.3.7",
        suggested_fix=(
            "Rollback approval-service to v1.3.6 or update the connection string configuration for approval-db"
        ),
        log_excerpt=(
            "[2025-11-15 10:15:23] ERROR approval-service: Connection refused to approval-db:5432\n"
            "[2025-11-15 10:15:23] ERROR approval-service: Timeout waiting for DB response\n"
            "[2025-11-15 10:15:24] WARN  approval-service: Retrying connection... (attempt 1/3)\n"
            "[2025-11-15 10:15:28] ERROR approval-service: APPROVAL_SERVICE_TIMEOUT"
        ),
        correlated_event="Deployment of approval-service v1.3.7 at 10:00 AM",
    ),
    "Inventory App": CannedAnalysis(
        error_pattern="SESSION_TIMEOUT on Android clients",
        root_cause="Session timeout misconfiguration for Android clients in the authentication service",
        suggested_fix="Update session timeout configuration for mobile clients from 5 minutes to 30 minutes",
        log_excerpt=(
            "[2025-11-15 10:10:15] WARN  auth-service: Session expired for user android-client-123\n"
            "[2025-11-15 10:12:32] WARN  auth-service: Session expired for user android-client-123\n"
            "[2025-11-15 10:15:41] WARN  auth-service: Session expired for user android-client-123"
        ),
        correlated_event="Recent authentication service update deployed 2 days ago",
    ),
}

DEFAULT_APPLICATION = "Finance App"


def canned_analysis(application: str, fallback_application: str = DEFAULT_APPLICATION) -> CannedAnalysis:
    """Canned record for ``application``, or the fallback application's record."""
    return CANNED_ANALYSES.get(application) or CANNED_ANALYSES[fallback_application]
