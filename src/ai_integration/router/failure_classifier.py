"""Deterministic classification of exceptions raised by providers.

A provider that raises instead of returning a failed ``Outcome`` is treated as
retryable by the router; the classification only names the failure so that
the last error of a failover chain is readable.
"""

from __future__ import annotations

from dataclasses import dataclass

from ai_integration.router.errors import ProviderError
from ai_integration.router.models import ClassifiedError

FAILURE_CLASSIFIER_VERSION = 1

_BILLING_OR_QUOTA_PATTERNS: tuple[str, ...] = (
    "quota",
    "resource_exhausted",
    "insufficient",
    "billing",
    "payment",
    "credits",
)
_ACCESS_OR_AUTH_PATTERNS: tuple[str, ...] = (
    "unauthorized",
    "forbidden",
    "permission denied",
    "invalid api key",
    "authentication",
)
_MODEL_NOT_AVAILABLE_PATTERNS: tuple[str, ...] = (
    "model not found",
    "unknown model",
    "unsupported model",
    "model is not available",
)
_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "too many requests",
    "rate limit",
    "429",
    "try again later",
)
_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "temporarily unavailable",
    "timed out",
    "timeout",
    "connection reset",
    "network error",
    "503",
)


@dataclass(slots=True)
class ProviderFailureClassification:
    """Normalized classification of one provider exception."""

    error: ClassifiedError
    matched_rule: str
    matched_pattern: str | None


def classify_provider_exception(
    *,
    provider: str,
    error: Exception,
) -> ProviderFailureClassification:
    """Classify an exception raised by ``provider.execute``."""

    if isinstance(error, ProviderError):
        return ProviderFailureClassification(
            error=error.to_classified(),
            matched_rule="provider_error",
            matched_pattern=None,
        )

    message = f"{provider}: {error}" if str(error) else f"{provider}: {type(error).__name__}"
    if isinstance(error, TimeoutError):
        return _classified("TIMEOUT", message, rule="timeout_exception", pattern=None)

    haystack = str(error).lower()
    for code, rule, patterns in (
        ("QUOTA_EXCEEDED", "billing_or_quota", _BILLING_OR_QUOTA_PATTERNS),
        ("AUTH_FAILED", "access_or_auth", _ACCESS_OR_AUTH_PATTERNS),
        ("MODEL_UNAVAILABLE", "model_not_available", _MODEL_NOT_AVAILABLE_PATTERNS),
        ("RATE_LIMITED", "rate_limit_transient", _RATE_LIMIT_PATTERNS),
        ("TRANSIENT", "generic_transient", _TRANSIENT_PATTERNS),
    ):
        pattern = _first_match(haystack, patterns)
        if pattern is not None:
            return _classified(code, message, rule=rule, pattern=pattern)

    return _classified("PROVIDER_EXCEPTION", message, rule="fallback_exception", pattern=None)


def _classified(
    code: str,
    message: str,
    *,
    rule: str,
    pattern: str | None,
) -> ProviderFailureClassification:
    return ProviderFailureClassification(
        error=ClassifiedError(code=code, message=message, retryable=True),
        matched_rule=rule,
        matched_pattern=pattern,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
