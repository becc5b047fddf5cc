"""Deterministic diagnosis of non-zero engine exits.

The result is attached to error responses for the caller's benefit only; the
delegation layer never retries on its own.
"""

from __future__ import annotations

from dataclasses import dataclass

from gemini_wrapper.models import FailureClass

_BILLING_OR_QUOTA_PATTERNS: tuple[str, ...] = (
    "quota",
    "resource_exhausted",
    "resource exhausted",
    "billing",
    "insufficient",
)
_ACCESS_OR_AUTH_PATTERNS: tuple[str, ...] = (
    "unauthorized",
    "unauthenticated",
    "forbidden",
    "permission denied",
    "permission_denied",
    "api key not valid",
    "invalid api key",
    "authentication",
    "login required",
)
_MODEL_NOT_AVAILABLE_PATTERNS: tuple[str, ...] = (
    "model not found",
    "unknown model",
    "unsupported model",
    "invalid model",
    "is not found for api version",
    "not available in your region",
)
_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "too many requests",
    "rate limit",
    "429",
    "please retry",
    "try again later",
)
_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "temporarily unavailable",
    "service unavailable",
    "503",
    "deadline exceeded",
    "connection reset",
    "network error",
    "econnreset",
    "etimedout",
    "enotfound",
)
_TRANSIENT_EXIT_CODES: tuple[int, ...] = (137, 143)

_RULES: tuple[tuple[str, FailureClass, tuple[str, ...]], ...] = (
    ("rate_limited", FailureClass.RATE_LIMITED, _RATE_LIMIT_PATTERNS),
    ("billing_or_quota", FailureClass.BILLING_OR_QUOTA, _BILLING_OR_QUOTA_PATTERNS),
    ("access_or_auth", FailureClass.ACCESS_OR_AUTH, _ACCESS_OR_AUTH_PATTERNS),
    ("model_not_available", FailureClass.MODEL_NOT_AVAILABLE, _MODEL_NOT_AVAILABLE_PATTERNS),
    ("transient", FailureClass.BACKEND_TRANSIENT, _TRANSIENT_PATTERNS),
)


@dataclass(slots=True)
class ExitFailureClassification:
    """Normalized exit failure diagnosis."""

    failure_class: FailureClass
    matched_rule: str
    matched_pattern: str | None

    def to_details(self) -> dict[str, object]:
        return {
            "failure_class": self.failure_class.value,
            "matched_rule": self.matched_rule,
            "matched_pattern": self.matched_pattern,
        }


def classify_exit_failure(*, exit_code: int, stdout: str, stderr: str) -> ExitFailureClassification:
    """Classify a non-zero exit from the text the engine printed."""

    haystack = f"{stderr}\n{stdout}".lower()
    for rule, failure_class, patterns in _RULES:
        pattern = _first_match(haystack, patterns)
        if pattern is not None:
            return ExitFailureClassification(
                failure_class=failure_class,
                matched_rule=rule,
                matched_pattern=pattern,
            )

    if exit_code in _TRANSIENT_EXIT_CODES or exit_code < 0:
        return ExitFailureClassification(
            failure_class=FailureClass.BACKEND_TRANSIENT,
            matched_rule="signal_exit_code",
            matched_pattern=None,
        )

    return ExitFailureClassification(
        failure_class=FailureClass.BACKEND_NON_RETRYABLE,
        matched_rule="fallback_non_retryable",
        matched_pattern=None,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
