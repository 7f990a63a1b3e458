"""Failure Classifier
==================

Maps a failed upstream call to a ``FailureKind``.

Upstream providers return free-text diagnostics rather than structured error
codes, so classification is a heuristic over an ordered table of
case-insensitive substrings plus well-known status codes. Timeout and
prompt-length wording wins over the status code (OpenRouter reports an
oversized prompt as 402, the status it also uses for missing credits); the
status table comes next, then the remaining patterns. The first matching row
wins.

Known fragility: a provider that rewords its messages (e.g. a timeout phrased
differently) silently falls through to ``UPSTREAM``. Extend the table rather
than adding checks elsewhere.
"""

from typing import Optional, Tuple

from nevra.constants import FailureKind

STATUS_TABLE = {
    401: FailureKind.CONFIGURATION,
    403: FailureKind.CONFIGURATION,
    402: FailureKind.QUOTA_EXCEEDED,
    408: FailureKind.TIMEOUT,
    413: FailureKind.PROMPT_TOO_LARGE,
    504: FailureKind.TIMEOUT,
}

# Order matters: credit messages mention "tokens" too, so context-length
# patterns must stay specific to prompt/context wording; "credentials" contains
# "credit", so the configuration row precedes the quota row.
PATTERN_TABLE: Tuple[Tuple[FailureKind, Tuple[str, ...]], ...] = (
    (FailureKind.TIMEOUT, (
        'aborted',
        'abort',
        'timeout',
        'timed out',
        'took too long',
        'econnaborted',
    )),
    (FailureKind.PROMPT_TOO_LARGE, (
        'prompt tokens',
        'prompt token limit',
        'token limit exceeded',
        'context length',
        'context_length_exceeded',
        'maximum context',
        'context window',
    )),
    (FailureKind.CONFIGURATION, (
        'api key',
        'api_key',
        'unauthorized',
        'not configured',
        'no auth credentials',
        'authentication',
    )),
    (FailureKind.QUOTA_EXCEEDED, (
        'credit',
        'afford',
        'quota',
        'insufficient balance',
        'insufficient funds',
    )),
    (FailureKind.EMPTY_RESPONSE, (
        'missing content',
        'empty response',
        'response missing',
    )),
)


# Kinds whose wording overrides the status table
TEXT_OVER_STATUS = (FailureKind.TIMEOUT, FailureKind.PROMPT_TOO_LARGE)


def _match_patterns(text: str) -> Optional[FailureKind]:
    if not text:
        return None
    for candidate, patterns in PATTERN_TABLE:
        if any(pattern in text for pattern in patterns):
            return candidate
    return None


def classify(http_status: Optional[int], diagnostic: Optional[str]) -> FailureKind:
    """Classify a failed attempt.

    Args:
        http_status: Upstream HTTP status, None for transport/client-side failures
        diagnostic: Free-text error message from the provider or transport

    Returns:
        The failure kind; ``UPSTREAM`` when nothing more specific matches
    """
    matched = _match_patterns((diagnostic or '').lower())
    if matched in TEXT_OVER_STATUS:
        return matched

    kind = STATUS_TABLE.get(http_status) if http_status else None
    if kind is not None:
        return kind

    return matched or FailureKind.UPSTREAM
