"""
Constants and Enums for the Nevra Gateway
=========================================

Centralized enums and a minimal set of shared constants.

Notes:
- Enums derive from ``BaseEnum`` so they serialize as their wire values.
- Provider defaults live in ``nevra.services.gateway.registry``.
"""

from enum import Enum


class BaseEnum(str, Enum):
    """Base enum class with string values for consistent behavior."""

    def __str__(self):
        return self.value


# ===========================
# GENERATION ENUMS
# ===========================

class GenerationMode(BaseEnum):
    """Conversation mode - full app building or explanatory tutoring."""
    BUILDER = "builder"
    TUTOR = "tutor"


class Framework(BaseEnum):
    """Target framework hint for builder mode."""
    HTML = "html"
    REACT = "react"
    VITE = "vite"
    NEXTJS = "nextjs"


class EndpointFamily(BaseEnum):
    """Upstream API flavour a provider is served through."""
    OPENROUTER = "openrouter"
    PUTER = "puter"


class HistoryRole(BaseEnum):
    """Speaker of a prior conversation turn."""
    USER = "user"
    ASSISTANT = "assistant"


class FailureKind(BaseEnum):
    """Closed taxonomy of terminal generation failures."""
    TIMEOUT = "timeout"
    PROMPT_TOO_LARGE = "prompt_too_large"
    QUOTA_EXCEEDED = "quota_exceeded"
    CONFIGURATION = "configuration"
    EMPTY_RESPONSE = "empty_response"
    UPSTREAM = "upstream"
    UNKNOWN_PROVIDER = "unknown_provider"


class RetryAxis(BaseEnum):
    """The single degradation strategy a request may use during its lifetime."""
    TIMEOUT = "timeout"
    PROMPT_LENGTH = "prompt_length"
    BUDGET = "budget"


# ===========================
# ARTIFACT ENUMS
# ===========================

class FileKind(BaseEnum):
    """Role of a file inside a multi-file artifact."""
    COMPONENT = "component"
    PAGE = "page"
    STYLE = "style"
    CONFIG = "config"
    OTHER = "other"


# ===========================
# PLANNING ENUMS
# ===========================

class TaskStatus(BaseEnum):
    """Lifecycle of a planned task."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class TaskPriority(BaseEnum):
    """Scheduling priority of a planned task."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskCategory(BaseEnum):
    """Kind of work a planned task represents."""
    SETUP = "setup"
    COMPONENT = "component"
    STYLING = "styling"
    LOGIC = "logic"
    INTEGRATION = "integration"
    TESTING = "testing"
    DEPLOYMENT = "deployment"
    DOCUMENTATION = "documentation"


# ===========================
# SHARED CONSTANTS
# ===========================

# Descending fractions of the per-mode token ceiling tried on quota exhaustion
BUDGET_FRACTIONS = (1.0, 0.75, 0.5, 0.25)

# Fraction used for the single prompt-too-long retry
PROMPT_RETRY_FRACTION = 0.5

# Turns of history kept when a request is retried with a shorter window
SHORT_HISTORY_TURNS = 2

# Planning runs on a tighter wall clock than ordinary generation
DEFAULT_PLANNING_TIMEOUT_SECONDS = 15.0
PLANNING_MAX_TOKENS = 2000
PLANNING_TEMPERATURE = 0.7

DEFAULT_PROVIDER = "deepseek"


def coerce_enum(enum_cls, value, default):
    """Return ``enum_cls(value)`` or ``default`` when the value is not a member."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default
