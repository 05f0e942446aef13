"""Base Agent interface for the LyricLens storyboard pipeline

Agents wrap one remote or local capability (scene writing, diagram drafting,
frame generation, persistence) behind an explicit input/output contract.
Remote-backed agents are coroutines: the studio fans them out with asyncio.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


# Error codes shared across agents
QUOTA_EXHAUSTED = "QUOTA_EXHAUSTED"
GENERATION_FAILED = "GENERATION_FAILED"
INVALID_JSON = "INVALID_JSON"
INVALID_INPUT = "INVALID_INPUT"
INVALID_REFERENCE_IMAGES = "INVALID_REFERENCE_IMAGES"
FRAME_GENERATION_FAILED = "FRAME_GENERATION_FAILED"
DIAGRAM_GENERATION_FAILED = "DIAGRAM_GENERATION_FAILED"
INVALID_CONFIGURATION = "INVALID_CONFIGURATION"

QUOTA_MESSAGE = "API rate limit reached. Please wait a moment before trying again."

# Substrings that identify a rate-limit failure in SDK error messages
QUOTA_MARKERS = ("429", "RESOURCE_EXHAUSTED", "rate limit", "rate_limit", "quota")


class BackoffStrategy(Enum):
    """Retry backoff strategies"""
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


@dataclass
class RetryPolicy:
    """Retry policy configuration for agent execution

    Attributes:
        max_attempts: Maximum number of execution attempts (including initial attempt)
        backoff_strategy: Strategy for calculating retry delays
        base_delay_seconds: Base delay for backoff calculation
        max_delay_seconds: Maximum delay between retries
        retryable_errors: List of error codes that should trigger retry
    """
    max_attempts: int = 1
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0
    retryable_errors: List[str] = None

    def __post_init__(self):
        if self.retryable_errors is None:
            self.retryable_errors = []
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


class AgentInput(ABC):
    """Base class for agent input data"""
    pass


class AgentOutput(ABC):
    """Base class for agent output data"""
    pass


class AgentExecutionError(Exception):
    """Exception raised for agent execution failures

    Attributes:
        error_code: Machine-readable error code
        message: Human-readable error message
        context: Additional context about the failure
    """

    def __init__(self, error_code: str, message: str, context: Optional[Dict[str, Any]] = None):
        self.error_code = error_code
        self.message = message
        self.context = context or {}
        super().__init__(f"[{error_code}] {message}")

    @property
    def is_quota(self) -> bool:
        return self.error_code == QUOTA_EXHAUSTED


def is_quota_error(error: BaseException) -> bool:
    """Return True if a remote failure signals rate limiting or quota exhaustion.

    Works for both the OpenAI and Anthropic SDKs: their ``RateLimitError``
    carries ``status_code == 429``; other transports only expose the marker in
    the message text.
    """
    if getattr(error, "error_code", None) == QUOTA_EXHAUSTED:
        return True
    if getattr(error, "status_code", None) == 429:
        return True
    text = str(error)
    lowered = text.lower()
    return any(marker.lower() in lowered for marker in QUOTA_MARKERS)


def classify_remote_error(
    error: BaseException,
    fallback_code: str = GENERATION_FAILED,
    context: Optional[Dict[str, Any]] = None
) -> AgentExecutionError:
    """Wrap an SDK exception into an AgentExecutionError with a stable code."""
    if isinstance(error, AgentExecutionError):
        return error
    if is_quota_error(error):
        return AgentExecutionError(QUOTA_EXHAUSTED, QUOTA_MESSAGE, context)
    return AgentExecutionError(fallback_code, str(error) or type(error).__name__, context)


class Agent(ABC):
    """Base interface for all pipeline agents

    The agent interface provides three core methods:
    - execute(): Perform the agent's primary task (a coroutine)
    - validate_input(): Verify input conforms to expected schema
    - get_retry_policy(): Define retry behavior for transient failures
    """

    @abstractmethod
    async def execute(self, input_data: AgentInput) -> AgentOutput:
        """Execute the agent's primary task

        Args:
            input_data: Agent-specific input object conforming to expected schema

        Returns:
            Agent-specific output object

        Raises:
            AgentExecutionError: For failures the caller must handle
        """
        pass

    def validate_input(self, input_data: AgentInput) -> bool:
        """Validate input conforms to expected schema

        Note:
            This method should perform schema validation only, not business logic.
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement validate_input()"
        )

    def get_retry_policy(self) -> RetryPolicy:
        """Return retry policy for this agent

        Note:
            Nothing is retried by default; failures are surfaced to the user who
            re-triggers the action.
        """
        return RetryPolicy(max_attempts=1)
