"""
Resilience Infrastructure.

Circuit breaker listener and factory for structured resilience event logging.

Retries are not done in-process: a failed event is left unacknowledged and
the queue transport redelivers it. The breaker only makes a dead dependency
fail fast while it is known to be down.

Usage:
    from crm_erp.core.resilience import create_circuit_breaker

    breaker = create_circuit_breaker("record-store", fail_max=5, timeout_duration=30)
    await breaker.call_async(write_row, record)
"""

from datetime import timedelta
from typing import Any

import aiobreaker

from crm_erp.core.logging import get_logger

logger = get_logger(__name__)


class ResilienceLogger(aiobreaker.CircuitBreakerListener):
    """Circuit breaker listener that emits structured resilience events.

    Every state transition is logged with a standardized set of fields
    so that resilience events can be filtered and aggregated:

        jq 'select(.resilience_event != null)' logs/system.jsonl
    """

    def __init__(self, dependency: str) -> None:
        self.dependency = dependency

    def state_change(self, cb: aiobreaker.CircuitBreaker, old_state: Any, new_state: Any) -> None:
        event_map = {
            "open": "circuit_breaker_opened",
            "half-open": "circuit_breaker_half_open",
            "closed": "circuit_breaker_closed",
        }
        new_str = str(new_state).lower()
        event = event_map.get(new_str, f"circuit_breaker_{new_str}")
        log_level = "error" if new_str == "open" else "info"

        getattr(logger, log_level)(
            f"Circuit breaker {self.dependency}: {old_state} → {new_state}",
            extra={
                "resilience_event": event,
                "dependency": self.dependency,
                "failure_count": cb.fail_counter,
            },
        )

    def failure(self, cb: aiobreaker.CircuitBreaker, exception: Exception) -> None:
        logger.warning(
            f"Circuit breaker {self.dependency}: failure recorded",
            extra={
                "resilience_event": "circuit_breaker_failure",
                "dependency": self.dependency,
                "failure_count": cb.fail_counter,
                "error": str(exception),
            },
        )


def create_circuit_breaker(
    dependency: str,
    fail_max: int = 5,
    timeout_duration: int = 30,
) -> aiobreaker.CircuitBreaker:
    """Create a circuit breaker with structured logging.

    Args:
        dependency: Name of the external dependency (for logging)
        fail_max: Number of failures before opening
        timeout_duration: Seconds to wait before half-open test

    Returns:
        Configured CircuitBreaker instance
    """
    return aiobreaker.CircuitBreaker(
        fail_max=fail_max,
        timeout_duration=timedelta(seconds=timeout_duration),
        listeners=[ResilienceLogger(dependency)],
    )
