"""
Execution Engine - Backoff Policy.

Shared by connector execution and webhook delivery so both
subsystems compute retry delays identically.
"""


def compute_retry_delay(base_seconds: float, attempt: int, exponential: bool) -> float:
    """
    Delay before retry number `attempt` (1-based).

    Fixed backoff waits `base_seconds` every time; exponential waits
    `base_seconds * 2^(attempt-1)`, i.e. d, 2d, 4d, ...

    Args:
        base_seconds: Base delay from the retry policy
        attempt: Retry index k, k >= 1
        exponential: Whether exponential backoff is enabled

    Raises:
        ValueError: If attempt < 1 or base_seconds < 0
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    if base_seconds < 0:
        raise ValueError(f"base_seconds must be >= 0, got {base_seconds}")
    if not exponential:
        return float(base_seconds)
    return float(base_seconds) * (2 ** (attempt - 1))
