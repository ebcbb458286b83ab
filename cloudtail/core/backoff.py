def delay(attempt: int, base_delay: float) -> float:
    """
    Return how long to wait before retry number ``attempt``.  The first retry
    waits ``base_delay``, and each one after that waits twice as long as the one
    before.  There is no jitter, so the schedule is exactly reproducible.

    Args:
        attempt: the 1-indexed retry number
        base_delay: the delay for the first retry, in seconds

    Raises:
        ValueError: ``attempt`` was less than 1

    Returns:
        The number of seconds to wait.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return base_delay * 2 ** (attempt - 1)
