"""Retry policy for dispatcher calls."""


class RetryConfig:
    """
    Configuration for retry behavior.

    With the default ``exponential_base`` of 1.0 every wait equals
    ``base_delay``; raise it above 1.0 for exponential backoff.

    Parameters
    ----------
    max_retries : int
        Total attempts per dispatcher call
    base_delay : float
        Delay in seconds before the second attempt
    max_delay : float
        Maximum delay between attempts
    exponential_base : float
        Base for exponential backoff calculation

    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 30.0,
        exponential_base: float = 1.0,
    ) -> None:
        if max_retries < 1:
            msg = f"max_retries must be at least 1, got {max_retries}"
            raise ValueError(msg)
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base

    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay after a failed attempt.

        Parameters
        ----------
        attempt : int
            Failed attempt number (0-indexed)

        Returns
        -------
        float
            Delay in seconds

        """
        delay = self.base_delay * (self.exponential_base**attempt)
        return min(delay, self.max_delay)
