"""Guard against slow, stale responses overwriting newer ones."""


class LatestOnly:
    """
    Issue increasing tokens for fetches of one resource.

    A result is applied only when the token it was started with is still
    the most recent one issued.
    """

    def __init__(self) -> None:
        self._latest = 0

    def begin(self) -> int:
        """Start a fetch and return its token."""
        self._latest += 1
        return self._latest

    def is_latest(self, token: int) -> bool:
        """Whether ``token`` belongs to the newest fetch."""
        return token == self._latest
