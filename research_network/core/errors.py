class ResearchNetworkError(Exception):
    """Base class for errors raised by the research network."""


class CompletionError(ResearchNetworkError):
    """Completion backend missing, failing, timing out, or returning empty text."""


class SearchError(ResearchNetworkError):
    """Search backend missing, failing, or timing out."""


class SessionFailedError(ResearchNetworkError):
    """A research session ended in the failed state."""

    def __init__(self, session_id: str, message: str):
        super().__init__(f"Research session {session_id} failed: {message}")
        self.session_id = session_id


class SessionClosedError(ResearchNetworkError):
    """Attempt to mutate a session that already reached a terminal status."""


class InvalidTransitionError(ResearchNetworkError):
    """Attempt to move a session status backwards."""


class RateLimitExceeded(ResearchNetworkError):
    """A client or the whole process exhausted its session allowance."""

    def __init__(self, scope: str, limit: int, retry_after: float):
        super().__init__(f"Rate limit exceeded ({scope}: {limit}/hour)")
        self.scope = scope
        self.limit = limit
        self.retry_after = retry_after
