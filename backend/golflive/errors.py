"""Typed errors raised by the scoring services.

Lookup misses are not errors: services return None / empty results for
unknown ids and let the HTTP layer decide on a 404.
"""


class GolfLiveError(Exception):
    """Base error carrying the HTTP status the API layer should answer with."""
    status_code: int = 500

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(GolfLiveError):
    """Malformed input rejected at the boundary; nothing was changed."""
    status_code = 400


class ConflictError(GolfLiveError):
    """The request would repeat a one-time transition (e.g. a second sidegame for a round)."""
    status_code = 409
