"""Error taxonomy for a fetch run."""


class FetchRunError(Exception):
    """Base class for errors raised while processing a request."""


class TransportError(FetchRunError):
    """The request could not be completed (connection, DNS, timeout).

    Retryable: consumes one unit of the request's retry budget.
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class MalformedPayload(FetchRunError):
    """A response arrived but its body did not have the expected shape.

    Terminal: retrying will not change the body, so no budget is consumed.
    """

    def __init__(self, reason: str, path: tuple[str, ...] = ()):
        super().__init__(reason)
        self.reason = reason
        self.path = path


class SinkError(FetchRunError):
    """The result sink failed to persist an already extracted record."""
