# ingest/errors.py


class QuakeSourceError(Exception):
    """A single upstream source could not produce records."""


class FetchError(QuakeSourceError):
    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class TransportError(FetchError):
    """Never reached the server: DNS, connect, read failure or deadline."""


class UpstreamStatusError(FetchError):
    def __init__(self, status_code: int, url: str = ""):
        super().__init__(f"HTTP {status_code} from {url}", url=url)
        self.status_code = status_code


class EmptyResultError(QuakeSourceError):
    """The primary page parsed but yielded no rows."""


class ParseError(QuakeSourceError):
    """The body was not what the source is supposed to return."""


class AllSourcesFailedError(Exception):
    def __init__(self, primary_error: Exception, fallback_error: Exception):
        super().__init__(f"primary: {primary_error}; fallback: {fallback_error}")
        self.primary_error = primary_error
        self.fallback_error = fallback_error
