import httpx


class ApiError(Exception):
    """Non-2xx answer from the marketplace backend."""

    def __init__(self, status_code: int, message: str, method: str = "", url: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.method = method
        self.url = url

    def __str__(self) -> str:
        return f"{self.message} (HTTP {self.status_code})"


class UnauthorizedError(ApiError):
    """401, no session cookie or it expired"""


class ForbiddenError(ApiError):
    """403, session exists but the role or ownership does not allow it"""


class NotFoundError(ApiError):
    pass


_STATUS_MAP = {
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
}


def _error_message(response: httpx.Response) -> str:
    # backend answers {"error": "..."} on most failures, sometimes a list of
    # validation issues, sometimes an empty body
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        err = body.get("error") or body.get("message")
        if isinstance(err, str) and err:
            return err
        if isinstance(err, list) and err:
            return "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in err)

    text = response.text.strip()
    return text or response.reason_phrase or "Request failed"


def error_from_response(response: httpx.Response) -> ApiError:
    cls = _STATUS_MAP.get(response.status_code, ApiError)
    return cls(
        response.status_code,
        _error_message(response),
        method=response.request.method,
        url=str(response.request.url),
    )


def describe_error(exc: BaseException) -> str:
    """Short human readable text for a notice."""
    if isinstance(exc, ApiError):
        return exc.message
    if isinstance(exc, httpx.TimeoutException):
        return "The server took too long to respond."
    if isinstance(exc, httpx.RequestError):
        return "Could not reach the server."
    return str(exc) or exc.__class__.__name__
