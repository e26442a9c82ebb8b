"""Error taxonomy shared by the server and the client library."""


class MessagingError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(MessagingError):
    """Empty content, malformed ids, self-addressed messages."""
    status_code = 422


class AuthError(MessagingError):
    """Caller tried to act outside their own identity."""
    status_code = 403


class NotFoundError(MessagingError):
    status_code = 404


class TransportError(MessagingError):
    """Network, database or live-channel failure. Safe to retry."""
    status_code = 503


_BY_STATUS = {
    401: AuthError,
    403: AuthError,
    404: NotFoundError,
    422: ValidationError,
}


def error_for_status(status_code: int, detail: str) -> MessagingError:
    if status_code in _BY_STATUS:
        return _BY_STATUS[status_code](detail)
    if status_code >= 500:
        return TransportError(detail)
    return MessagingError(detail)
