from fastapi import status


class TaskHubError(Exception):
    """Base class for business-rule failures.

    Services raise these; ``main.py`` turns them into JSON responses with
    ``status_code`` and a stable ``code`` string the client can switch on.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__


class Unauthenticated(TaskHubError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"


class Forbidden(TaskHubError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFound(TaskHubError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class Conflict(TaskHubError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class ValidationError(TaskHubError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


class InsufficientFunds(TaskHubError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "insufficient_funds"
