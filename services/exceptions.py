from typing import Dict, List, Optional


class ServiceError(Exception):
    """Base for errors a route turns into a ``{success: false}`` response."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class BusinessRuleError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class ValidationFailedError(ServiceError):
    status_code = 422

    def __init__(self, errors: Dict[str, List[str]], message: str = "Validation failed"):
        super().__init__(message, errors)


class PaymentProcessingError(ServiceError):
    """Unexpected failure in a money-affecting flow; the detail is only shown in debug."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail


class UpstreamError(ServiceError):
    """A carrier API could not be reached or refused the call."""

    status_code = 502
