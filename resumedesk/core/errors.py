# resumedesk/core/errors.py
"""
Error taxonomy shared by services and routes.

Services raise these; `resumedesk.main` registers one handler that turns any
AppError into a JSON response with the class' status code. Routes never build
HTTPException for domain failures.
"""
from typing import Optional


class AppError(Exception):
    status_code: int = 500
    code: str = "internal_error"
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    message = "Validation error"


class InvalidPlan(ValidationError):
    code = "invalid_plan"
    message = "Invalid plan"


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthenticated"
    message = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class OrderNotFound(NotFound):
    code = "order_not_found"
    message = "Order not found"


class SubmissionNotFound(NotFound):
    code = "submission_not_found"
    message = "Submission not found"


class InvalidSignature(AppError):
    status_code = 400
    code = "invalid_signature"
    message = "Webhook signature verification failed"


class SessionMismatch(AppError):
    status_code = 409
    code = "session_mismatch"
    message = "Notification does not match the order's payment session"


class GatewayUnavailable(AppError):
    status_code = 502
    code = "gateway_unavailable"
    message = "Payment provider is unavailable. Please try again or contact support."


class ServiceUnavailable(AppError):
    # a required piece of configuration is missing for this request
    status_code = 503
    code = "service_unavailable"
    message = "Service not configured"


class InternalError(AppError):
    pass
