"""HTTP middleware and error mapping for the gateflow API."""

from gateflow.api.middleware.errors import problem_for_error, status_for_error, unhandled_exception_handler
from gateflow.api.middleware.request_id import RequestIDMiddleware

__all__ = [
    "RequestIDMiddleware",
    "problem_for_error",
    "status_for_error",
    "unhandled_exception_handler",
]
