"""Helpers shared by the API views."""

from rest_framework import status
from rest_framework.response import Response


def domain_error_response(exc: Exception, status_code: int = status.HTTP_400_BAD_REQUEST) -> Response:
    """Render a domain exception as ``{"error": <code>, "detail": ...}``."""
    if hasattr(exc, "as_dict"):
        body = exc.as_dict()
    else:
        body = {"error": getattr(exc, "code", "invalid_request"), "detail": str(exc)}
    return Response(body, status=status_code)
