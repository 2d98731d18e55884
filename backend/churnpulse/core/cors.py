"""
CORS middleware whose preflight answers carry an empty body.
"""

from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response

_BODY_HEADERS = {"content-length", "content-type"}


class EmptyPreflightCORSMiddleware(CORSMiddleware):
    """Starlette answers a successful preflight with a plain-text "OK";
    SDK clients expect the same empty 200 the OPTIONS routes return."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers=request_headers)
        if response.status_code != 200:
            return response
        headers = {
            key: value
            for key, value in response.headers.items()
            if key.lower() not in _BODY_HEADERS
        }
        return Response(status_code=200, headers=headers)
