"""Translation of gateway errors into HTTP responses."""

from urllib.parse import quote

from fastapi.responses import RedirectResponse
from starlette.responses import JSONResponse

from authgw.core.errors import GatewayError

HTTP_FOUND = 302


def error_response(exc: GatewayError) -> JSONResponse:
    """JSON body ``{"error": <code>, "error_description": <message>}``."""
    return JSONResponse(
        {"error": exc.error_code, "error_description": exc.message},
        status_code=exc.status_code,
    )


def frontend_redirect(frontend_url: str, path: str = "/") -> RedirectResponse:
    return RedirectResponse(url=f"{frontend_url.rstrip('/')}{path}", status_code=HTTP_FOUND)


def frontend_error_redirect(frontend_url: str, message: str) -> RedirectResponse:
    """Send the browser back to the frontend with ``?error=<message>``."""
    return frontend_redirect(frontend_url, f"/?error={quote(message, safe='')}")
