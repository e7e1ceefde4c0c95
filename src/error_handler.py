"""Error taxonomy and JSON error envelopes for the portal API."""
from typing import Any, Dict, Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)

GENERIC_PAYMENT_ERROR = "Failed to initiate payment. Please try again later."


class PortalError(Exception):
    status_code = 500
    error = "Server Error"

    def __init__(
        self,
        details: str = "An unexpected error occurred. Please try again later.",
        *,
        error: Optional[str] = None,
        fields: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(details)
        self.details = details
        if error:
            self.error = error
        self.fields = fields or {}
        # Extra fields for the error log.
        self.context: Dict[str, Any] = {}


class ValidationError(PortalError):
    status_code = 400
    error = "Validation failed"


class NotFoundError(PortalError):
    status_code = 404
    error = "Not Found"


class DuplicateError(PortalError):
    status_code = 409
    error = "Duplicate Entry"


class PersistenceError(PortalError):
    status_code = 500
    error = "Server Error"


class ConfigurationError(PortalError):
    status_code = 500
    error = "Configuration Error"


class PaymentProviderError(PortalError):
    """Base for provider-side failures. The client only ever sees the generic message."""

    status_code = 500
    error = "Payment Error"

    def __init__(self, details: str, *, provider_message: Optional[str] = None) -> None:
        super().__init__(details)
        self.provider_message = provider_message


class CredentialsError(PaymentProviderError):
    pass


class UpstreamAuthError(PaymentProviderError):
    pass


class UpstreamUnavailable(PaymentProviderError):
    pass


class PaymentRequestRejected(PaymentProviderError):
    pass


class ErrorHandler:
    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        if isinstance(exc, PortalError):
            context = {**(context or {}), **exc.context}
        if isinstance(exc, PaymentProviderError):
            logger.error(
                "Payment provider error (%s): %s provider_message=%r context=%s",
                type(exc).__name__,
                exc.details,
                exc.provider_message,
                context or {},
            )
            return {"error": PaymentProviderError.error, "details": GENERIC_PAYMENT_ERROR}

        if isinstance(exc, PortalError):
            if exc.status_code >= 500:
                logger.error("%s: %s context=%s", type(exc).__name__, exc.details, context or {}, exc_info=True)
            else:
                logger.info("%s: %s", type(exc).__name__, exc.details)
            body: Dict[str, Any] = {"error": exc.error, "details": exc.details}
            if exc.fields:
                body["fields"] = exc.fields
            return body

        logger.error("Unhandled exception: %s context=%s", exc, context or {}, exc_info=True)
        return {
            "error": "Internal Server Error",
            "details": "An unexpected error occurred. Please try again later.",
        }

    def register(self, app: FastAPI) -> None:
        @app.exception_handler(PortalError)
        async def _portal_error(request: Request, exc: PortalError):
            body = self.handle_exception(exc, context={"path": request.url.path})
            return JSONResponse(status_code=exc.status_code, content=body)

        @app.exception_handler(RequestValidationError)
        async def _request_validation_error(request: Request, exc: RequestValidationError):
            fields: Dict[str, str] = {}
            for err in exc.errors():
                loc = [str(p) for p in err.get("loc", ()) if p != "body"]
                fields[".".join(loc) or "body"] = err.get("msg", "Invalid value")
            return JSONResponse(
                status_code=400,
                content={
                    "error": "Validation failed",
                    "details": "Request body is missing or malformed.",
                    "fields": fields,
                },
            )

        @app.exception_handler(HTTPException)
        async def _http_exception(request: Request, exc: HTTPException):
            if isinstance(exc.detail, dict):
                content = exc.detail
            elif exc.status_code == 404 and exc.detail == "Not Found":
                content = {"error": "Not Found", "details": "The requested resource does not exist."}
            else:
                content = {"error": "Request Error", "details": exc.detail}
            return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

        @app.exception_handler(Exception)
        async def _unhandled(request: Request, exc: Exception):
            body = self.handle_exception(exc, context={"path": request.url.path})
            return JSONResponse(status_code=500, content=body)
