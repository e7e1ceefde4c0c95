from src.error_handler import (
    ErrorHandler,
    NotFoundError,
    UpstreamAuthError,
    ValidationError,
)


def test_handle_exception_returns_generic_payload_for_unknown_errors():
    eh = ErrorHandler()
    out = eh.handle_exception(Exception("boom"), context={"k": "v"})
    assert out["error"] == "Internal Server Error"
    assert "boom" not in out["details"]


def test_validation_error_envelope_lists_fields():
    eh = ErrorHandler()
    exc = ValidationError("Please fill in all required fields.", fields={"email": "Email is required"})
    out = eh.handle_exception(exc)
    assert exc.status_code == 400
    assert out == {
        "error": "Validation failed",
        "details": "Please fill in all required fields.",
        "fields": {"email": "Email is required"},
    }


def test_not_found_envelope_has_no_fields():
    out = ErrorHandler().handle_exception(NotFoundError("Service request not found."))
    assert out == {"error": "Not Found", "details": "Service request not found."}


def test_provider_error_hides_provider_detail():
    exc = UpstreamAuthError("Daraja rejected client credentials (HTTP 401).", provider_message="Invalid consumer key")
    out = ErrorHandler().handle_exception(exc)
    assert exc.status_code == 500
    assert out == {"error": "Payment Error", "details": "Failed to initiate payment. Please try again later."}
    assert "Invalid consumer key" not in str(out)
