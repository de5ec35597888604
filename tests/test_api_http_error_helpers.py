from relaygate.api.http.error_helpers import status_for_error, unknown_error_detail
from relaygate.services.errors import ErrorKind


def test_unknown_error_detail_with_exception():
    assert unknown_error_detail(ValueError("x")) == "x"


def test_unknown_error_detail_with_none():
    assert unknown_error_detail(None) == "Unknown error"


def test_unknown_error_detail_redacts_credentials():
    assert "abc123" not in unknown_error_detail(RuntimeError("post failed auth_key=abc123"))


def test_status_for_error_is_unified():
    assert status_for_error(ErrorKind.INVALID_SIGNATURE) == 401
    assert status_for_error(ErrorKind.EXPIRED) == 401
    assert status_for_error(ErrorKind.ALREADY_USED) == 401
    assert status_for_error(ErrorKind.UNKNOWN_TARGET) == 400
    assert status_for_error(ErrorKind.MISSING_CREDENTIAL) == 400
    assert status_for_error(ErrorKind.UPSTREAM_FAILURE) == 502
    assert status_for_error(None) == 400
