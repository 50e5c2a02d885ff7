from __future__ import annotations

import pytest

from core import errors


@pytest.mark.parametrize(
    ("error_type", "status_code"),
    [
        (errors.ValidationError, 400),
        (errors.AuthenticationError, 401),
        (errors.PermissionDeniedError, 403),
        (errors.NotFoundError, 404),
        (errors.ConflictError, 409),
        (errors.TicketStateError, 409),
    ],
)
def test_error_status_codes(error_type: type[errors.HelpdeskError], status_code: int) -> None:
    error = error_type("boom")
    assert error.status_code == status_code
    assert error.user_message == "boom"
    assert isinstance(error, errors.HelpdeskError)


def test_only_full_error_names_are_exported() -> None:
    for name in ("PermissionDenied", "NotFound", "Conflict"):
        assert not hasattr(errors, name)
