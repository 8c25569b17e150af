import pytest
from fastapi import HTTPException
from starlette.requests import Request

from greenpay.main import caller_identity, ensure_json_request, validate_messages


def make_request(headers: list[tuple[bytes, bytes]]) -> Request:
    return Request({"type": "http", "headers": headers})


def test_validate_messages_accepts_valid_input():
    messages = validate_messages([{"role": "user", "content": "ok"}], 10, 5)
    assert messages == [{"role": "user", "content": "ok"}]


def test_validate_messages_drops_unknown_keys():
    messages = validate_messages([{"role": "user", "content": "ok", "extra": 1}], 10, 5)
    assert messages == [{"role": "user", "content": "ok"}]


def test_validate_messages_rejects_too_long():
    with pytest.raises(HTTPException) as exc:
        validate_messages([{"role": "user", "content": "hello"}], 3, 5)
    assert exc.value.detail["message"] == "too_long"


def test_caller_identity_strips_header():
    request = make_request([(b"x-user-id", b"  user-7 ")])
    assert caller_identity(request) == "user-7"


def test_caller_identity_required():
    with pytest.raises(HTTPException) as exc:
        caller_identity(make_request([]))
    assert exc.value.status_code == 401


def test_ensure_json_request_accepts_charset():
    request = make_request([(b"content-type", b"application/json; charset=utf-8")])
    ensure_json_request(request)
