"""Unit tests for typed identifiers"""

import uuid

import pytest

from lease_engine.domain.exceptions import InvalidIdentifier
from lease_engine.domain.identifiers import ApplicationId, LeaseId


def test_parse_and_render():
    raw = "3f2b8c1e-5a4d-4e6f-9b7a-1c2d3e4f5a6b"
    app_id = ApplicationId.parse(raw)

    assert app_id.value == uuid.UUID(raw)
    assert str(app_id) == raw
    assert ApplicationId.parse(app_id) is app_id
    assert ApplicationId.parse(uuid.UUID(raw)) == app_id


def test_invalid_identifier():
    with pytest.raises(InvalidIdentifier) as exc_info:
        ApplicationId.parse("64b7f0c2e4b0a1a2b3c4d5e6")
    assert exc_info.value.code == "bad_identifier"
    assert exc_info.value.kind == "application"


def test_ids_of_different_kinds_do_not_mix():
    lease_id = LeaseId.new()

    assert lease_id != ApplicationId(lease_id.value)
    with pytest.raises(InvalidIdentifier):
        ApplicationId.parse(lease_id)
