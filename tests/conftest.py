"""
Shared test fixtures for the token extension test suite.

Key fixtures:
- make_event: Factory for callback bodies (dicts) with any partner header
- make_entitlement: Factory for entitlement records in document form
- write_entitlements: Writes an entitlement document to a temp file
- client: An httpx.AsyncClient wired to an app that reads the temp
  entitlement file

Testing approach:
- test_engine.py: Unit tests for evaluate()/decide(), no I/O
- test_entitlements.py: Loading, parsing and reloading of entitlement files
- test_server.py: Full HTTP flow through the Starlette app, in-memory via
  httpx.ASGITransport (no server process needed)
"""

import json

import httpx
import pytest

from src.engine import PARTNER_HEADER
from src.entitlements import FileEntitlementStore, parse_snapshot
from src.models import ExtensionRequest
from src.server import create_app


@pytest.fixture
def make_event():
    """
    Factory fixture for callback request bodies.

    Usage in tests:
        def test_something(make_event):
            body = make_event(partner="ACME")
            # body is a dict shaped like the identity provider's request
    """

    def _make_event(
        partner: str | None = None,
        headers: list[dict] | None = None,
        client_id: str = "test-client",
        scopes: list[str] | None = None,
    ) -> dict:
        """
        Args:
            partner: Partner header value (None omits the header)
            headers: Explicit additionalHeaders list, overrides `partner`
            client_id: OAuth client id
            scopes: Scopes already on the access token
        """
        if headers is None:
            headers = []
            if partner is not None:
                headers.append({"name": PARTNER_HEADER, "value": [partner]})

        return {
            "actionType": "PRE_ISSUE_ACCESS_TOKEN",
            "event": {
                "request": {
                    "clientId": client_id,
                    "grantType": "client_credentials",
                    "additionalHeaders": headers,
                },
                "accessToken": {
                    "scopes": scopes or [],
                    "claims": [{"name": "aud", "value": [client_id]}],
                },
            },
        }

    return _make_event


@pytest.fixture
def make_issuance_event(make_event):
    """Same as make_event, but decoded into an IssuanceEvent."""

    def _make_issuance_event(**kwargs):
        return ExtensionRequest.model_validate(make_event(**kwargs)).event

    return _make_issuance_event


@pytest.fixture
def make_entitlement():
    """Factory fixture for a single entitlement record in document form."""

    counter = iter(range(1, 10_000))

    def _make_entitlement(
        subject_id: str,
        action: str,
        subject_type: str = "partner",
        **extra,
    ) -> dict:
        return {
            "entitlementId": f"ent-{next(counter):04d}",
            "subject": {"type": subject_type, "id": subject_id},
            "action": action,
            "object": {},
            "constraints": {},
            **extra,
        }

    return _make_entitlement


@pytest.fixture
def make_snapshot():
    """Builds an EntitlementSnapshot from a list of record dicts."""

    def _make_snapshot(records: list[dict]):
        return parse_snapshot({"entitlements": records})

    return _make_snapshot


@pytest.fixture
def entitlements_path(tmp_path):
    return tmp_path / "entitlements.json"


@pytest.fixture
def write_entitlements(entitlements_path):
    """
    Writes an entitlement document and returns its path.

    Pass a list of records for a well-formed document, or a raw string to
    write arbitrary (possibly broken) content.
    """

    def _write(records):
        if isinstance(records, str):
            entitlements_path.write_text(records, encoding="utf-8")
        else:
            entitlements_path.write_text(
                json.dumps({"entitlements": records}), encoding="utf-8"
            )
        return entitlements_path

    return _write


@pytest.fixture
async def client(entitlements_path):
    """httpx client for an app reading entitlements from entitlements_path."""
    app = create_app(FileEntitlementStore(entitlements_path))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
