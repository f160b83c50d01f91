"""
Unit tests for endpoint, authentication and request parameter resolution.
"""

import base64
import gzip

import pytest

from mpimport.core.errors import FatalAuthError, FatalDispatchError
from mpimport.core.models import Credentials, ImportOptions
from mpimport.remote.connection import (
    ApiConnection,
    build_auth_header,
    build_params,
    resolve_endpoint,
)


def decode_basic(header: str) -> str:
    assert header.startswith("Basic ")
    return base64.b64decode(header[len("Basic "):]).decode("utf-8")


class TestResolveEndpoint:
    """Tests for resolve_endpoint"""

    @pytest.mark.parametrize(
        "record_type,region,expected",
        [
            ("event", "US", "https://api.mixpanel.com/import"),
            ("event", "EU", "https://api-eu.mixpanel.com/import"),
            ("user", "IN", "https://api-in.mixpanel.com/engage"),
            ("group", "us", "https://api.mixpanel.com/groups"),
        ],
    )
    def test_routes(self, record_type, region, expected):
        assert resolve_endpoint(record_type, region) == expected

    def test_lookup_table(self):
        assert resolve_endpoint("table", "US", "abc") == "https://api.mixpanel.com/lookup-tables/abc"

    def test_lookup_table_requires_id(self):
        with pytest.raises(FatalDispatchError, match="lookup_table_id"):
            resolve_endpoint("table", "US")

    def test_unknown_region(self):
        with pytest.raises(FatalDispatchError, match="region"):
            resolve_endpoint("event", "APAC")


class TestBuildAuthHeader:
    """Tests for authorization precedence"""

    def test_service_account_wins(self):
        creds = Credentials(acct="bot", password="pw", project="1", secret="s", token="t")
        header = build_auth_header(creds, "event")["Authorization"]
        assert decode_basic(header) == "bot:pw"

    def test_secret_over_token(self):
        header = build_auth_header(Credentials(secret="s", token="t"), "event")["Authorization"]
        assert decode_basic(header) == "s:"

    def test_token(self):
        header = build_auth_header(Credentials(token="t"), "event")["Authorization"]
        assert decode_basic(header) == "t:"

    def test_bearer(self):
        header = build_auth_header(Credentials(bearer="b"), "event")
        assert header == {"Authorization": "Bearer b"}

    def test_incomplete_service_account_falls_through(self):
        header = build_auth_header(Credentials(acct="bot", password="pw", secret="s"), "event")
        assert decode_basic(header["Authorization"]) == "s:"

    def test_profiles_may_go_without(self):
        assert build_auth_header(Credentials(), "user") == {}
        assert build_auth_header(Credentials(), "group") == {}

    @pytest.mark.parametrize("record_type", ["event", "table"])
    def test_missing_credentials(self, record_type):
        with pytest.raises(FatalAuthError, match="No secret, token or service account"):
            build_auth_header(Credentials(), record_type)


class TestBuildParams:
    """Tests for query parameters"""

    def test_defaults(self):
        assert build_params(Credentials(secret="s"), ImportOptions()) == {
            "ip": 0,
            "verbose": 1,
            "strict": 1,
        }

    def test_project_and_strict(self):
        params = build_params(Credentials(project="42"), ImportOptions(strict=False))
        assert params["project_id"] == "42"
        assert params["strict"] == 0


class TestApiConnection:
    """Tests for ApiConnection"""

    def test_lookup_table_uses_put_and_csv(self, fake_session):
        creds = Credentials(secret="s", lookup_table_id="tbl")
        conn = ApiConnection(creds, ImportOptions(record_type="table"), session=fake_session())
        assert conn.method == "PUT"
        assert conn.url.endswith("/lookup-tables/tbl")
        assert conn.headers["Content-Type"] == "text/csv"

    def test_send_merges_headers(self, fake_session):
        session = fake_session()
        conn = ApiConnection(Credentials(secret="s"), ImportOptions(timeout=5), session=session)
        conn.send(gzip.compress(b"[]"), {"Content-Encoding": "gzip"})
        call = session.calls[0]
        assert call["headers"]["Content-Encoding"] == "gzip"
        assert call["headers"]["Content-Type"] == "application/json"
        assert call["timeout"] == 5

    def test_borrowed_session_is_not_closed(self, fake_session):
        session = fake_session()
        ApiConnection(Credentials(secret="s"), ImportOptions(), session=session).close()
        assert session.closed is False

    def test_owned_session_is_pooled(self):
        conn = ApiConnection(Credentials(secret="s"), ImportOptions(workers=4))
        adapter = conn.session.get_adapter("https://api.mixpanel.com")
        assert adapter._pool_maxsize == 4
        conn.close()
