"""
HTTP connection to the ingestion API.

Resolves the endpoint, authorization header and query parameters for a
run, and owns the pooled requests session used by every worker.
"""

import base64
from typing import Any

import requests
from requests.adapters import HTTPAdapter

from mpimport.core.constants import REGION_HOSTS, ROUTES
from mpimport.core.errors import FatalAuthError, FatalDispatchError
from mpimport.core.models import Credentials, ImportOptions
from mpimport.observability.logger import get_logger

logger = get_logger(__name__)

USER_AGENT = "mp-import-python"


def resolve_endpoint(record_type: str, region: str, lookup_table_id: str = "") -> str:
    """
    Build the endpoint URL for a record type and region.

    >>> resolve_endpoint("event", "EU")
    'https://api-eu.mixpanel.com/import'
    >>> resolve_endpoint("table", "US", "abc-123")
    'https://api.mixpanel.com/lookup-tables/abc-123'

    Raises:
        FatalDispatchError: If the region is unknown or a table id is missing
    """
    host = REGION_HOSTS.get(region.upper())
    if host is None:
        raise FatalDispatchError(f"Unknown region: {region}")

    url = f"{host}{ROUTES[record_type]}"
    if record_type == "table":
        if not lookup_table_id:
            raise FatalDispatchError("Lookup table imports require lookup_table_id")
        url = f"{url}/{lookup_table_id}"
    return url


def _basic(username: str, password: str = "") -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def build_auth_header(credentials: Credentials, record_type: str) -> dict[str, str]:
    """
    Choose the Authorization header by precedence.

    Service account > API secret > project token > bearer token.
    Profile imports may carry their token in the records instead, so
    they are allowed to go without a header.

    Args:
        credentials: Run credentials
        record_type: Record type being imported

    Returns:
        Header dictionary (possibly empty for profile imports)

    Raises:
        FatalAuthError: If events or tables have no usable credentials
    """
    if credentials.has_service_account:
        return {"Authorization": _basic(credentials.acct, credentials.password)}
    if credentials.secret:
        return {"Authorization": _basic(credentials.secret)}
    if credentials.token:
        return {"Authorization": _basic(credentials.token)}
    if credentials.bearer:
        return {"Authorization": f"Bearer {credentials.bearer}"}
    if record_type in ("user", "group"):
        return {}
    raise FatalAuthError("No secret, token or service account provided")


def build_params(credentials: Credentials, options: ImportOptions) -> dict[str, Any]:
    """Query parameters sent with every request."""
    params: dict[str, Any] = {
        "ip": 0,
        "verbose": 1,
        "strict": int(options.strict),
    }
    if credentials.project:
        params["project_id"] = credentials.project
    return params


def build_session(pool_size: int) -> requests.Session:
    """Session with a connection pool sized for the worker count."""
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
    return session


class ApiConnection:
    """
    Request settings for one run, bound to a requests session.

    Tests pass any object with a requests-compatible request() method
    as the session.
    """

    def __init__(
        self,
        credentials: Credentials,
        options: ImportOptions,
        session: Any = None,
    ):
        """
        Initialize connection.

        Args:
            credentials: Run credentials
            options: Run options
            session: Session to send requests through (a pooled one by default)

        Raises:
            FatalAuthError: If no usable credentials exist
            FatalDispatchError: If the endpoint cannot be built
        """
        self.record_type = options.record_type
        self.timeout = options.timeout
        self.url = resolve_endpoint(options.record_type, options.region, credentials.lookup_table_id)
        self.method = "PUT" if options.record_type == "table" else "POST"
        self.content_type = "text/csv" if options.record_type == "table" else "application/json"
        self.headers = {"Content-Type": self.content_type, **build_auth_header(credentials, options.record_type)}
        self.params = build_params(credentials, options)
        self._owns_session = session is None
        self.session = session if session is not None else build_session(options.workers)

        logger.debug(f"{self.method} {self.url}", extra={"params": self.params})

    def send(self, body: bytes, extra_headers: dict[str, str] | None = None) -> requests.Response:
        """Send one request body. Transport errors propagate."""
        headers = {**self.headers, **(extra_headers or {})}
        return self.session.request(
            self.method,
            self.url,
            params=self.params,
            headers=headers,
            data=body,
            timeout=self.timeout,
        )

    def close(self) -> None:
        if self._owns_session:
            self.session.close()
