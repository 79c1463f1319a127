"""
PocketBase Collection Client

Thin function-based client for the PocketBase records API. A
requests.Session carries the base URL and auth token; every other function
takes the session as its first parameter.

Features:
- Superuser authentication (new and legacy endpoints)
- Paged listing and full listing with filter/sort expressions
- Retry with tenacity on transient failures (connection errors, 429, 5xx)
- safe_api_call() for "log and continue" call sites

Usage:
    from pocketbase_api import client as pb
    session = pb.create_session()
    rows = pb.get_full_list(session, "ccr_footer_data", filter_expr='date="2024-05-01"')
"""

import os
import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin

import requests
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Constants
POCKETBASE_URL = os.getenv("POCKETBASE_URL", "http://127.0.0.1:8090/")
POCKETBASE_EMAIL = os.getenv("POCKETBASE_EMAIL", "")
POCKETBASE_PASSWORD = os.getenv("POCKETBASE_PASSWORD", "")
POCKETBASE_TIMEOUT = float(os.getenv("POCKETBASE_TIMEOUT", "30"))
POCKETBASE_PAGE_SIZE = int(os.getenv("POCKETBASE_PAGE_SIZE", "500"))

MAX_RETRY_ATTEMPTS = 3
RETRY_WAIT_MIN = 1
RETRY_WAIT_MAX = 10

SUPERUSER_AUTH_PATH = "api/collections/_superusers/auth-with-password"
LEGACY_ADMIN_AUTH_PATH = "api/admins/auth-with-password"

# Collections used by the operational sync
PARAMETER_SETTINGS = "parameter_settings"
PARAMETER_DATA = "ccr_parameter_data"
FOOTER_DATA = "ccr_footer_data"
MATERIAL_USAGE = "ccr_material_usage"

# Fields of the unique index on each derived collection
UNIQUE_KEY_FIELDS = {
    PARAMETER_DATA: ("date", "parameter_id"),
    FOOTER_DATA: ("date", "parameter_id"),
    MATERIAL_USAGE: ("date", "plant_category", "plant_unit", "shift"),
}


# ============================================================================
# Errors
# ============================================================================

class PocketBaseError(Exception):
    """Non-successful response from the PocketBase API."""

    def __init__(self, message: str, status: int = 0, url: str = "", data: Any = None):
        super().__init__(message)
        self.status = status
        self.url = url
        self.data = data or {}


class TransientPocketBaseError(PocketBaseError):
    """Failure worth retrying: network problem, rate limit or server error."""


def is_transient_status(status: int) -> bool:
    return status == 429 or status >= 500


# ============================================================================
# Session Functions
# ============================================================================

def build_url(session: requests.Session, path: str) -> str:
    base_url = getattr(session, "base_url", POCKETBASE_URL)
    if not base_url.endswith("/"):
        base_url += "/"
    return urljoin(base_url, path.lstrip("/"))


@retry(
    stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=RETRY_WAIT_MIN, max=RETRY_WAIT_MAX),
    retry=retry_if_exception_type(TransientPocketBaseError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True
)
def request(
    session: requests.Session,
    method: str,
    path: str,
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Send one API request and decode the JSON response.

    Args:
        session: Session created by create_session()
        method: HTTP method
        path: API path relative to the base URL
        params: Query string parameters
        json_body: JSON request body

    Returns:
        Decoded JSON body, or None for empty (204) responses

    Raises:
        TransientPocketBaseError: Connection failure, timeout, 429 or 5xx (retried)
        PocketBaseError: Any other non-2xx response
    """
    url = build_url(session, path)
    try:
        response = session.request(
            method,
            url,
            params=params,
            json=json_body,
            timeout=POCKETBASE_TIMEOUT,
        )
    except (requests.ConnectionError, requests.Timeout) as e:
        raise TransientPocketBaseError(f"{method} {url} failed: {e}", url=url) from e

    if response.status_code == 204 or not response.content:
        if response.status_code >= 400:
            raise_for_response(method, url, response, {})
        return None

    try:
        payload = response.json()
    except ValueError:
        payload = {"message": response.text}

    if response.status_code >= 400:
        raise_for_response(method, url, response, payload)

    return payload


def raise_for_response(method: str, url: str, response: requests.Response, payload: Any):
    status = response.status_code
    message = payload.get("message", "") if isinstance(payload, dict) else ""
    text = f"{method} {url} returned {status}: {message or response.reason}"
    if is_transient_status(status):
        raise TransientPocketBaseError(text, status=status, url=url, data=payload)
    raise PocketBaseError(text, status=status, url=url, data=payload)


def authenticate(session: requests.Session, email: str, password: str) -> str:
    """
    Authenticate as superuser and attach the token to the session.

    Tries the current superuser endpoint first and falls back to the legacy
    admin endpoint for older PocketBase servers.

    Returns:
        Auth token
    """
    body = {"identity": email, "password": password}
    try:
        auth = request(session, "POST", SUPERUSER_AUTH_PATH, json_body=body)
    except PocketBaseError as e:
        if e.status != 404:
            raise
        logger.info("Superuser endpoint not found, using legacy admin auth")
        auth = request(session, "POST", LEGACY_ADMIN_AUTH_PATH, json_body=body)

    token = auth.get("token") if auth else None
    if not token:
        raise PocketBaseError("Authentication response did not contain a token")
    session.headers["Authorization"] = token
    logger.info(f"Authenticated to PocketBase as {email}")
    return token


def create_session(
    base_url: str = POCKETBASE_URL,
    email: str = POCKETBASE_EMAIL,
    password: str = POCKETBASE_PASSWORD,
) -> requests.Session:
    """
    Create an HTTP session bound to a PocketBase server.

    Args:
        base_url: PocketBase server URL
        email: Superuser email (skip auth when empty)
        password: Superuser password

    Returns:
        requests.Session with base_url attribute and auth header
    """
    session = requests.Session()
    session.base_url = base_url
    session.headers.update({"Accept": "application/json"})
    if email and password:
        authenticate(session, email, password)
    else:
        logger.debug("No PocketBase credentials configured, using anonymous access")
    return session


def check_health(session: requests.Session) -> bool:
    try:
        request(session, "GET", "api/health")
        return True
    except PocketBaseError as e:
        logger.debug(f"Health check failed: {e}")
        return False


# ============================================================================
# Record Functions
# ============================================================================

def quote_filter_value(value: Any) -> str:
    """Render a value as a double-quoted PocketBase filter literal."""
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def unique_key(collection: str, record: Dict[str, Any]) -> Optional[str]:
    """Natural key of a row ("2024-05-01|pclinker"), None when unknown or incomplete."""
    fields = UNIQUE_KEY_FIELDS.get(collection)
    if not fields:
        return None
    values = []
    for field in fields:
        value = record.get(field)
        if value is None or value == "":
            return None
        value = str(value)
        values.append(value[:10] if field == "date" else value)
    return "|".join(values)


def unique_key_filter(collection: str, record: Dict[str, Any]) -> Optional[str]:
    """Filter expression matching the row with the same natural key."""
    if unique_key(collection, record) is None:
        return None
    return " && ".join(
        f"{field}={quote_filter_value(str(record[field])[:10] if field == 'date' else record[field])}"
        for field in UNIQUE_KEY_FIELDS[collection]
    )


def records_path(collection: str, record_id: Optional[str] = None) -> str:
    path = f"api/collections/{collection}/records"
    if record_id:
        path += f"/{record_id}"
    return path


def get_list(
    session: requests.Session,
    collection: str,
    page: int = 1,
    per_page: int = POCKETBASE_PAGE_SIZE,
    filter_expr: Optional[str] = None,
    sort: Optional[str] = None,
    skip_total: bool = False,
) -> Dict[str, Any]:
    """
    Fetch one page of records.

    Returns:
        Page dictionary with page, perPage, totalItems, totalPages and items
    """
    params: Dict[str, Any] = {"page": page, "perPage": per_page}
    if filter_expr:
        params["filter"] = filter_expr
    if sort:
        params["sort"] = sort
    if skip_total:
        params["skipTotal"] = 1
    return request(session, "GET", records_path(collection), params=params)


def get_full_list(
    session: requests.Session,
    collection: str,
    filter_expr: Optional[str] = None,
    sort: Optional[str] = None,
    batch_size: int = POCKETBASE_PAGE_SIZE,
) -> List[Dict[str, Any]]:
    """
    Fetch every record matching a filter, page by page.

    The server caps perPage and echoes the size it actually used; paging
    stops on a page shorter than that size.

    Args:
        session: PocketBase session
        collection: Collection name
        filter_expr: PocketBase filter expression
        sort: Sort expression (e.g. "date,-created")
        batch_size: Records per page request

    Returns:
        List of records
    """
    records: List[Dict[str, Any]] = []
    page = 1
    while True:
        result = get_list(
            session,
            collection,
            page=page,
            per_page=batch_size,
            filter_expr=filter_expr,
            sort=sort,
            skip_total=True,
        )
        items = result.get("items", []) if result else []
        records.extend(items)
        page_size = (result or {}).get("perPage") or batch_size
        if not items or len(items) < page_size:
            break
        page += 1

    logger.debug(f"Fetched {len(records)} records from {collection} (filter={filter_expr})")
    return records


def get_first(
    session: requests.Session,
    collection: str,
    filter_expr: str,
) -> Optional[Dict[str, Any]]:
    result = get_list(session, collection, page=1, per_page=1, filter_expr=filter_expr, skip_total=True)
    items = result.get("items", []) if result else []
    return items[0] if items else None


def get_one(session: requests.Session, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
    """Record by id, None when it does not exist."""
    try:
        return request(session, "GET", records_path(collection, record_id))
    except PocketBaseError as e:
        if e.status == 404:
            return None
        raise


def create_record(session: requests.Session, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return request(session, "POST", records_path(collection), json_body=data)


def update_record(
    session: requests.Session,
    collection: str,
    record_id: str,
    data: Dict[str, Any],
) -> Dict[str, Any]:
    return request(session, "PATCH", records_path(collection, record_id), json_body=data)


def delete_record(session: requests.Session, collection: str, record_id: str) -> None:
    request(session, "DELETE", records_path(collection, record_id))


# ============================================================================
# Error Policy Helpers
# ============================================================================

def safe_api_call(func: Callable[..., Any], *args, **kwargs) -> Any:
    """
    Call an API function, logging failures instead of raising.

    Returns:
        The function result, or None if the call failed after retries
    """
    try:
        return func(*args, **kwargs)
    except (PocketBaseError, requests.RequestException) as e:
        logger.error(f"API call {getattr(func, '__name__', func)} failed: {e}")
        return None
