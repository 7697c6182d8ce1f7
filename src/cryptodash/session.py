"""Client-side login state and calls to the auth backend.

The session is just the ``user`` slot in local storage: present means logged
in. It carries no token and never expires.
"""

import json
import logging

import httpx
import structlog

from cryptodash.storage import Storage

logging.basicConfig(level=logging.INFO)
logger = structlog.get_logger()

USER_SLOT = "user"
UNREACHABLE = "Could not reach the auth backend"


def get_user(storage: Storage) -> dict | None:
    raw = storage.get_item(USER_SLOT)
    if raw is None:
        return None
    try:
        user = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding malformed user slot")
        return None
    if not isinstance(user, dict) or not user.get("username"):
        return None
    return user


def logout(storage: Storage) -> None:
    storage.remove_item(USER_SLOT)


def _message(response: httpx.Response) -> str:
    try:
        return response.json().get("message", response.reason_phrase)
    except (json.JSONDecodeError, AttributeError):
        return response.reason_phrase


def signup(
    http: httpx.Client, username: str, email: str, password: str
) -> tuple[bool, str]:
    """Register with the backend. Returns (ok, server message)."""
    logger.info("Signing up", username=username)
    try:
        response = http.post(
            "/signup", json={"username": username, "email": email, "password": password}
        )
    except httpx.HTTPError as e:
        logger.error("Auth backend unreachable", action="signup", error=str(e))
        return False, UNREACHABLE
    return response.status_code == 201, _message(response)


def login(
    http: httpx.Client, storage: Storage, email: str, password: str
) -> tuple[bool, str]:
    """
    Log in against the backend and remember the user locally.

    Args:
        http: Client pointed at the auth backend
        storage: Where the ``user`` slot lives
        email: Account email
        password: Account password (sent once, never stored)

    Returns:
        (ok, server message)
    """
    logger.info("Logging in")
    try:
        response = http.post("/login", json={"email": email, "password": password})
    except httpx.HTTPError as e:
        logger.error("Auth backend unreachable", action="login", error=str(e))
        return False, UNREACHABLE
    if response.status_code != 200:
        return False, _message(response)

    user = response.json().get("user") or {}
    storage.set_item(USER_SLOT, json.dumps({"username": user.get("username")}))
    return True, _message(response)
