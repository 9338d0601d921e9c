# src/schengen_agent/connectors/matrix_client.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)

SESSION_FILE_NAME = "session.json"
_SESSION_KEYS = ("access_token", "user_id", "device_id")


def read_session(path: Path) -> dict[str, str] | None:
    """Saved login of the push account, or None if the file is missing or incomplete."""
    if not path.exists():
        return None
    try:
        raw = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Unreadable Matrix session file %s: %r", path, e)
        return None
    if not isinstance(raw, dict) or not all(raw.get(k) for k in _SESSION_KEYS):
        logger.warning("Matrix session file %s is incomplete; ignoring it.", path)
        return None
    return {k: str(raw[k]) for k in _SESSION_KEYS}


def write_session(path: Path, resp: LoginResponse) -> None:
    """Persist the access token next to the store; the file stays owner-readable only."""
    tmp = path.with_suffix(".tmp")
    tmp.write_text(
        json.dumps({"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id}),
        "utf-8",
    )
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        os.chmod(path, 0o600)


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Build the client that posts slot alerts into the notification room.

    Reuses the saved session when there is one; otherwise logs in once with
    SCHENGEN_MATRIX_PASSWORD and saves the session. Returns None when Matrix
    is not usable, the agent then runs with console notifications only.
    """
    homeserver = (settings.matrix_homeserver or "").strip()
    user_id = (settings.matrix_user_id or "").strip()
    if not homeserver or not user_id:
        logger.error("Matrix push needs SCHENGEN_MATRIX_HOMESERVER and SCHENGEN_MATRIX_USER_ID.")
        return None

    store_dir = Path(settings.matrix_store_path)
    store_dir.mkdir(parents=True, exist_ok=True)
    session_path = store_dir / SESSION_FILE_NAME

    # Alerts are plain text to a room: no sync loop and no E2EE store.
    client = AsyncClient(
        homeserver,
        user_id,
        store_path=str(store_dir),
        config=AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False),
    )

    session = read_session(session_path)
    if session is not None:
        client.access_token = session["access_token"]
        client.user_id = session["user_id"]
        client.device_id = session["device_id"]
        logger.info("Matrix session restored for %s.", client.user_id)
        return client

    password = (settings.matrix_password or "").strip()
    if not password:
        logger.error("No saved Matrix session; set SCHENGEN_MATRIX_PASSWORD once to log in.")
        await client.close()
        return None

    resp = await client.login(password=password, device_name=f"{settings.app_name} alerts")
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login as %s failed: %r", user_id, resp)
        await client.close()
        return None

    try:
        write_session(session_path, resp)
    except OSError as e:
        # Still usable for this run; the next start logs in again.
        logger.warning("Could not save Matrix session to %s: %r", session_path, e)
    logger.info("Logged in to Matrix as %s (device %s).", resp.user_id, resp.device_id)
    return client
