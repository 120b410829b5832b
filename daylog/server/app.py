"""
FastAPI application in front of the line store.

Routes:
    POST   /write   - append one JSON log record to today's partition
    GET    /read    - page through a partition (HTTP Basic auth if configured)
    DELETE /delete  - remove one line from a partition
    GET    /apikey  - return the stored API key
    POST   /apikey  - replace the stored API key

The store is passed in explicitly so every app instance (and every test)
works against its own data directory.
"""

import json
import secrets
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from daylog.core.store import (
    EncodingError,
    LineOutOfRangeError,
    LineStore,
    OperationTimeoutError,
    PartitionNotFoundError,
)
from daylog.core.store.naming import today_utc
from daylog.server.apikey import ApiKeyStore
from daylog.utils.config import Config
from daylog.utils.logging import get_logger

logger = get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d"


class ServerConfig:
    """
    Settings for the HTTP layer.

    Attributes:
        auth_user: Basic auth user for /read ("" disables auth)
        auth_pass: Basic auth password for /read
        max_body_bytes: Largest accepted /write body
        default_page_size: Page size used when the query gives none or <= 0
        api_key_file: JSON file backing /apikey
    """

    def __init__(
        self,
        auth_user: str = "",
        auth_pass: str = "",
        max_body_bytes: int = 1048576,
        default_page_size: int = 100,
        api_key_file: str = "config.json",
    ):
        self.auth_user = auth_user
        self.auth_pass = auth_pass
        self.max_body_bytes = max_body_bytes
        self.default_page_size = default_page_size
        self.api_key_file = api_key_file

    @property
    def auth_enabled(self) -> bool:
        return bool(self.auth_user or self.auth_pass)

    @classmethod
    def from_config(cls, config: Config) -> "ServerConfig":
        return cls(
            auth_user=config.get("server.auth_user", ""),
            auth_pass=config.get("server.auth_pass", ""),
            max_body_bytes=config.get("server.max_body_bytes", 1048576),
            default_page_size=config.get("store.default_page_size", 100),
            api_key_file=config.get("server.api_key_file", "config.json"),
        )


def parse_int(value: Optional[str], default: int) -> int:
    """Parse a query integer, falling back to the default when absent or invalid."""
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def parse_date(value: Optional[str]) -> date:
    """
    Parse a YYYY-MM-DD query date, defaulting to today (UTC).

    Raises:
        HTTPException: 400 for an invalid date
    """
    if not value:
        return today_utc()
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date, expected YYYY-MM-DD")


async def read_limited_body(request: Request, limit: int) -> bytes:
    """
    Read a request body, refusing it as soon as it passes the limit.

    A declared Content-Length over the limit is rejected before any of the
    body is read; otherwise the stream is counted chunk by chunk.

    Raises:
        HTTPException: 413 if the body is larger than limit bytes
    """
    too_large = HTTPException(status_code=413, detail="Request body too large")

    if parse_int(request.headers.get("content-length"), 0) > limit:
        raise too_large

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise too_large
    return bytes(body)


def _log_request_error(request: Request, message: str, error: Exception) -> None:
    logger.error(
        message,
        error=str(error),
        method=request.method,
        path=request.url.path,
    )


def create_app(store: LineStore, config: Optional[ServerConfig] = None) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        store: Line store serving every route
        config: HTTP settings (defaults if None)

    Returns:
        Configured FastAPI app
    """
    config = config or ServerConfig()
    api_keys = ApiKeyStore(Path(config.api_key_file))
    basic = HTTPBasic(realm="Restricted", auto_error=False)

    app = FastAPI(title="daylog", docs_url=None, redoc_url=None)
    app.state.store = store
    app.state.config = config
    app.state.api_keys = api_keys

    async def require_read_access(request: Request) -> None:
        # Credentials are only parsed when auth is on; with auth off any
        # Authorization header, even a malformed one, is ignored.
        if not config.auth_enabled:
            return

        credentials: Optional[HTTPBasicCredentials] = await basic(request)
        valid = credentials is not None and (
            secrets.compare_digest(credentials.username.encode(), config.auth_user.encode())
            & secrets.compare_digest(credentials.password.encode(), config.auth_pass.encode())
        )
        if not valid:
            raise HTTPException(
                status_code=401,
                detail="Unauthorized",
                headers={"WWW-Authenticate": 'Basic realm="Restricted"'},
            )

    @app.post("/write")
    async def write(request: Request):
        body = await read_limited_body(request, config.max_body_bytes)

        try:
            record = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise HTTPException(status_code=400, detail=f"Invalid JSON: {e}")

        if not isinstance(record, dict):
            raise HTTPException(status_code=400, detail="Log entry must be a JSON object")

        try:
            await run_in_threadpool(store.append_record, record)
        except EncodingError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except OperationTimeoutError as e:
            _log_request_error(request, "Write timed out", e)
            raise HTTPException(status_code=503, detail="Store busy")
        except OSError as e:
            _log_request_error(request, "Failed to write log entry", e)
            raise HTTPException(status_code=500, detail="Failed to write log entry")

        return {"status": "success"}

    @app.get("/read", dependencies=[Depends(require_read_access)])
    def read(
        request: Request,
        date_str: Optional[str] = Query(None, alias="date"),
        page: Optional[str] = None,
        page_size: Optional[str] = None,
    ):
        day = parse_date(date_str)
        page_num = max(parse_int(page, 1), 1)
        size = parse_int(page_size, config.default_page_size)
        if size <= 0:
            size = config.default_page_size

        try:
            result = store.scan_page(day, page_num, size)
        except OperationTimeoutError as e:
            _log_request_error(request, "Read timed out", e)
            raise HTTPException(status_code=503, detail="Store busy")
        except OSError as e:
            _log_request_error(request, "Failed to read partition", e)
            raise HTTPException(status_code=500, detail="Internal Server Error")

        return {
            "date": day.strftime(DATE_FORMAT),
            "page": page_num,
            "page_size": size,
            "total": result.scanned_lines,
            "has_next": result.has_next,
            "has_more": result.has_more,
            "entries": result.records,
        }

    @app.delete("/delete")
    def delete(
        request: Request,
        date_str: Optional[str] = Query(None, alias="date"),
        line: Optional[str] = None,
    ):
        day = parse_date(date_str)
        line_number = parse_int(line, 0)
        if line_number < 1:
            raise HTTPException(status_code=400, detail="Invalid line number")

        try:
            store.delete_line(day, line_number)
        except PartitionNotFoundError:
            raise HTTPException(status_code=404, detail="Partition not found")
        except LineOutOfRangeError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except OperationTimeoutError as e:
            _log_request_error(request, "Delete timed out", e)
            raise HTTPException(status_code=503, detail="Store busy")
        except OSError as e:
            _log_request_error(request, "Failed to delete line", e)
            raise HTTPException(status_code=500, detail="Internal Error")

        return {"status": "success"}

    @app.get("/apikey")
    def get_api_key():
        return {"api_key": api_keys.load()}

    @app.post("/apikey")
    async def save_api_key(request: Request):
        try:
            payload = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise HTTPException(status_code=400, detail="Invalid JSON")

        if not isinstance(payload, dict) or "api_key" not in payload:
            raise HTTPException(status_code=400, detail="Missing api_key field")

        try:
            await run_in_threadpool(api_keys.save, str(payload["api_key"]))
        except OSError as e:
            _log_request_error(request, "Failed to save API key", e)
            raise HTTPException(status_code=500, detail="Failed to save API key")

        return {"status": "ok"}

    logger.info(
        "Created HTTP app",
        data_dir=str(store.directory),
        auth_enabled=config.auth_enabled,
    )

    return app
