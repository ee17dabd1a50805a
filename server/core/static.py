from __future__ import annotations

import asyncio
import logging
import mimetypes
from http import HTTPStatus
from pathlib import Path
from typing import Any, Optional, Union

from websockets.datastructures import Headers
from websockets.http11 import Response

logger = logging.getLogger(__name__)

INDEX_FILE = "index.html"


class StaticFiles:
    """Serves files below one directory for plain HTTP requests."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).resolve()

    @property
    def enabled(self) -> bool:
        return self.root.is_dir()

    def resolve(self, url_path: str) -> Optional[Path]:
        """Map a URL path to a file under root, or None."""
        relative = url_path.lstrip("/")
        candidate = (self.root / relative).resolve()
        if not candidate.is_relative_to(self.root):
            return None
        if candidate.is_dir():
            candidate = candidate / INDEX_FILE
        return candidate if candidate.is_file() else None

    async def respond(self, connection: Any, url_path: str) -> Response:
        path = self.resolve(url_path) if self.enabled else None
        if path is None:
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        body = await asyncio.to_thread(path.read_bytes)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        headers = Headers(
            [
                ("Content-Type", content_type),
                ("Content-Length", str(len(body))),
                ("Connection", "close"),
            ]
        )
        logger.debug("Serving %s", path)
        return Response(HTTPStatus.OK.value, HTTPStatus.OK.phrase, headers, body)


__all__ = ["StaticFiles", "INDEX_FILE"]
