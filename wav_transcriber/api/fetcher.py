"""Streaming download of transcription result documents.

WHY: Transcribe publishes each finished transcript as a JSON document behind
a time-limited HTTPS URL. The orchestrator downloads it to a scratch file
before parsing, so large results never have to be held in one response
buffer.

HOW: Uses httpx.AsyncClient. The ArtifactFetcher is an async context
manager, like the provider clients: enter it to open the connection pool,
exit to close it. fetch() streams the response body to the destination
path chunk by chunk; file I/O runs in worker threads via
asyncio.to_thread.

RULES:
- The destination is fully written and closed before fetch() returns
- Non-2xx responses and transport errors raise ArtifactFetchError
- A partially written file is left in place; the caller deletes it
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx


class ArtifactFetchError(Exception):
    """Raised when a result document cannot be downloaded.

    RULES:
    - status_code is None for transport errors (DNS, timeout, reset)
    """

    def __init__(self, uri: str, message: str, status_code: int | None = None) -> None:
        self.uri = uri
        self.status_code = status_code
        self.message = message
        super().__init__(f"Failed to fetch result document: {message}")


class ArtifactFetcher:
    """Async HTTP downloader for provider-supplied result URIs.

    RULES:
    - Use as: async with ArtifactFetcher() as fetcher: ...
    - client, when given, is used as-is and is not closed on exit
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    async def __aenter__(self) -> ArtifactFetcher:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=30.0),
                follow_redirects=True,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "ArtifactFetcher must be used as an async context manager: "
                "async with ArtifactFetcher() as fetcher: ..."
            )
        return self._client

    async def fetch(self, uri: str, destination: Path) -> Path:
        """Stream the document at uri into destination and return the path."""
        client = self._ensure_client()
        destination = Path(destination)

        try:
            async with client.stream("GET", uri) as resp:
                if resp.status_code != 200:
                    raise ArtifactFetchError(
                        uri,
                        "HTTP {} from result URI".format(resp.status_code),
                        status_code=resp.status_code,
                    )
                f = await asyncio.to_thread(open, destination, "wb")
                try:
                    async for chunk in resp.aiter_bytes():
                        await asyncio.to_thread(f.write, chunk)
                finally:
                    await asyncio.to_thread(f.close)
        except httpx.HTTPError as exc:
            raise ArtifactFetchError(uri, str(exc) or type(exc).__name__) from exc
        except OSError as exc:
            raise ArtifactFetchError(
                uri, "cannot write {}: {}".format(destination, exc)
            ) from exc

        return destination
