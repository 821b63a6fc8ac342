"""Content-addressed store used by sandbox sync.

``ContentStore`` is the collaborator contract. ``IPFSContentStore`` implements
it against a Kubo (go-ipfs) HTTP RPC endpoint.
"""

from pathlib import Path
from typing import Any, Protocol

import httpx
import structlog

from ..config.settings import get_settings
from ..exceptions import ContentStoreError

logger = structlog.get_logger()


class ContentStore(Protocol):
    """Interface of a content-addressed blob store."""

    async def add(self, path: Path) -> str:
        """Store a file and return its content id."""
        ...

    async def add_content(self, data: bytes, name: str | None = None) -> str:
        """Store raw bytes and return their content id."""
        ...

    async def get(self, content_id: str, output_path: Path) -> None:
        """Fetch content by id and write it to ``output_path``."""
        ...

    async def pin(self, content_id: str) -> None:
        """Pin content so it survives garbage collection."""
        ...

    async def close(self) -> None:
        """Release any connections held by the store."""
        ...


class IPFSContentStore:
    """Content store backed by the IPFS HTTP RPC API."""

    def __init__(
        self,
        api_url: str | None = None,
        timeout_seconds: int | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize IPFS client.

        Args:
            api_url: RPC endpoint, e.g. http://127.0.0.1:5001
            timeout_seconds: Request timeout
            client: Preconfigured HTTP client (tests inject a mock transport)
        """
        settings = get_settings()
        self.api_url = (api_url or settings.ipfs_api_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.ipfs_timeout_seconds
        self._client = client
        self.logger = logger.bind(component="ipfs_content_store")

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client, created on first use and again after ``close()``."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self.api_url, timeout=self.timeout_seconds)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()

    async def _post(self, endpoint: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.post(f"/api/v0/{endpoint}", **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ContentStoreError(
                f"IPFS {endpoint} failed: {e.response.status_code} - {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise ContentStoreError(f"IPFS {endpoint} failed: {e}") from e
        return response

    async def add(self, path: Path) -> str:
        """Store a file and return its content id."""
        return await self.add_content(Path(path).read_bytes(), Path(path).name)

    async def add_content(self, data: bytes, name: str | None = None) -> str:
        """Store raw bytes and return their content id."""
        response = await self._post(
            "add",
            params={"pin": "false", "cid-version": "1"},
            files={"file": (name or "content", data)},
        )
        content_id = response.json().get("Hash")
        if not content_id:
            raise ContentStoreError("IPFS add returned no content id")
        self.logger.debug("ipfs_content_added", content_id=content_id, size_bytes=len(data))
        return content_id

    async def get(self, content_id: str, output_path: Path) -> None:
        """Fetch content by id and write it to ``output_path``."""
        response = await self._post("cat", params={"arg": content_id})
        Path(output_path).write_bytes(response.content)

    async def pin(self, content_id: str) -> None:
        """Pin content so it survives garbage collection."""
        await self._post("pin/add", params={"arg": content_id})
        self.logger.info("ipfs_content_pinned", content_id=content_id)
