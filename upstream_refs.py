import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 10.0
REFS_SUFFIX = '.git/info/refs?service=git-upload-pack'
NOT_FOUND_STATUSES = (401, 404)


class RepositoryNotFound(LookupError):
    def __init__(self, repo_url: str):
        super().__init__(f"repository not found at {repo_url}")
        self.repo_url = repo_url


class UpstreamError(Exception):
    pass


class RefsFetcher:
    """Fetches the upload-pack reference advertisement of a repository."""

    def __init__(self, timeout: float = DEFAULT_FETCH_TIMEOUT, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    async def fetch(self, repo_root: str) -> bytes:
        """Fetch the advertisement of `repo_root` (host and path, no scheme) over https."""
        repo_url = f'https://{repo_root}'
        refs_url = repo_url + REFS_SUFFIX
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport, follow_redirects=True) as client:
            try:
                response = await client.get(refs_url)
            except httpx.HTTPError as e:
                logger.warning("Fetching %s failed: %r", refs_url, e)
                raise UpstreamError(f"cannot talk to git repository: {e!r}") from e

        if response.status_code in NOT_FOUND_STATUSES:
            raise RepositoryNotFound(repo_url)
        if response.status_code != 200:
            logger.warning("Fetching %s returned %s", refs_url, response.status_code)
            raise UpstreamError(f"error from git repository: {response.status_code} {response.reason_phrase}")
        return response.content
