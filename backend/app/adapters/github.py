"""GitHub adapter - fetch markdown documentation from a repository."""

import base64
import binascii
import logging
from urllib.parse import quote

import httpx

from backend.app.config import settings
from backend.app.errors import RemoteServiceError
from backend.app.models.docs import DocumentFile

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
MARKDOWN_SUFFIXES = (".md", ".mdc")
EXCLUDED_DIRS = frozenset({"node_modules", ".next", ".git"})


def is_markdown_path(path: str) -> bool:
    """True for .md/.mdc files outside vendored and build directories."""
    if not path.endswith(MARKDOWN_SUFFIXES):
        return False
    return not any(part in EXCLUDED_DIRS for part in path.split("/")[:-1])


async def _get_json(client: httpx.AsyncClient, url: str, headers: dict[str, str]) -> dict:
    try:
        response = await client.get(url, headers=headers)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        raise RemoteServiceError("github", f"HTTP {e.response.status_code} for {url}") from e
    except httpx.HTTPError as e:
        raise RemoteServiceError("github", f"{type(e).__name__} for {url}") from e
    except ValueError as e:
        raise RemoteServiceError("github", f"Invalid JSON body for {url}") from e

    if not isinstance(data, dict):
        raise RemoteServiceError("github", f"Expected a JSON object for {url}")
    return data


async def fetch_markdown_files(
    owner: str,
    repo: str,
    token: str,
    client: httpx.AsyncClient | None = None,
    base_url: str = GITHUB_API_URL,
) -> list[DocumentFile]:
    """Fetch every markdown file on a repository's default branch.

    Args:
        owner: Repository owner login
        repo: Repository name
        token: GitHub OAuth access token
        client: Optional httpx client (for testing with mocks)
        base_url: GitHub API base URL

    Returns:
        DocumentFile list; paths are prefixed with "owner/repo/"

    Raises:
        RemoteServiceError: If the repository or its tree cannot be read.
            Individual file failures are logged and skipped.
    """
    headers = {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github.v3+json",
    }
    repo_url = f"{base_url}/repos/{owner}/{repo}"

    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=settings.remote_timeout_seconds)
        close_client = True

    try:
        repo_data = await _get_json(client, repo_url, headers)
        default_branch = repo_data.get("default_branch") or "main"

        tree_data = await _get_json(
            client, f"{repo_url}/git/trees/{quote(default_branch, safe='')}?recursive=1", headers
        )
        if tree_data.get("truncated"):
            logger.warning(f"Tree was truncated for {owner}/{repo}; some files may be missing")

        markdown_paths = [
            entry["path"]
            for entry in tree_data.get("tree") or []
            if entry.get("type") == "blob" and is_markdown_path(entry.get("path", ""))
        ]
        logger.info(f"Found {len(markdown_paths)} markdown files in {owner}/{repo}")

        files: list[DocumentFile] = []
        for path in markdown_paths:
            try:
                content_data = await _get_json(
                    client, f"{repo_url}/contents/{quote(path)}", headers
                )
            except RemoteServiceError as e:
                logger.warning(f"Failed to fetch {path}: {e}")
                continue

            if content_data.get("encoding") != "base64" or not content_data.get("content"):
                logger.warning(
                    f"File {path} has unexpected encoding: {content_data.get('encoding')}"
                )
                continue

            try:
                content = base64.b64decode(content_data["content"]).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                logger.warning(f"Failed to decode {path}: {type(e).__name__}")
                continue

            files.append(
                DocumentFile(
                    path=f"{owner}/{repo}/{path}",
                    content=content,
                    size=content_data.get("size") or 0,
                )
            )

        logger.info(f"Fetched {len(files)} of {len(markdown_paths)} markdown files")
        return files
    finally:
        if close_client:
            await client.aclose()
