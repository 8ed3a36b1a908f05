"""Tests for the GitHub markdown adapter."""

import base64

import httpx
import pytest

from backend.app.adapters.github import fetch_markdown_files, is_markdown_path
from backend.app.errors import RemoteServiceError


def _encoded(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("README.md", True),
        ("docs/guide.mdc", True),
        (".github/CONTRIBUTING.md", True),
        ("node_modules/pkg/README.md", False),
        ("app/.next/cache/notes.md", False),
        (".git/description.md", False),
        ("src/main.py", False),
        ("README.markdown", False),
    ],
)
def test_is_markdown_path(path: str, expected: bool) -> None:
    """Markdown suffixes are kept unless under an excluded directory."""
    assert is_markdown_path(path) is expected


@pytest.mark.asyncio
async def test_fetch_markdown_files_walks_tree_and_decodes() -> None:
    """Test that the adapter lists the tree and decodes base64 contents."""
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        assert request.headers["Authorization"] == "Bearer gho_test"

        if request.url.path == "/repos/acme/api":
            return httpx.Response(200, json={"default_branch": "trunk"})
        if request.url.path == "/repos/acme/api/git/trees/trunk":
            assert request.url.params["recursive"] == "1"
            return httpx.Response(
                200,
                json={
                    "tree": [
                        {"path": "README.md", "type": "blob"},
                        {"path": "docs", "type": "tree"},
                        {"path": "docs/style.md", "type": "blob"},
                        {"path": "node_modules/x/README.md", "type": "blob"},
                        {"path": "main.py", "type": "blob"},
                    ]
                },
            )
        if request.url.path == "/repos/acme/api/contents/README.md":
            return httpx.Response(
                200, json={"encoding": "base64", "content": _encoded("# API"), "size": 5}
            )
        if request.url.path == "/repos/acme/api/contents/docs/style.md":
            return httpx.Response(500, json={"message": "boom"})
        return httpx.Response(404)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    files = await fetch_markdown_files(
        "acme", "api", "gho_test", client=client, base_url="https://github.test"
    )

    assert [(f.path, f.content, f.size) for f in files] == [("acme/api/README.md", "# API", 5)]
    assert "/repos/acme/api/contents/node_modules/x/README.md" not in requested
    assert "/repos/acme/api/contents/docs/style.md" in requested

    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_markdown_files_raises_when_repo_unreadable() -> None:
    """Failure to read the repository itself is a remote service error."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Not Found"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteServiceError) as exc_info:
        await fetch_markdown_files("acme", "gone", "t", client=client, base_url="https://github.test")

    assert exc_info.value.service == "github"
    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_markdown_files_rejects_malformed_bodies() -> None:
    """Non-JSON or non-object 2xx bodies become remote service errors."""

    def html_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    def list_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "an", "object"])

    for handler in (html_handler, list_handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        with pytest.raises(RemoteServiceError) as exc_info:
            await fetch_markdown_files(
                "acme", "api", "t", client=client, base_url="https://github.test"
            )

        assert exc_info.value.service == "github"
        await client.aclose()
