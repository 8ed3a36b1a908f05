"""Integration tests for repository and documentation routes."""

from fastapi.testclient import TestClient

HEADERS = {"X-User-Id": "user_repos"}


def _repo(github_id: int, name: str, language: str) -> dict:
    return {
        "id": github_id,
        "name": name,
        "full_name": f"acme/{name}",
        "owner": {"login": "acme"},
        "html_url": f"https://github.com/acme/{name}",
        "language": language,
        "stargazers_count": 3,
    }


def test_generate_rules_saves_repos_and_creates_rule(client: TestClient) -> None:
    """Test POST /repositories/generate indexes documents and stores a rule."""
    payload = {
        "repositories": [_repo(101, "api", "Python"), _repo(102, "web", "TypeScript")],
        "documents": [{"path": "acme/api/README.md", "content": "Use FastAPI dependencies."}],
    }

    response = client.post("/repositories/generate", json=payload, headers=HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["synthesis_source"] == "rag"
    assert data["indexing"]["indexed"] == 1
    assert data["rule"]["name"] == "Generated Rules from Repositories"
    assert {r["full_name"] for r in data["repositories"]} == {"acme/api", "acme/web"}

    rules = client.get("/rules", headers=HEADERS).json()["rules"]
    assert [r["id"] for r in rules] == [data["rule"]["id"]]


def test_generate_rules_rejects_empty_selection(client: TestClient) -> None:
    """Test an empty selection is a 400."""
    response = client.post("/repositories/generate", json={"repositories": []}, headers=HEADERS)

    assert response.status_code == 400


def test_list_repositories_marks_previous_selection_inactive(client: TestClient) -> None:
    """Test only the latest selection stays active."""
    client.post(
        "/repositories/generate", json={"repositories": [_repo(1, "old", "Go")]}, headers=HEADERS
    )
    client.post(
        "/repositories/generate", json={"repositories": [_repo(2, "new", "Go")]}, headers=HEADERS
    )

    response = client.get("/repositories", headers=HEADERS)

    assert response.status_code == 200
    repos = response.json()["repositories"]
    assert [(r["name"], r["is_active"]) for r in repos] == [("new", True), ("old", False)]


def test_index_docs_returns_tally(client: TestClient) -> None:
    """Test POST /docs/index reports indexed chunks and logs."""
    payload = {
        "documents": [
            {"path": "guide.md", "content": "a" * 2500},
            {"path": "empty.md", "content": ""},
        ]
    }

    response = client.post("/docs/index", json=payload, headers=HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["indexed"] == 3
    assert data["failed"] == 1
    assert data["logs"][0]["message"] == "Starting indexing for 2 files"


def test_index_docs_requires_documents(client: TestClient) -> None:
    """Test an empty document list is a 400."""
    response = client.post("/docs/index", json={"documents": []}, headers=HEADERS)

    assert response.status_code == 400


def test_same_repository_selected_by_two_users(client: TestClient) -> None:
    """Test each user sees their own copy of a shared GitHub repository."""
    other = {"X-User-Id": "user_repos_other"}
    client.post(
        "/repositories/generate", json={"repositories": [_repo(5, "api", "Go")]}, headers=HEADERS
    )
    response = client.post(
        "/repositories/generate", json={"repositories": [_repo(5, "api", "Go")]}, headers=other
    )
    assert response.status_code == 200

    mine = client.get("/repositories", headers=HEADERS).json()["repositories"]
    theirs = client.get("/repositories", headers=other).json()["repositories"]

    assert [r["full_name"] for r in mine] == ["acme/api"]
    assert [r["full_name"] for r in theirs] == ["acme/api"]
    assert mine[0]["id"] != theirs[0]["id"]


def test_active_repository(client: TestClient) -> None:
    """Test the active repository follows the latest selection."""
    empty = client.get("/repositories/active", headers=HEADERS)
    assert empty.status_code == 200
    assert empty.json()["repository"] is None

    client.post(
        "/repositories/generate", json={"repositories": [_repo(1, "old", "Go")]}, headers=HEADERS
    )
    client.post(
        "/repositories/generate", json={"repositories": [_repo(2, "new", "Go")]}, headers=HEADERS
    )

    active = client.get("/repositories/active", headers=HEADERS).json()["repository"]
    assert active["full_name"] == "acme/new"
    assert active["is_active"] is True
