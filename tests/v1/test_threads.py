# mypy: ignore-errors
# tests/v1/test_threads.py
"""Tests for thread endpoints."""

from fastapi import status


def _post(client, headers, text="Hello world", community_id=None):
    payload = {"text": text}
    if community_id is not None:
        payload["community_id"] = community_id
    return client.post("/api/v1/threads/", json=payload, headers=headers)


def test_create_thread(client, test_user, auth_token) -> None:
    """Test creating a personal thread."""
    response = _post(client, auth_token)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["text"] == "Hello world"
    assert data["author"]["id"] == test_user.external_id
    assert data["community"] is None
    assert data["parent_id"] is None


def test_create_thread_empty_text(client, auth_token) -> None:
    response = _post(client, auth_token, text="")
    assert response.status_code == 422


def test_list_threads(client, auth_token) -> None:
    for text in ("one", "two", "three"):
        _post(client, auth_token, text=text)

    response = client.get("/api/v1/threads/", params={"page_size": 2})

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert [p["text"] for p in data["posts"]] == ["three", "two"]
    assert data["is_next"] is True


def test_get_thread_with_comments(client, auth_token, other_auth_token, other_user) -> None:
    thread_id = _post(client, auth_token).json()["id"]
    response = client.post(
        f"/api/v1/threads/{thread_id}/comments",
        json={"text": "Nice post"},
        headers=other_auth_token,
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["parent_id"] == thread_id

    data = client.get(f"/api/v1/threads/{thread_id}").json()
    assert [c["text"] for c in data["children"]] == ["Nice post"]
    assert data["children"][0]["author"]["id"] == other_user.external_id


def test_get_missing_thread(client) -> None:
    response = client.get("/api/v1/threads/123456")
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_like_thread(client, auth_token, other_auth_token) -> None:
    thread_id = _post(client, auth_token).json()["id"]

    response = client.post(f"/api/v1/threads/{thread_id}/like", headers=other_auth_token)

    assert response.json() == {"liked": True, "like_count": 1}


def test_delete_thread_author_only(client, auth_token, other_auth_token) -> None:
    thread_id = _post(client, auth_token).json()["id"]
    comment = client.post(
        f"/api/v1/threads/{thread_id}/comments",
        json={"text": "reply"},
        headers=other_auth_token,
    ).json()

    response = client.delete(f"/api/v1/threads/{thread_id}", headers=other_auth_token)
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(f"/api/v1/threads/{thread_id}", headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    assert sorted(response.json()["deleted"]) == sorted([thread_id, comment["id"]])
    assert client.get(f"/api/v1/threads/{comment['id']}").status_code == status.HTTP_404_NOT_FOUND
