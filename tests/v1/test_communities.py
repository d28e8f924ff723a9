# mypy: ignore-errors
# tests/v1/test_communities.py
"""Tests for community, membership and join-request endpoints."""

from fastapi import status

from community_stage.models import Role


def _member_id(client, headers, community_id: int, username: str) -> int:
    response = client.get(f"/api/v1/communities/{community_id}/members", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    return next(m["id"] for m in response.json()["items"] if m["username"] == username)


def test_create_community(client, admin_token) -> None:
    response = client.post(
        "/api/v1/communities",
        json={"name": "New Test Community", "description": "A new test community"},
        headers=admin_token,
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["name"] == "New Test Community"
    assert data["visibility"] == "PUBLIC"


def test_create_community_requires_auth(client) -> None:
    response = client.post("/api/v1/communities", json={"name": "Anonymous"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"]["code"] == "NotAuthenticated"


def test_create_duplicate_community(client, community, auth_token) -> None:
    response = client.post(
        "/api/v1/communities",
        json={"name": community.name.lower()},
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"]["code"] == "NameTaken"


def test_create_community_name_too_long(client, admin_token) -> None:
    response = client.post("/api/v1/communities", json={"name": "n" * 51}, headers=admin_token)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_get_community(client, community, auth_token) -> None:
    response = client.get(f"/api/v1/communities/{community.id}", headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["id"] == community.id
    assert data["member_count"] == 1
    assert data["viewer_role"] is None


def test_get_nonexistent_community(client, auth_token) -> None:
    response = client.get("/api/v1/communities/99999", headers=auth_token)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_private_community_is_hidden(client, private_community, auth_token) -> None:
    response = client.get(f"/api/v1/communities/{private_community.id}", headers=auth_token)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_join_and_leave_community(client, community, auth_token) -> None:
    response = client.post(f"/api/v1/communities/{community.id}/join", headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "joined"

    again = client.post(f"/api/v1/communities/{community.id}/join", headers=auth_token)
    assert again.status_code == status.HTTP_409_CONFLICT
    assert again.json()["detail"]["code"] == "AlreadyMember"

    status_response = client.get(
        f"/api/v1/communities/{community.id}/membership", headers=auth_token
    )
    assert status_response.json()["role"] == Role.USER.value

    left = client.delete(f"/api/v1/communities/{community.id}/leave", headers=auth_token)
    assert left.status_code == status.HTTP_200_OK


def test_last_admin_cannot_leave(client, community, admin_token) -> None:
    response = client.delete(f"/api/v1/communities/{community.id}/leave", headers=admin_token)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"]["code"] == "LastAdminCannotLeave"


def test_private_join_request_flow(client, private_community, test_user, auth_token, admin_token) -> None:
    joined = client.post(f"/api/v1/communities/{private_community.id}/join", headers=auth_token)
    assert joined.json()["status"] == "requested"
    request_id = joined.json()["request_id"]

    listing = client.get(f"/api/v1/communities/{private_community.id}/requests", headers=admin_token)
    assert [item["id"] for item in listing.json()["items"]] == [request_id]

    accepted = client.post(
        f"/api/v1/communities/{private_community.id}/requests/{request_id}",
        json={"action": "accept"},
        headers=admin_token,
    )
    assert accepted.status_code == status.HTTP_200_OK
    assert accepted.json()["status"] == "ACCEPTED"

    repeat = client.post(
        f"/api/v1/communities/{private_community.id}/requests/{request_id}",
        json={"action": "reject"},
        headers=admin_token,
    )
    assert repeat.status_code == status.HTTP_409_CONFLICT
    assert repeat.json()["detail"]["code"] == "AlreadyProcessed"

    detail = client.get(f"/api/v1/communities/{private_community.id}", headers=auth_token)
    assert detail.status_code == status.HTTP_200_OK
    assert detail.json()["viewer_role"] == "USER"


def test_cancel_join_request(client, private_community, auth_token) -> None:
    missing = client.delete(
        f"/api/v1/communities/{private_community.id}/requests/mine", headers=auth_token
    )
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["detail"]["code"] == "NoPendingRequest"

    client.post(f"/api/v1/communities/{private_community.id}/join", headers=auth_token)
    cancelled = client.delete(
        f"/api/v1/communities/{private_community.id}/requests/mine", headers=auth_token
    )
    assert cancelled.status_code == status.HTTP_200_OK


def test_invalid_action_is_rejected(client, private_community, auth_token, admin_token) -> None:
    request_id = client.post(
        f"/api/v1/communities/{private_community.id}/join", headers=auth_token
    ).json()["request_id"]
    response = client.post(
        f"/api/v1/communities/{private_community.id}/requests/{request_id}",
        json={"action": "maybe"},
        headers=admin_token,
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_role_change_and_removal(client, community, test_user, auth_token, admin_token, make_user, auth_headers) -> None:
    client.post(f"/api/v1/communities/{community.id}/join", headers=auth_token)
    member_id = _member_id(client, admin_token, community.id, test_user.username)

    promoted = client.patch(
        f"/api/v1/communities/{community.id}/members/{member_id}",
        json={"role": "MODERATOR"},
        headers=admin_token,
    )
    assert promoted.status_code == status.HTTP_200_OK
    assert promoted.json()["role"] == "MODERATOR"

    other = make_user("plain_member")
    client.post(f"/api/v1/communities/{community.id}/join", headers=auth_headers(other))
    other_id = _member_id(client, admin_token, community.id, other.username)
    admin_id = _member_id(client, admin_token, community.id, "ada_admin")

    forbidden = client.delete(
        f"/api/v1/communities/{community.id}/members/{admin_id}", headers=auth_token
    )
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN
    assert forbidden.json()["detail"]["code"] == "InsufficientRole"

    removed = client.delete(
        f"/api/v1/communities/{community.id}/members/{other_id}", headers=auth_token
    )
    assert removed.status_code == status.HTTP_200_OK


def test_demote_last_admin_conflict(client, community, admin_token) -> None:
    admin_id = _member_id(client, admin_token, community.id, "ada_admin")
    response = client.patch(
        f"/api/v1/communities/{community.id}/members/{admin_id}",
        json={"role": "USER"},
        headers=admin_token,
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"]["code"] == "LastAdminInvariant"


def test_update_and_delete_community(client, community, admin_token, auth_token) -> None:
    updated = client.patch(
        f"/api/v1/communities/{community.id}",
        json={"description": "Fresh"},
        headers=admin_token,
    )
    assert updated.status_code == status.HTTP_200_OK
    assert updated.json()["description"] == "Fresh"
    assert updated.json()["name"] == community.name

    denied = client.delete(f"/api/v1/communities/{community.id}", headers=auth_token)
    assert denied.status_code == status.HTTP_403_FORBIDDEN

    deleted = client.delete(f"/api/v1/communities/{community.id}", headers=admin_token)
    assert deleted.status_code == status.HTTP_204_NO_CONTENT
