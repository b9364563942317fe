# mypy: ignore-errors
# tests/services/test_community_service.py
"""Tests for the community membership state machine."""

import pytest
from sqlalchemy import func
from sqlalchemy.exc import OperationalError

from crypto_heaven.models import (
    CommunityAdmin,
    CommunityJoinRequest,
    CommunityMember,
    Message,
    MessageLike,
    Thread,
)
from crypto_heaven.services import (
    community_service,
    message_service,
    thread_service,
    user_service,
)
from crypto_heaven.services.errors import (
    ConflictError,
    NotFoundError,
    OperationFailedError,
    UnauthorizedError,
)
from crypto_heaven.services.permissions import CommunityRole


def _member_ids(db_session, community_id):
    details = community_service.fetch_community_details(db_session, community_id)
    return [member.id for member in details.members]


def _count(db_session, model, **filters):
    query = db_session.query(func.count()).select_from(model)
    for column, value in filters.items():
        query = query.filter(getattr(model, column) == value)
    return query.scalar()


def test_creator_is_first_admin_and_member(db_session, community, test_user) -> None:
    """The creator is listed as admin and as the first member."""
    details = community_service.fetch_community_details(db_session, "org_public")
    assert details.created_by.id == test_user.external_id
    assert details.admins == [test_user.external_id]
    assert [m.id for m in details.members] == [test_user.external_id]
    assert details.join_requests == []


def test_create_community_duplicate_username(db_session, community, other_user) -> None:
    """A taken username is rejected with a conflict."""
    with pytest.raises(ConflictError):
        community_service.create_community(
            db_session,
            community_id="org_other",
            name="Other",
            username="test_community",
            image=None,
            bio=None,
            created_by_id=other_user.external_id,
        )


def test_create_community_unknown_creator(db_session) -> None:
    """Creating a community for a missing user fails with NotFound."""
    with pytest.raises(NotFoundError):
        community_service.create_community(
            db_session,
            community_id="org_ghost",
            name="Ghost",
            username="ghost",
            image=None,
            bio=None,
            created_by_id="user_missing",
        )


def test_public_join_is_idempotent(db_session, community, test_user, other_user) -> None:
    """Joining twice leaves the user in the member list exactly once."""
    first = community_service.join_community(db_session, "org_public", other_user.external_id)
    second = community_service.join_community(db_session, "org_public", other_user.external_id)

    assert first == {"status": "joined"}
    assert second == {"status": "joined"}
    assert _member_ids(db_session, "org_public") == [
        test_user.external_id,
        other_user.external_id,
    ]
    profile = user_service.fetch_user(db_session, other_user.external_id)
    assert [c.id for c in profile.communities] == ["org_public"]


def test_private_join_queues_once(db_session, private_community, test_user, other_user) -> None:
    """Repeated private joins add a single pending request."""
    for _ in range(2):
        result = community_service.join_community(
            db_session, "org_private", other_user.external_id
        )
        assert result == {"status": "requested"}

    details = community_service.fetch_community_details(db_session, "org_private")
    assert details.join_requests == [other_user.external_id]
    assert [m.id for m in details.members] == [test_user.external_id]


def test_private_join_by_member_is_not_queued(db_session, private_community, test_user) -> None:
    """An existing member joining a private community is not queued."""
    result = community_service.join_community(db_session, "org_private", test_user.external_id)
    assert result == {"status": "joined"}
    details = community_service.fetch_community_details(db_session, "org_private")
    assert details.join_requests == []


def test_join_unknown_community(db_session, other_user) -> None:
    """Joining a missing community raises NotFound."""
    with pytest.raises(NotFoundError):
        community_service.join_community(db_session, "org_missing", other_user.external_id)


def test_approve_moves_exactly_one_user(
    db_session, private_community, test_user, other_user, third_user
) -> None:
    """Approval moves the approved user and leaves other requests alone."""
    community_service.join_community(db_session, "org_private", other_user.external_id)
    community_service.join_community(db_session, "org_private", third_user.external_id)

    result = community_service.approve_join_request(
        db_session, "org_private", other_user.external_id, test_user.external_id
    )

    assert result == {"status": "approved"}
    details = community_service.fetch_community_details(db_session, "org_private")
    assert details.join_requests == [third_user.external_id]
    assert [m.id for m in details.members] == [
        test_user.external_id,
        other_user.external_id,
    ]
    profile = user_service.fetch_user(db_session, other_user.external_id)
    assert [c.id for c in profile.communities] == ["org_private"]


def test_approve_by_non_admin_is_rejected(
    db_session, private_community, other_user, third_user
) -> None:
    """Only admins or the creator may approve requests."""
    community_service.join_community(db_session, "org_private", other_user.external_id)

    with pytest.raises(UnauthorizedError):
        community_service.approve_join_request(
            db_session, "org_private", other_user.external_id, third_user.external_id
        )

    details = community_service.fetch_community_details(db_session, "org_private")
    assert details.join_requests == [other_user.external_id]
    assert other_user.external_id not in [m.id for m in details.members]


def test_admin_can_approve(
    db_session, private_community, test_user, other_user, third_user
) -> None:
    """An admin appointed by the creator may approve requests."""
    community_service.add_community_admin(
        db_session, "org_private", other_user.external_id, test_user.external_id
    )
    community_service.join_community(db_session, "org_private", third_user.external_id)

    result = community_service.approve_join_request(
        db_session, "org_private", third_user.external_id, other_user.external_id
    )

    assert result == {"status": "approved"}
    assert third_user.external_id in _member_ids(db_session, "org_private")


def test_reject_drops_request_only(db_session, private_community, test_user, other_user) -> None:
    """Rejecting removes the request without touching members."""
    community_service.join_community(db_session, "org_private", other_user.external_id)

    result = community_service.reject_join_request(
        db_session, "org_private", other_user.external_id, test_user.external_id
    )

    assert result == {"status": "rejected"}
    details = community_service.fetch_community_details(db_session, "org_private")
    assert details.join_requests == []
    assert [m.id for m in details.members] == [test_user.external_id]


def test_reject_unknown_user_is_noop(db_session, private_community, test_user) -> None:
    result = community_service.reject_join_request(
        db_session, "org_private", "user_missing", test_user.external_id
    )
    assert result == {"status": "rejected"}


def test_only_creator_adds_admins(
    db_session, community, test_user, other_user, third_user
) -> None:
    """Admins cannot appoint further admins."""
    community_service.add_community_admin(
        db_session, "org_public", other_user.external_id, test_user.external_id
    )

    with pytest.raises(UnauthorizedError):
        community_service.add_community_admin(
            db_session, "org_public", third_user.external_id, other_user.external_id
        )

    again = community_service.add_community_admin(
        db_session, "org_public", other_user.external_id, test_user.external_id
    )
    assert again == {"status": "added"}
    details = community_service.fetch_community_details(db_session, "org_public")
    assert details.admins == [test_user.external_id, other_user.external_id]


def test_leave_is_idempotent(db_session, community, other_user) -> None:
    community_service.join_community(db_session, "org_public", other_user.external_id)

    assert community_service.leave_community(
        db_session, "org_public", other_user.external_id
    ) == {"status": "left"}
    assert community_service.leave_community(
        db_session, "org_public", other_user.external_id
    ) == {"status": "left"}

    assert other_user.external_id not in _member_ids(db_session, "org_public")
    assert user_service.fetch_user(db_session, other_user.external_id).communities == []


def test_membership_state_transitions(db_session, private_community, test_user, other_user) -> None:
    """The role reported for a user follows the state machine."""
    def state():
        return community_service.get_membership_state(
            db_session, "org_private", other_user.external_id
        )

    assert community_service.get_membership_state(
        db_session, "org_private", test_user.external_id
    ) is CommunityRole.CREATOR
    assert state() is CommunityRole.NONE

    community_service.join_community(db_session, "org_private", other_user.external_id)
    assert state() is CommunityRole.REQUESTED

    community_service.approve_join_request(
        db_session, "org_private", other_user.external_id, test_user.external_id
    )
    assert state() is CommunityRole.MEMBER

    community_service.add_community_admin(
        db_session, "org_private", other_user.external_id, test_user.external_id
    )
    assert state() is CommunityRole.ADMIN


def test_add_member_directly(db_session, private_community, other_user) -> None:
    """Direct adds clear a pending request and refuse duplicates."""
    community_service.join_community(db_session, "org_private", other_user.external_id)

    community_service.add_member_to_community(db_session, "org_private", other_user.external_id)

    details = community_service.fetch_community_details(db_session, "org_private")
    assert other_user.external_id in [m.id for m in details.members]
    assert details.join_requests == []

    with pytest.raises(ConflictError):
        community_service.add_member_to_community(
            db_session, "org_private", other_user.external_id
        )


def test_remove_user_from_community(db_session, community, other_user) -> None:
    community_service.join_community(db_session, "org_public", other_user.external_id)

    result = community_service.remove_user_from_community(
        db_session, other_user.external_id, "org_public"
    )

    assert result == {"success": True}
    assert other_user.external_id not in _member_ids(db_session, "org_public")


def test_update_community_info(db_session, community, test_user) -> None:
    community_service.create_community(
        db_session,
        community_id="org_second",
        name="Second",
        username="second",
        image=None,
        bio=None,
        created_by_id=test_user.external_id,
    )

    with pytest.raises(ConflictError):
        community_service.update_community_info(
            db_session, "org_public", name="Renamed", username="second", image=None
        )

    updated = community_service.update_community_info(
        db_session,
        "org_public",
        name="Renamed",
        username="renamed",
        image="https://img.example/c.png",
    )
    assert updated.name == "Renamed"
    assert updated.username == "renamed"

    with pytest.raises(NotFoundError):
        community_service.update_community_info(
            db_session, "org_missing", name="x", username="x", image=None
        )


def test_fetch_communities_search_and_paging(db_session, community, test_user) -> None:
    """Search matches name or username; paging reports is_next."""
    for suffix in ("alpha", "beta"):
        community_service.create_community(
            db_session,
            community_id=f"org_{suffix}",
            name=f"Crypto {suffix.title()}",
            username=f"crypto_{suffix}",
            image=None,
            bio=None,
            created_by_id=test_user.external_id,
        )

    page = community_service.fetch_communities(
        db_session, search_string="CRYPTO", page_number=1, page_size=1
    )
    assert len(page.communities) == 1
    assert page.is_next is True
    assert page.communities[0].id == "org_beta"

    second = community_service.fetch_communities(
        db_session, search_string="crypto", page_number=2, page_size=1
    )
    assert [c.id for c in second.communities] == ["org_alpha"]
    assert second.is_next is False

    oldest_first = community_service.fetch_communities(db_session, sort_by="asc")
    assert [c.id for c in oldest_first.communities] == ["org_public", "org_alpha", "org_beta"]


def test_fetch_community_details_missing(db_session) -> None:
    assert community_service.fetch_community_details(db_session, "org_missing") is None


def test_delete_community_cascades(db_session, community, test_user, other_user) -> None:
    """Deleting a community removes its threads, messages and sets."""
    community_service.join_community(db_session, "org_public", other_user.external_id)
    thread = thread_service.create_thread(
        db_session, text="hello", author_id=test_user.external_id, community_id="org_public"
    )
    thread_id = str(thread.id)
    thread_service.add_comment_to_thread(db_session, thread_id, "reply", other_user.external_id)
    sent = message_service.send_message(
        db_session, text="hi", author_id=other_user.external_id, community_id="org_public"
    )
    message_service.like_message(db_session, sent["message"].id, test_user.external_id)

    summary = community_service.delete_community(db_session, "org_public")

    assert summary.id == "org_public"
    assert community_service.fetch_community_details(db_session, "org_public") is None
    assert _count(db_session, Thread) == 0
    assert _count(db_session, Message) == 0
    assert _count(db_session, MessageLike) == 0
    assert _count(db_session, CommunityMember) == 0
    assert _count(db_session, CommunityAdmin) == 0
    assert user_service.fetch_user(db_session, other_user.external_id).communities == []


def test_repair_memberships(db_session, private_community, test_user, other_user) -> None:
    """Repair restores the creator's admin row and drops stale requests."""
    community_service.add_member_to_community(db_session, "org_private", other_user.external_id)
    db_session.query(CommunityAdmin).delete()
    db_session.add(
        CommunityJoinRequest(community_id=private_community.id, user_id=other_user.id)
    )
    db_session.commit()

    report = community_service.repair_memberships(db_session)

    assert report == {"admins_added": 1, "requests_dropped": 1}
    details = community_service.fetch_community_details(db_session, "org_private")
    assert details.admins == [test_user.external_id]
    assert details.join_requests == []
    assert community_service.repair_memberships(db_session) == {
        "admins_added": 0,
        "requests_dropped": 0,
    }


def test_storage_failure_is_wrapped(db_session, community, other_user, monkeypatch) -> None:
    """Driver errors surface as OperationFailedError naming the operation."""

    def failing_commit():
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(OperationFailedError) as exc_info:
        community_service.join_community(db_session, "org_public", other_user.external_id)

    assert str(exc_info.value).startswith("Failed to join community:")
    monkeypatch.undo()
    assert other_user.external_id not in _member_ids(db_session, "org_public")


@pytest.mark.parametrize(
    ("read", "operation"),
    [
        (lambda db: message_service.fetch_community_messages(db, "org_public"), "fetch messages"),
        (lambda db: thread_service.fetch_thread_by_id(db, "1"), "fetch thread"),
        (lambda db: thread_service.fetch_posts(db), "fetch posts"),
        (
            lambda db: community_service.fetch_community_details(db, "org_public"),
            "fetch community details",
        ),
        (lambda db: community_service.fetch_communities(db), "fetch communities"),
        (lambda db: user_service.fetch_user(db, "user_1"), "fetch user"),
    ],
)
def test_read_storage_failure_is_wrapped(
    db_session, community, caplog, monkeypatch, read, operation
) -> None:
    """Reads roll back, log and wrap driver errors like writes do."""

    def failing(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "query", failing)
    monkeypatch.setattr(db_session, "get", failing)

    with pytest.raises(OperationFailedError) as exc_info:
        read(db_session)

    assert str(exc_info.value).startswith(f"Failed to {operation}:")
    assert f"Error while trying to {operation}" in caplog.text
