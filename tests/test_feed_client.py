"""Client library against the real API: session, feed aggregation, communities."""
from __future__ import annotations

from typing import Callable

import pytest
from fastapi.testclient import TestClient

import database
from feed_client import (
    ClientSession,
    CommunityDirectory,
    FeedAggregator,
    GatewayError,
    InvalidInputError,
    NotAuthenticatedError,
    PermissionDeniedError,
    RestGateway,
    derive_communities,
)
from schemas import PostResponse


@pytest.fixture
def open_session(client: TestClient) -> Callable[[str], ClientSession]:
    def _open(username: str, password: str = "password123") -> ClientSession:
        session = ClientSession(RestGateway("http://testserver", http=client))
        session.signup(username, password)
        session.login(username, password)
        return session

    return _open


def _like_rows(post_id: int) -> int:
    with database.get_db() as conn:
        return conn.execute("SELECT COUNT(*) FROM post_likes WHERE post_id = ?", (post_id,)).fetchone()[0]


def test_login_sets_identity_and_logout_clears_it(open_session) -> None:
    session = open_session("alice")
    assert session.is_authenticated
    assert session.gateway.me().username == "alice"

    session.logout()
    assert not session.is_authenticated
    with pytest.raises(NotAuthenticatedError):
        session.require_user()
    with pytest.raises(NotAuthenticatedError):
        FeedAggregator(session).load_feed()


def test_login_with_blank_credentials_never_reaches_the_backend(client: TestClient) -> None:
    session = ClientSession(RestGateway("http://testserver", http=client))
    with pytest.raises(InvalidInputError) as excinfo:
        session.login("  ", "secret")
    assert excinfo.value.message == "Please enter username and password"


def test_bad_password_surfaces_server_message(client: TestClient, open_session) -> None:
    open_session("alice").logout()
    session = ClientSession(RestGateway("http://testserver", http=client))
    with pytest.raises(NotAuthenticatedError) as excinfo:
        session.login("alice", "wrong-password")
    assert excinfo.value.message == "Incorrect username or password"
    assert excinfo.value.status_code == 401


def test_load_feed_counts_match_rows_after_reload(open_session) -> None:
    alice = open_session("alice")
    bob = open_session("bob")
    alice_feed = FeedAggregator(alice)
    first = alice_feed.create_post("First", "Body", technical_area="Basis")
    second = alice_feed.create_post("Second", "Body")

    bob_feed = FeedAggregator(bob)
    bob_feed.load_feed()
    bob_feed.toggle_like(first)
    bob_feed.add_comment(first, "Thanks!")

    alice_feed.reload()
    assert [post.id for post in alice_feed.posts] == [second, first]
    for post in alice_feed.posts:
        assert alice_feed.stats_for(post.id).like_count == _like_rows(post.id)
    assert alice_feed.stats_for(first).comment_count == 1
    assert alice_feed.stats_for(first).liked is False
    assert bob_feed.stats_for(first).liked is True


def test_posts_without_stats_default_to_zero(open_session) -> None:
    feed = FeedAggregator(open_session("alice"))
    stats = feed.stats_for(999)
    assert (stats.like_count, stats.comment_count, stats.liked) == (0, 0, False)


def test_toggling_like_twice_restores_prior_state(open_session) -> None:
    feed = FeedAggregator(open_session("alice"))
    post_id = feed.create_post("Post", "Body")
    before = feed.stats_for(post_id)

    liked = feed.toggle_like(post_id)
    assert liked.liked is True
    assert liked.like_count == before.like_count + 1

    restored = feed.toggle_like(post_id)
    assert restored.liked == before.liked
    assert restored.like_count == before.like_count
    assert _like_rows(post_id) == 0


def test_failed_like_reverts_the_optimistic_update(open_session) -> None:
    alice = open_session("alice")
    bob = open_session("bob")
    alice_feed = FeedAggregator(alice)
    post_id = alice_feed.create_post("Short lived", "Body")

    bob_feed = FeedAggregator(bob)
    bob_feed.load_feed()
    alice_feed.delete_post(post_id)

    with pytest.raises(GatewayError) as excinfo:
        bob_feed.toggle_like(post_id)
    assert excinfo.value.status_code == 404
    assert bob_feed.stats_for(post_id).like_count == 0
    assert bob_feed.stats_for(post_id).liked is False


def test_non_author_cannot_delete(open_session) -> None:
    alice = open_session("alice")
    bob = open_session("bob")
    post_id = FeedAggregator(alice).create_post("Alice's", "Body")

    bob_feed = FeedAggregator(bob)
    bob_feed.load_feed()
    post = bob_feed.get_post(post_id)
    assert bob_feed.can_delete(post) is False
    with pytest.raises(PermissionDeniedError):
        bob_feed.delete_post(post_id)

    # The server refuses as well when the client check is bypassed
    with pytest.raises(GatewayError) as excinfo:
        bob.gateway.delete_post(post_id)
    assert excinfo.value.status_code == 403
    assert bob_feed.reload()[0].id == post_id


def test_author_delete_drops_post_from_cache(open_session) -> None:
    feed = FeedAggregator(open_session("alice"))
    post_id = feed.create_post("Temporary", "Body")
    assert feed.can_delete(feed.get_post(post_id))

    feed.delete_post(post_id)
    assert feed.get_post(post_id) is None
    assert feed.reload() == []


def test_new_community_is_selected_and_used_for_posts(open_session) -> None:
    session = open_session("alice")
    directory = CommunityDirectory(session)
    feed = FeedAggregator(session)

    community = directory.create_community("  Basis  ")
    assert community.name == "Basis"
    assert directory.selected_id == community.id

    post_id = feed.create_post("Transport tips", "Body", community_id=directory.selected_id)
    feed.load_feed(directory.selected_id)
    assert feed.get_post(post_id).community_id == community.id
    assert [c.id for c in directory.refresh()] == [community.id]


def test_duplicate_community_message_comes_from_backend(open_session) -> None:
    directory = CommunityDirectory(open_session("alice"))
    directory.create_community("Basis")
    with pytest.raises(GatewayError) as excinfo:
        directory.create_community("Basis")
    assert excinfo.value.message == "Community name already exists"
    with pytest.raises(InvalidInputError):
        directory.create_community("   ")


def test_validation_errors_become_readable_messages(open_session) -> None:
    session = open_session("alice")
    with pytest.raises(GatewayError) as excinfo:
        session.gateway.create_post("x" * 300, "Body")
    assert excinfo.value.status_code == 422
    assert "Title must be at most" in excinfo.value.message


def test_derived_directory_lists_distinct_ids_with_placeholder_names(open_session) -> None:
    session = open_session("alice")
    directory = CommunityDirectory(session)
    feed = FeedAggregator(session)
    basis = directory.create_community("Basis").id
    empty = directory.create_community("Empty").id
    feed.create_post("One", "Body", community_id=basis)
    feed.create_post("Two", "Body", community_id=basis)
    feed.create_post("Loose", "Body")

    derived = directory.refresh_from_feed()
    assert [(c.id, c.name) for c in derived] == [(basis, f"Community {basis}")]
    assert empty not in [c.id for c in derived]


def test_derive_communities_keeps_feed_order() -> None:
    posts = [
        PostResponse(id=i, title="t", content="c", user_id=1, username="u", community_id=cid,
                     created_at="2024-01-01T00:00:00")
        for i, cid in enumerate([7, None, 3, 7, 3])
    ]
    assert [c.name for c in derive_communities(posts)] == ["Community 7", "Community 3"]


def test_deleting_comment_decrements_count_on_next_load(open_session) -> None:
    alice = open_session("alice")
    bob = open_session("bob")
    feed = FeedAggregator(alice)
    post_id = feed.create_post("Post", "Body")
    feed.add_comment(post_id, "mine")
    bob_comment = FeedAggregator(bob).add_comment(post_id, "bob's")

    feed.reload()
    assert feed.stats_for(post_id).comment_count == 2

    comments = feed.load_comments(post_id)
    mine = next(c for c in comments if c.username == "alice")
    with pytest.raises(PermissionDeniedError):
        feed.delete_comment(bob_comment)

    feed.delete_comment(mine)
    assert feed.stats_for(post_id).comment_count == 1
    feed.reload()
    assert feed.stats_for(post_id).comment_count == 1
    assert [c.id for c in feed.load_comments(post_id)] == [bob_comment.id]


def test_closed_feed_ignores_late_results(open_session) -> None:
    feed = FeedAggregator(open_session("alice"))
    feed.create_post("Post", "Body")
    feed.close()

    feed.create_post("After close", "Body")
    assert len(feed.posts) == 1


def _seed_posts(user_id: int, count: int) -> list[int]:
    with database.get_db() as conn:
        conn.executemany(
            "INSERT INTO posts (title, content, user_id) VALUES (?, ?, ?)",
            [(f"Post {i}", "Body", user_id) for i in range(count)],
        )
        conn.commit()
        return [row[0] for row in conn.execute("SELECT id FROM posts ORDER BY id")]


def test_feed_larger_than_one_stats_request_still_loads(open_session) -> None:
    session = open_session("alice")
    post_ids = _seed_posts(session.user_id, 501)
    session.gateway.like_post(post_ids[0])
    session.gateway.like_post(post_ids[-1])

    feed = FeedAggregator(session)
    assert len(feed.load_feed()) == 501
    assert set(feed.stats) == set(post_ids)
    assert feed.stats_for(post_ids[0]).liked is True
    assert feed.stats_for(post_ids[-1]).like_count == 1
    assert feed.stats_for(post_ids[250]).like_count == 0
