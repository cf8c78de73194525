"""Unit tests for forum/seed.py -- demo data loading.

Covers:
- every demo account and post is created on an empty database
- admins get distinct secrets and provisioning URIs; regular users get none
- the near-capacity demo posts sit one comment below their limit
- a second run creates nothing
"""

import pytest

from auth.passwords import verify_credential
from auth.store import UserStore
from forum.seed import DEMO_ADMINS, DEMO_POSTS, DEMO_USERS, seed
from forum.store import ForumStore


@pytest.fixture
def stores():
    users = UserStore("sqlite:///:memory:")
    forum = ForumStore("sqlite:///:memory:")
    yield users, forum
    forum.close()
    users.close()


def test_seed_creates_everything(stores):
    users, forum = stores
    report = seed(users, forum)

    assert len(report.created_users) == len(DEMO_ADMINS) + len(DEMO_USERS)
    assert report.created_posts == len(DEMO_POSTS)
    assert report.created_comments > 0
    assert len(forum.list_posts()) == len(DEMO_POSTS)


def test_admin_secrets(stores):
    users, forum = stores
    report = seed(users, forum, issuer="Forum")

    sara = users.get_by_username("admin_sara")
    ali = users.get_by_username("admin_ali")
    assert sara.is_admin and sara.second_factor_capable
    assert sara.totp_secret != ali.totp_secret
    assert set(report.admin_uris) == {"admin_sara", "admin_ali"}
    assert report.admin_uris["admin_sara"].startswith("otpauth://totp/")
    assert not users.get_by_username("reza").second_factor_capable


def test_seeded_password_verifies(stores):
    users, forum = stores
    seed(users, forum)
    reza = users.get_by_username("reza")
    assert verify_credential("password123", reza.salt, reza.password_hash)


def test_near_capacity_posts(stores):
    users, forum = stores
    seed(users, forum)
    by_title = {p.title: p for p in forum.list_posts()}
    for title in ("Welcome to the University Forum", "Study Group for Computer Science"):
        post = by_title[title]
        assert post.comment_count == post.max_comments - 1


def test_seed_is_idempotent(stores):
    users, forum = stores
    seed(users, forum)
    comments_before = sum(p.comment_count for p in forum.list_posts())

    again = seed(users, forum)
    assert again.created_users == []
    assert again.created_posts == 0
    assert again.created_comments == 0
    assert sum(p.comment_count for p in forum.list_posts()) == comments_before
