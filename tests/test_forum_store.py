"""Unit tests for forum/store.py -- posts, comments and interesting flags.

Covers:
- post create/get/list ordering and comment counts
- unique titles on create and update
- comment capacity enforced inside the insert transaction
- anonymous comments keep their guest display name
- toggle_interesting() sets and clears a per-user flag
- delete cascades: post -> comments -> flags, comment -> flags
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from core.errors import CapacityExceeded, DuplicateTitle
from forum.models import Anonymous, Comment, Named, Post
from forum.store import ForumStore


@pytest.fixture
def store():
    s = ForumStore("sqlite:///:memory:")
    yield s
    s.close()


def _post(store: ForumStore, title: str = "Hello", author: str = "reza", max_comments=None) -> int:
    return store.create_post(Post(title=title, text="body", author=author, max_comments=max_comments))


class TestPosts:
    def test_create_and_get(self, store):
        post_id = _post(store, max_comments=3)
        post = store.get_post(post_id)
        assert post.title == "Hello"
        assert post.author == "reza"
        assert post.max_comments == 3
        assert post.comment_count == 0
        assert post.created_at

    def test_get_missing(self, store):
        assert store.get_post(999) is None

    def test_list_newest_first(self, store):
        first = _post(store, "First")
        second = _post(store, "Second")
        assert [p.id for p in store.list_posts()] == [second, first]


class TestComments:
    def test_named_and_anonymous_authors(self, store):
        post_id = _post(store)
        named = store.add_comment(Comment(post_id=post_id, text="hi", author=Named("maryam")))
        guest = store.add_comment(Comment(post_id=post_id, text="hey", author=Anonymous("visitor")))
        plain = store.add_comment(Comment(post_id=post_id, text="yo"))

        assert store.get_comment(named).owner == "maryam"
        assert store.get_comment(guest).owner is None
        assert store.get_comment(guest).display_author == "visitor"
        assert store.get_comment(plain).display_author == "Anonymous"

    def test_list_oldest_first(self, store):
        post_id = _post(store)
        ids = [store.add_comment(Comment(post_id=post_id, text=str(i))) for i in range(3)]
        assert [c.id for c in store.list_comments(post_id)] == ids

    def test_capacity_enforced(self, store):
        post_id = _post(store, max_comments=2)
        store.add_comment(Comment(post_id=post_id, text="1"), max_comments=2)
        store.add_comment(Comment(post_id=post_id, text="2"), max_comments=2)
        with pytest.raises(CapacityExceeded):
            store.add_comment(Comment(post_id=post_id, text="3"), max_comments=2)
        assert store.count_comments(post_id) == 2

    def test_capacity_holds_under_concurrent_inserts(self, tmp_path):
        store = ForumStore(f"sqlite:///{tmp_path / 'forum.db'}")
        post_id = _post(store, max_comments=3)

        def attempt(n: int) -> bool:
            try:
                store.add_comment(Comment(post_id=post_id, text=str(n)), max_comments=3)
            except CapacityExceeded:
                return False
            return True

        with ThreadPoolExecutor(max_workers=8) as pool:
            accepted = list(pool.map(attempt, range(8)))
        assert accepted.count(True) == 3
        assert store.count_comments(post_id) == 3
        store.close()

    def test_update_comment(self, store):
        post_id = _post(store)
        comment_id = store.add_comment(Comment(post_id=post_id, text="old"))
        assert store.update_comment(comment_id, "new") is True
        assert store.get_comment(comment_id).text == "new"

    def test_list_by_author(self, store):
        post_id = _post(store)
        store.add_comment(Comment(post_id=post_id, text="a", author=Named("reza")))
        store.add_comment(Comment(post_id=post_id, text="b", author=Named("maryam")))
        assert [c.text for c in store.list_comments_by_author("reza")] == ["a"]


class TestInteresting:
    def test_toggle(self, store):
        post_id = _post(store)
        comment_id = store.add_comment(Comment(post_id=post_id, text="hi"))
        assert store.toggle_interesting(comment_id, "reza") is True
        assert store.toggle_interesting(comment_id, "maryam") is True
        assert store.get_comment(comment_id).interesting_users == ["reza", "maryam"]
        assert store.toggle_interesting(comment_id, "reza") is False
        assert store.get_comment(comment_id).interesting_users == ["maryam"]


class TestCascades:
    def test_delete_post_removes_comments_and_flags(self, store):
        post_id = _post(store)
        other_id = _post(store, "Other")
        c1 = store.add_comment(Comment(post_id=post_id, text="1"))
        store.add_comment(Comment(post_id=post_id, text="2"))
        keep = store.add_comment(Comment(post_id=other_id, text="keep"))
        store.toggle_interesting(c1, "reza")
        store.toggle_interesting(keep, "reza")

        assert store.delete_post(post_id) is True
        assert store.get_post(post_id) is None
        assert store.get_comment(c1) is None
        assert store.list_comments(post_id) == []
        assert store.get_comment(keep).interesting_users == ["reza"]

    def test_flag_ids_are_not_reused_by_new_comment(self, store):
        """A new comment must not inherit flags left behind by a deleted one."""
        post_id = _post(store)
        c1 = store.add_comment(Comment(post_id=post_id, text="1"))
        store.toggle_interesting(c1, "reza")
        store.delete_comment(c1)
        c2 = store.add_comment(Comment(post_id=post_id, text="2"))
        assert store.get_comment(c2).interesting_users == []

    def test_delete_missing(self, store):
        assert store.delete_post(999) is False
        assert store.delete_comment(999) is False
