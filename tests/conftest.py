from datetime import datetime, timezone

import pytest

from autopress.config import build_config
from autopress.models import RemotePost


class FakeStore:
    """In-memory content store recording every remote call."""

    site_host = "example.ro"

    def __init__(self, recent=None, create_errors=None, drop_featured_media=False, error_after_create=None):
        self.recent = list(recent or [])
        self.create_errors = list(create_errors or [])
        self.drop_featured_media = drop_featured_media
        self.error_after_create = error_after_create
        self.posts: dict[int, RemotePost] = {}
        self.created = []
        self.updates = []
        self.uploads = []
        self.terms = []
        self.published_today = 0
        self._next_id = 100

    def find_by_slug(self, slug):
        for post in self.posts.values():
            if post.slug == slug:
                return post
        return None

    def search_by_title(self, text, limit=10):
        words = [word for word in text.lower().split() if len(word) > 3]
        return [post for post in self.posts.values() if any(word in post.title.lower() for word in words)][:limit]

    def list_recent(self, category_id=None, limit=20):
        return list(self.recent)[:limit]

    def create(self, article, category_id, featured_media_id=None, slug="", status="publish", tag_ids=None):
        if self.create_errors:
            raise self.create_errors.pop(0)
        self._next_id += 1
        post = RemotePost(
            id=self._next_id,
            url=f"https://example.ro/{slug}/",
            title=article.title,
            slug=slug,
            featured_media=0 if self.drop_featured_media else int(featured_media_id or 0),
            status=status,
        )
        self.posts[post.id] = post
        self.created.append({"category_id": category_id, "status": status, "slug": slug, "tags": tag_ids})
        if self.error_after_create is not None:
            error, self.error_after_create = self.error_after_create, None
            raise error
        return post

    def update(self, post_id, patch):
        self.updates.append((post_id, dict(patch)))
        post = self.posts[post_id]
        post = RemotePost(
            id=post.id,
            url=post.url,
            title=post.title,
            slug=patch.get("slug", post.slug),
            featured_media=patch.get("featured_media", post.featured_media),
            status=patch.get("status", post.status),
        )
        self.posts[post_id] = post
        return post

    def upload_media(self, data, content_type, filename, metadata=None):
        self.uploads.append((filename, content_type, metadata))
        return 55

    def count_published_today(self, category_id, tz_name, now=None):
        return self.published_today

    def ensure_terms(self, names, taxonomy="tags"):
        self.terms.extend(names)
        return list(range(1, len(names) + 1))


@pytest.fixture
def now():
    return datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def config():
    return build_config()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_store():
    return FakeStore
