"""Shared pytest fixtures for the library and plugin tests."""

import fnmatch

import pytest

from attachments import AttachmentService, ImageAttachment
from cache import CacheService
from entities import FEATURED_IMAGE_KEY, ContentItem, EntityService


class InMemoryRedis:
    """Stands in for redis.Redis(decode_responses=True) in tests."""

    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.calls = []

    def ping(self):
        return True

    def get(self, key):
        self.calls.append(("get", key))
        return self.data.get(key)

    def set(self, key, value):
        self.calls.append(("set", key))
        self.data[key] = value
        return True

    def setex(self, key, ttl, value):
        self.calls.append(("setex", key))
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        self.calls.append(("delete", keys))
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def scan_iter(self, match="*"):
        return [key for key in list(self.data) if fnmatch.fnmatchcase(key, match)]


@pytest.fixture
def redis_client():
    return InMemoryRedis()


@pytest.fixture
def image_cache(redis_client):
    return CacheService("json_ld_images", client=redis_client)


@pytest.fixture
def rome():
    return ContentItem(
        id=2,
        uri="http://data.example/entity/rome",
        title="Rome",
        body="<p>Capital of <em>Italy</em>.</p>",
        permalink="http://site/rome",
        kind="entity",
        entity_type="Place",
        alt_labels=["Roma", "The Eternal City"],
    )


@pytest.fixture
def paris():
    return ContentItem(
        id=1,
        uri="http://data.example/entity/paris",
        title="Paris",
        permalink="http://site/paris",
        kind="entity",
        entity_type="http://schema.org/City",
    )


@pytest.fixture
def article():
    return ContentItem(
        id=42,
        uri="http://site/trip.html",
        title="A trip",
        body=(
            '<p><img src="http://site/images/embed.jpg"> We visited '
            '<span class="textannotation" itemid="http://data.example/entity/rome">Rome</span>.</p>'
        ),
        permalink="http://site/trip.html",
        related=["http://data.example/entity/rome", "http://data.example/entity/paris"],
        gallery=["images/gallery.jpg", "images/embed.jpg"],
        meta={FEATURED_IMAGE_KEY: "images/featured.jpg"},
    )


@pytest.fixture
def entity_service(rome, paris, article):
    service = EntityService()
    for item in (rome, paris, article):
        service.upsert(item)
    return service


@pytest.fixture
def attachment_service():
    service = AttachmentService()
    service.register(ImageAttachment("images/featured.jpg", "http://site/images/featured.jpg", 1200, 800))
    service.register(ImageAttachment("images/embed.jpg", "http://site/images/embed.jpg", 640, None))
    service.register(ImageAttachment("images/gallery.jpg", "http://site/images/gallery.jpg"))
    return service
