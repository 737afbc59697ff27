import zlib
from types import SimpleNamespace

import pytest
from PIL import Image

from attachments import AttachmentService
from entities import FEATURED_IMAGE_KEY, EntityService, content_saved
from site_index import SiteIndex, content_item_id, normalize_static_path, split_list


class Article:
    def __init__(self, source, url, title, content="", **metadata):
        self.relative_source_path = source
        self.source_path = f"/site/content/{source}"
        self.url = url
        self.title = title
        self._content = content
        self.metadata = metadata


class Page(Article):
    pass


class Static:
    def __init__(self, source_path, relative_source_path, url):
        self.source_path = str(source_path)
        self.relative_source_path = relative_source_path
        self.url = url


@pytest.fixture
def site_index():
    return SiteIndex(EntityService(), AttachmentService(), siteurl="http://site/")


@pytest.fixture
def static_image(tmp_path):
    path = tmp_path / "rome.jpg"
    Image.new("RGB", (800, 600)).save(path)
    return Static(path, "images/rome.jpg", "images/rome.jpg")


@pytest.fixture
def rome_page():
    return Page(
        "pages/rome.md",
        "pages/rome.html",
        "Rome",
        "<p>The capital.</p>",
        itemid="http://data.example/entity/rome",
        entity_type="Place",
        alt_labels="Roma, The Eternal City",
        featured_image="{static}/images/rome.jpg",
        gallery="images/forum.jpg, /images/colosseum.jpg",
    )


@pytest.fixture
def trip_article():
    return Article(
        "trip.md",
        "trip.html",
        "A trip",
        '<p>We saw <span class="a" itemid="http://data.example/entity/rome">Rome</span> '
        '<img src="/images/rome.jpg"></p>',
        related="http://data.example/entity/paris",
    )


def _generators(*contents, statics=()):
    return [
        SimpleNamespace(articles=[c for c in contents if type(c) is Article], translations=[]),
        SimpleNamespace(pages=[c for c in contents if type(c) is Page], hidden_pages=[]),
        SimpleNamespace(staticfiles=list(statics)),
    ]


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, []),
        ("", []),
        ("a, b ,, c", ["a", "b", "c"]),
        (["a", " b "], ["a", "b"]),
    ],
)
def test_split_list(value, expected):
    assert split_list(value) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        ("{static}/images/a.jpg", "images/a.jpg"),
        ("{attach}images/a.jpg", "images/a.jpg"),
        ("/images/a.jpg", "images/a.jpg"),
        ("images\\a.jpg", "images/a.jpg"),
    ],
)
def test_normalize_static_path(value, expected):
    assert normalize_static_path(value) == expected


def test_content_item_id():
    assert content_item_id(Article("trip.md", "trip.html", "A trip", post_id="42")) == 42
    assert content_item_id(Article("trip.md", "trip.html", "A trip")) == zlib.crc32(b"trip.md")


def test_build_entity_item(site_index, rome_page):
    item = site_index.build_item(rome_page)

    assert item.uri == "http://data.example/entity/rome"
    assert item.kind == "entity"
    assert item.permalink == "http://site/pages/rome.html"
    assert item.entity_type == "Place"
    assert item.alt_labels == ["Roma", "The Eternal City"]
    assert item.gallery == ["images/forum.jpg", "images/colosseum.jpg"]
    assert item.meta == {FEATURED_IMAGE_KEY: "images/rome.jpg"}


def test_build_article_item(site_index, trip_article):
    item = site_index.build_item(trip_article)

    assert item.kind == "article"
    assert item.uri == "http://site/trip.html"
    assert item.related == ["http://data.example/entity/paris", "http://data.example/entity/rome"]


def test_index_generators(site_index, rome_page, trip_article, static_image):
    site_index.index_generators(_generators(rome_page, trip_article, statics=[static_image]))

    entities = site_index.entity_service
    rome = entities.resolve_by_uri("http://data.example/entity/rome")
    assert rome is not None
    assert rome.title == "Rome"
    assert entities.get(content_item_id(trip_article)).title == "A trip"

    attachments = site_index.attachment_service
    assert attachments.get_image_src("images/rome.jpg") == ("http://site/images/rome.jpg", 800, 600)
    assert attachments.get_image_embeds(trip_article._content) == ["images/rome.jpg"]


def test_index_same_generators_once(site_index, rome_page):
    generators = _generators(rome_page)
    events = []

    def receiver(sender, **kwargs):
        events.append(kwargs["item_id"])

    content_saved.connect(receiver, sender=site_index.entity_service)
    try:
        site_index.index_generators(generators)
        site_index.index_generators(generators)
        site_index.index_generators(_generators(rome_page))
    finally:
        content_saved.disconnect(receiver)

    assert events == [content_item_id(rome_page)]


def test_index_removes_missing_items(site_index, rome_page, trip_article):
    site_index.index_generators(_generators(rome_page, trip_article))
    site_index.index_generators(_generators(trip_article))

    assert site_index.entity_service.resolve_by_uri("http://data.example/entity/rome") is None
    assert len(site_index.entity_service.get_all()) == 1


def test_index_persists_store(tmp_path, rome_page):
    data_path = tmp_path / "entities.jsonl"
    index = SiteIndex(EntityService(data_path), AttachmentService())

    index.index_generators(_generators(rome_page))

    assert EntityService(data_path).resolve_by_uri("http://data.example/entity/rome") is not None
