import json
import tempfile
from dataclasses import replace
from pathlib import Path

import pytest

from entities import (
    FEATURED_IMAGE_KEY,
    ContentItem,
    EntityService,
    content_saved,
    meta_updated,
    text_excerpt,
)


@pytest.fixture
def temp_service():
    """Create a temporary EntityService backed by a JSONL file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield EntityService(data_path=Path(tmpdir) / "entities.jsonl")


@pytest.fixture
def saved_events():
    events = []

    def receiver(sender, **kwargs):
        events.append(kwargs)

    content_saved.connect(receiver)
    yield events
    content_saved.disconnect(receiver)


@pytest.fixture
def meta_events():
    events = []

    def receiver(sender, **kwargs):
        events.append(kwargs)

    meta_updated.connect(receiver)
    yield events
    meta_updated.disconnect(receiver)


def test_resolve_by_uri(entity_service, rome):
    assert entity_service.resolve_by_uri("http://data.example/entity/rome") == rome


def test_resolve_unknown_uri(entity_service):
    assert entity_service.resolve_by_uri("http://data.example/entity/nowhere") is None


def test_resolve_follows_uri_change(entity_service, rome):
    entity_service.upsert(replace(rome, uri="http://data.example/entity/roma"))

    assert entity_service.resolve_by_uri("http://data.example/entity/rome") is None
    assert entity_service.resolve_by_uri("http://data.example/entity/roma").id == rome.id


def test_lookups_for_missing_item(entity_service):
    assert entity_service.get(999) is None
    assert entity_service.alternative_labels(999) == []
    assert entity_service.related_entities(999) == []
    assert entity_service.canonical_uri(999) is None
    assert entity_service.permalink(999) is None
    assert entity_service.title(999) is None
    assert entity_service.type_uri(999) is None


def test_alternative_labels_are_a_copy(entity_service, rome):
    labels = entity_service.alternative_labels(rome.id)
    labels.append("Rome")

    assert entity_service.alternative_labels(rome.id) == ["Roma", "The Eternal City"]


def test_related_entities_dedup_and_skip_self(entity_service):
    entity_service.upsert(
        ContentItem(
            id=7,
            uri="http://x/self",
            title="Self",
            related=["http://x/a", "http://x/self", "http://x/b", "http://x/a"],
        )
    )

    assert entity_service.related_entities(7) == ["http://x/a", "http://x/b"]


@pytest.mark.parametrize(
    "kind,entity_type,expected",
    [
        ("entity", "Place", "http://schema.org/Place"),
        ("entity", "http://schema.org/City", "http://schema.org/City"),
        ("entity", "http://example.org/vocab/Spaceship", "http://example.org/vocab/Spaceship"),
        ("entity", None, "http://schema.org/Thing"),
        ("article", None, "http://schema.org/Article"),
        ("page", None, "http://schema.org/WebPage"),
    ],
)
def test_type_uri(kind, entity_type, expected):
    service = EntityService()
    service.upsert(ContentItem(id=1, uri="http://x/1", title="x", kind=kind, entity_type=entity_type))

    assert service.type_uri(1) == expected


def test_upsert_reports_changes(entity_service, rome):
    assert entity_service.upsert(replace(rome)) is False
    assert entity_service.upsert(replace(rome, title="Roma")) is True


def test_upsert_sends_content_saved(entity_service, rome, saved_events):
    entity_service.upsert(replace(rome))
    assert saved_events == []

    entity_service.upsert(replace(rome, body="<p>Changed</p>"))
    assert [e["item_id"] for e in saved_events] == [rome.id]


def test_upsert_sends_meta_changes(entity_service, rome, meta_events):
    entity_service.upsert(replace(rome, meta={FEATURED_IMAGE_KEY: "images/a.jpg"}))
    entity_service.upsert(replace(rome, meta={FEATURED_IMAGE_KEY: "images/b.jpg"}))
    entity_service.upsert(replace(rome, meta={}))

    assert [(e["action"], e["object_id"], e["meta_key"]) for e in meta_events] == [
        ("added", rome.id, FEATURED_IMAGE_KEY),
        ("updated", rome.id, FEATURED_IMAGE_KEY),
        ("deleted", rome.id, FEATURED_IMAGE_KEY),
    ]


def test_set_and_delete_meta(entity_service, rome, meta_events):
    entity_service.set_meta(rome.id, FEATURED_IMAGE_KEY, "images/a.jpg")
    entity_service.set_meta(rome.id, FEATURED_IMAGE_KEY, "images/a.jpg")
    entity_service.delete_meta(rome.id, FEATURED_IMAGE_KEY)
    entity_service.delete_meta(rome.id, FEATURED_IMAGE_KEY)

    assert [e["action"] for e in meta_events] == ["added", "deleted"]
    assert FEATURED_IMAGE_KEY not in entity_service.get(rome.id).meta


def test_set_meta_unknown_item(entity_service):
    with pytest.raises(KeyError):
        entity_service.set_meta(999, FEATURED_IMAGE_KEY, "images/a.jpg")


def test_delete(entity_service, rome, saved_events):
    assert entity_service.delete(rome.id) is True
    assert entity_service.delete(rome.id) is False

    assert entity_service.get(rome.id) is None
    assert entity_service.resolve_by_uri(rome.uri) is None
    assert [e["item_id"] for e in saved_events] == [rome.id]


def test_persistence(rome):
    """Test that items persist across EntityService instances."""
    with tempfile.TemporaryDirectory() as tmpdir:
        data_path = Path(tmpdir) / "entities.jsonl"

        first = EntityService(data_path=data_path)
        first.upsert(rome)

        second = EntityService(data_path=data_path)

        assert second.get(rome.id) == rome
        assert second.resolve_by_uri(rome.uri) == rome


def test_jsonl_format(temp_service, rome, paris):
    temp_service.upsert(rome)
    temp_service.upsert(paris)

    with open(temp_service.data_path, "r", encoding="utf-8") as f:
        lines = [json.loads(line) for line in f]

    assert [line["uri"] for line in lines] == [rome.uri, paris.uri]
    assert lines[0]["alt_labels"] == ["Roma", "The Eternal City"]


def test_upsert_without_persist_writes_on_save(temp_service, rome):
    temp_service.upsert(rome, persist=False)
    assert not temp_service.data_path.exists()

    temp_service.save()
    assert temp_service.data_path.exists()


def test_text_excerpt_strips_markup(rome):
    assert text_excerpt(rome) == "Capital of Italy ."


def test_text_excerpt_prefers_explicit_excerpt(rome):
    assert text_excerpt(replace(rome, excerpt="The capital.")) == "The capital."


def test_text_excerpt_truncates():
    item = ContentItem(id=1, uri="x", title="x", body="<p>" + " ".join(["word"] * 60) + "</p>")

    excerpt = text_excerpt(item, length=55)

    assert excerpt.endswith("...")
    assert len(excerpt[:-3].split()) == 55


def test_text_excerpt_empty():
    assert text_excerpt(ContentItem(id=1, uri="x", title="x")) == ""
