"""Content items, the entity resolver and its change signals."""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path

from blinker import signal
from bs4 import BeautifulSoup

_log = logging.getLogger(__name__)

SCHEMA_ORG = "http://schema.org"

# Meta key holding the attachment id of the featured image
FEATURED_IMAGE_KEY = "featured_image"

# Default schema.org type per content kind
DEFAULT_TYPES = {
    "article": "Article",
    "page": "WebPage",
    "entity": "Thing",
}

EXCERPT_LENGTH = 55
EXCERPT_MORE = "..."

# Sent with item_id and item whenever a new or changed item is stored
content_saved = signal("entity-content-saved")

# Sent with action ("added", "updated", "deleted"), object_id, meta_key, meta_value
meta_updated = signal("entity-meta-updated")


@dataclass
class ContentItem:
    id: int
    uri: str
    title: str
    body: str = ""
    permalink: str = ""
    kind: str = "article"
    entity_type: str | None = None
    alt_labels: list[str] = field(default_factory=list)
    related: list[str] = field(default_factory=list)
    gallery: list[str] = field(default_factory=list)
    excerpt: str | None = None
    meta: dict[str, str] = field(default_factory=dict)


def text_excerpt(item: ContentItem, length: int = EXCERPT_LENGTH) -> str:
    """
    Build a plain-text description for an item.

    Uses the explicit excerpt when there is one, otherwise the body text with
    markup removed, cut to ``length`` words.

    Args:
        item: The content item
        length: Maximum number of words

    Returns:
        The excerpt, possibly empty
    """
    source = item.excerpt if item.excerpt else item.body
    if not source:
        return ""

    words = BeautifulSoup(source, "html.parser").get_text(" ").split()
    if len(words) > length:
        return " ".join(words[:length]) + EXCERPT_MORE
    return " ".join(words)


class EntityService:
    """
    Resolves entity URIs to content items.

    Items are kept in memory and optionally persisted to a JSONL file, so
    that changes between two site builds can be detected: storing a changed
    item sends ``content_saved`` and every changed meta key sends
    ``meta_updated``.
    """

    def __init__(self, data_path: str | Path | None = None):
        """
        Initialize the EntityService.

        Args:
            data_path: Path to the JSONL file. If None, items live in memory only.
        """
        self.data_path = Path(data_path).absolute() if data_path else None
        self._cache: dict[int, ContentItem] | None = None
        self._by_uri: dict[str, int] = {}

    def get(self, item_id: int) -> ContentItem | None:
        return self._load().get(item_id)

    def get_all(self) -> list[ContentItem]:
        return list(self._load().values())

    def resolve_by_uri(self, uri: str) -> ContentItem | None:
        """
        Find the local content item for an entity URI.

        Args:
            uri: The entity URI (an ``itemid`` value)

        Returns:
            The matching ContentItem, or None if the entity is not hosted here
        """
        self._load()
        item_id = self._by_uri.get(uri)
        if item_id is None:
            return None
        return self._cache.get(item_id)

    def alternative_labels(self, item_id: int) -> list[str]:
        item = self.get(item_id)
        return list(item.alt_labels) if item else []

    def related_entities(self, item_id: int) -> list[str]:
        item = self.get(item_id)
        if item is None:
            return []
        return [uri for uri in dict.fromkeys(item.related) if uri != item.uri]

    def canonical_uri(self, item_id: int) -> str | None:
        item = self.get(item_id)
        return item.uri if item else None

    def type_uri(self, item_id: int) -> str | None:
        """
        Get the full schema.org type URI of an item.

        Full URIs are returned as they are, short names (``Place``) are
        expanded, and items without a type get the default for their kind.
        """
        item = self.get(item_id)
        if item is None:
            return None

        entity_type = item.entity_type or DEFAULT_TYPES.get(item.kind, "Thing")
        if "://" in entity_type:
            return entity_type
        return f"{SCHEMA_ORG}/{entity_type}"

    def permalink(self, item_id: int) -> str | None:
        item = self.get(item_id)
        return item.permalink if item else None

    def title(self, item_id: int) -> str | None:
        item = self.get(item_id)
        return item.title if item else None

    def upsert(self, item: ContentItem, persist: bool = True) -> bool:
        """
        Insert or update a content item.

        Args:
            item: The item to store
            persist: Write the JSONL file right away

        Returns:
            True if the item was new or changed, False otherwise
        """
        items = self._load()
        previous = items.get(item.id)
        if previous == item:
            return False

        if previous is not None and previous.uri != item.uri:
            self._by_uri.pop(previous.uri, None)

        items[item.id] = item
        self._by_uri[item.uri] = item.id

        if persist:
            self.save()

        _log.debug(f"Stored content item {item.id} ({item.uri})")
        content_saved.send(self, item_id=item.id, item=item)
        self._send_meta_changes(item.id, previous.meta if previous else {}, item.meta)
        return True

    def delete(self, item_id: int, persist: bool = True) -> bool:
        items = self._load()
        item = items.pop(item_id, None)
        if item is None:
            return False

        if self._by_uri.get(item.uri) == item_id:
            del self._by_uri[item.uri]

        if persist:
            self.save()

        content_saved.send(self, item_id=item_id, item=None)
        return True

    def set_meta(self, item_id: int, key: str, value: str) -> None:
        """
        Set a single meta value on an item and notify listeners.

        Raises:
            KeyError: If the item does not exist
        """
        item = self._load()[item_id]
        previous = item.meta.get(key)
        if previous == value:
            return

        item.meta[key] = value
        self.save()
        meta_updated.send(
            self,
            action="added" if previous is None else "updated",
            object_id=item_id,
            meta_key=key,
            meta_value=value,
        )

    def delete_meta(self, item_id: int, key: str) -> None:
        """
        Remove a meta value from an item and notify listeners.

        Raises:
            KeyError: If the item does not exist
        """
        item = self._load()[item_id]
        if key not in item.meta:
            return

        value = item.meta.pop(key)
        self.save()
        meta_updated.send(
            self, action="deleted", object_id=item_id, meta_key=key, meta_value=value
        )

    def _send_meta_changes(self, item_id: int, old: dict, new: dict) -> None:
        for key in dict.fromkeys([*old, *new]):
            if key not in new:
                action = "deleted"
            elif key not in old:
                action = "added"
            elif old[key] != new[key]:
                action = "updated"
            else:
                continue
            meta_updated.send(
                self,
                action=action,
                object_id=item_id,
                meta_key=key,
                meta_value=new.get(key, old.get(key)),
            )

    def _load(self) -> dict[int, ContentItem]:
        """Load all items from the JSONL file into memory."""
        if self._cache is not None:
            return self._cache

        self._cache = {}
        self._by_uri = {}

        if self.data_path is None or not self.data_path.exists():
            return self._cache

        with open(self.data_path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    item = ContentItem(**json.loads(line))
                    self._cache[item.id] = item
                    self._by_uri[item.uri] = item.id

        _log.info(f"Loaded {len(self._cache)} content items from {self.data_path}")
        return self._cache

    def save(self) -> None:
        """Save all items to the JSONL file."""
        if self._cache is None or self.data_path is None:
            return

        self.data_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.data_path, "w", encoding="utf-8") as f:
            for item in self._cache.values():
                json.dump(asdict(item), f, ensure_ascii=False)
                f.write("\n")
