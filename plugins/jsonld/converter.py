"""
Post to JSON-LD Converter

Converts content items into schema.org JSON-LD documents. The list of images
of an item is expensive to compute, so it is cached for a day and dropped
whenever the item or its featured image changes.
"""

import logging
from dataclasses import dataclass, field
from numbers import Number

from attachments import AttachmentService
from cache import CacheService, get_cache
from entities import (
    FEATURED_IMAGE_KEY,
    SCHEMA_ORG,
    ContentItem,
    EntityService,
    content_saved,
    meta_updated,
    text_excerpt,
)
from tools import load_redis_settings

_log = logging.getLogger(__name__)

IMAGE_CACHE_NAMESPACE = "json_ld_images"
IMAGE_CACHE_TTL = 86400  # 1 day


@dataclass(frozen=True)
class CachedImages:
    images: list[dict] = field(default_factory=list)


class _NoImages:
    def __repr__(self):
        return "NO_IMAGES"


# The images were computed and the item has none
NO_IMAGES = _NoImages()


def encode_image_entry(images: list[dict]) -> dict:
    if images:
        return {"status": "images", "images": images}
    return {"status": "none"}


def decode_image_entry(value) -> CachedImages | _NoImages | None:
    """
    Decode a cached image entry.

    Returns:
        CachedImages, NO_IMAGES, or None when nothing usable is cached
    """
    if not isinstance(value, dict):
        return None
    if value.get("status") == "none":
        return NO_IMAGES
    if value.get("status") == "images" and isinstance(value.get("images"), list):
        return CachedImages(value["images"])
    return None


def _positive_number(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, Number) or not value > 0:
        return None
    return int(value) if float(value).is_integer() else value


class PostToJsonldConverter:
    """Converts content items to JSON-LD."""

    CONTEXT = SCHEMA_ORG

    def __init__(
        self,
        entity_service: EntityService,
        attachment_service: AttachmentService,
        cache: CacheService | None = None,
        cache_ttl: int = IMAGE_CACHE_TTL,
    ):
        """
        Initialize the converter.

        Args:
            entity_service: Source of content items and entity data
            attachment_service: Source of image attachments
            cache: Image data cache. If None, uses the process-wide cache.
            cache_ttl: Time-to-live of image cache entries in seconds
        """
        self.entity_service = entity_service
        self.attachment_service = attachment_service
        self.image_data_cache = cache if cache is not None else get_cache(IMAGE_CACHE_NAMESPACE)
        self.cache_ttl = cache_ttl

        # Drop cached images when an item is saved or its featured image changes
        content_saved.connect(self.save_post, sender=entity_service)
        meta_updated.connect(self.updated_meta, sender=entity_service)

    def convert(self, item_id: int, references: list[str] | None = None) -> dict | None:
        """
        Convert a content item to a JSON-LD document.

        Args:
            item_id: Id of the content item
            references: List extended in place with the URIs of the entities
                the item refers to

        Returns:
            The JSON-LD dict, or None if the item does not exist
        """
        item = self.entity_service.get(item_id)
        if item is None:
            return None

        jsonld = {
            "@context": self.CONTEXT,
            "@id": self.entity_service.canonical_uri(item.id),
            "@type": self.relative_to_context(self.entity_service.type_uri(item.id)),
            "description": text_excerpt(item),
        }

        if item.body:
            jsonld["mainEntityOfPage"] = self.entity_service.permalink(item.id)

        self.set_images(item, jsonld)

        if references is not None:
            for uri in self.entity_service.related_entities(item.id):
                if uri not in references:
                    references.append(uri)

        return jsonld

    def convert_graph(self, item_id: int) -> list[dict]:
        """
        Convert an item and the local entities it refers to.

        Returns:
            The item's document followed by one document per referenced
            entity hosted on the site, or an empty list if the item is missing
        """
        references: list[str] = []
        jsonld = self.convert(item_id, references)
        if jsonld is None:
            return []

        graph = [jsonld]
        for uri in references:
            entity = self.entity_service.resolve_by_uri(uri)
            if entity is None or entity.id == item_id:
                continue
            entity_jsonld = self.convert(entity.id)
            if entity_jsonld is not None:
                graph.append(entity_jsonld)
        return graph

    def relative_to_context(self, value: str | None) -> str | None:
        """Strip the schema.org context from a type URI."""
        prefix = self.CONTEXT + "/"
        if value and value.startswith(prefix):
            return value[len(prefix) :]
        return value

    def set_images(self, item: ContentItem, jsonld: dict) -> None:
        """
        Set the featured, embedded and gallery images of the item on the document.

        Args:
            item: The content item
            jsonld: The JSON-LD document, updated in place
        """
        cached = decode_image_entry(self.image_data_cache.get(item.id))
        if cached is NO_IMAGES:
            return
        if isinstance(cached, CachedImages):
            jsonld["image"] = cached.images
            return

        ids = []
        thumbnail_id = self.attachment_service.featured_image_id(item)
        if thumbnail_id:
            ids.append(thumbnail_id)

        embeds = [
            i for i in self.attachment_service.get_image_embeds(item.body) if i not in ids
        ]
        gallery = [
            i
            for i in self.attachment_service.get_gallery(item)
            if i not in ids and i not in embeds
        ]

        images = []
        for attachment_id in ids + embeds + gallery:
            attachment = self.attachment_service.get_image_src(attachment_id)
            if attachment is None:
                _log.debug(f"[jsonld] Unknown image {attachment_id} in item {item.id}")
                continue
            images.append(
                self.set_image_size({"@type": "ImageObject", "url": attachment[0]}, attachment)
            )

        if images:
            jsonld["image"] = images
        self.image_data_cache.set(item.id, encode_image_entry(images), self.cache_ttl)

    @staticmethod
    def set_image_size(image: dict, attachment) -> dict:
        """
        Add the width and height to an ImageObject when they are positive numbers.

        Args:
            image: The ImageObject dict
            attachment: (url, width, height) of the image

        Returns:
            The same ImageObject dict
        """
        # Sizes are plain numbers, "4608" and never "4608px"
        for index, key in ((1, "width"), (2, "height")):
            value = _positive_number(attachment[index]) if len(attachment) > index else None
            if value is not None:
                image[key] = value
        return image

    def save_post(self, sender, item_id: int, **kwargs) -> None:
        self.image_data_cache.delete(item_id)

    def updated_meta(self, sender, object_id: int, meta_key: str, **kwargs) -> None:
        if meta_key == FEATURED_IMAGE_KEY:
            self.image_data_cache.delete(object_id)

    def flush_cache(self) -> bool:
        return self.image_data_cache.flush()


def flush_cache(cache: CacheService | None = None) -> bool:
    """
    Delete all cached image lists.

    Args:
        cache: The image data cache in use. If None, a new handle to the same
            namespace is created.

    Returns:
        True if the cache was flushed
    """
    if cache is None:
        cache = CacheService(IMAGE_CACHE_NAMESPACE, **load_redis_settings())
    return cache.flush()
