"""
Builds the entity and attachment registries from Pelican's generated content.

Articles and pages become ContentItems, static image files become
ImageAttachments. Pages carrying an ``itemid`` metadata field are the local
hosts of entities, e.g.:

    Title: Rome
    Itemid: http://data.example/entity/rome
    Entity_type: Place
    Alt_labels: Roma, The Eternal City
    Featured_image: {static}/images/rome.jpg
    Gallery: images/colosseum.jpg, images/forum.jpg
"""

import logging
import zlib
from pathlib import Path

from attachments import AttachmentService
from entities import FEATURED_IMAGE_KEY, ContentItem, EntityService
from entity_markup import AnnotationScanner

_log = logging.getLogger(__name__)

DEFAULT_INDEX_PATH = "cache/entities.jsonl"

# Prefixes Pelican accepts in front of links to static content
STATIC_LINK_PREFIXES = ("{static}", "{attach}", "{filename}", "|static|", "|filename|")


def split_list(value) -> list[str]:
    """Split a comma-separated metadata value, lists are passed through."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]


def normalize_static_path(value: str) -> str:
    """Turn a static link ("{static}/images/a.jpg", "/images/a.jpg") into an attachment id."""
    value = value.strip()
    for prefix in STATIC_LINK_PREFIXES:
        if value.startswith(prefix):
            value = value[len(prefix) :]
            break
    return value.replace("\\", "/").lstrip("/")


def content_item_id(content) -> int:
    """
    Get the numeric id of a Pelican content object.

    Uses the ``post_id`` metadata when set, otherwise a CRC32 of the relative
    source path, which stays stable across builds.
    """
    metadata = getattr(content, "metadata", {}) or {}
    if metadata.get("post_id"):
        return int(metadata["post_id"])

    source = getattr(content, "relative_source_path", None) or getattr(
        content, "source_path", ""
    )
    return zlib.crc32(str(source).replace("\\", "/").encode("utf-8"))


class SiteIndex:
    """Keeps EntityService and AttachmentService in sync with the site content."""

    def __init__(
        self,
        entity_service: EntityService,
        attachment_service: AttachmentService,
        siteurl: str = "",
    ):
        self.entity_service = entity_service
        self.attachment_service = attachment_service
        self.siteurl = siteurl.rstrip("/")
        self.scanner = AnnotationScanner()
        self._indexed = None

    def _absolute_url(self, url: str) -> str:
        return f"{self.siteurl}/{url.lstrip('/')}"

    def build_item(self, content) -> ContentItem:
        """
        Convert a Pelican article or page into a ContentItem.

        Args:
            content: Pelican content object

        Returns:
            The ContentItem for the content object
        """
        metadata = getattr(content, "metadata", {}) or {}
        body = getattr(content, "_content", "") or ""
        permalink = self._absolute_url(getattr(content, "url", ""))

        itemid = metadata.get("itemid")
        if itemid:
            kind = "entity"
        else:
            kind = type(content).__name__.lower()
            if kind not in ("article", "page"):
                kind = "article"

        meta = {}
        if metadata.get(FEATURED_IMAGE_KEY):
            meta[FEATURED_IMAGE_KEY] = normalize_static_path(str(metadata[FEATURED_IMAGE_KEY]))

        related = split_list(metadata.get("related")) + self.scanner.extract_uris(body)

        return ContentItem(
            id=content_item_id(content),
            uri=itemid or permalink,
            title=str(getattr(content, "title", "") or ""),
            body=body,
            permalink=permalink,
            kind=kind,
            entity_type=metadata.get("entity_type") or None,
            alt_labels=split_list(metadata.get("alt_labels")),
            related=list(dict.fromkeys(related)),
            gallery=[normalize_static_path(p) for p in split_list(metadata.get("gallery"))],
            excerpt=metadata.get("excerpt") or None,
            meta=meta,
        )

    def index_static(self, static) -> None:
        source = getattr(static, "relative_source_path", None) or getattr(static, "source_path", "")
        attachment_id = normalize_static_path(str(source))
        url = getattr(static, "url", attachment_id)

        attachment = self.attachment_service.register_file(
            attachment_id, Path(static.source_path), self._absolute_url(url)
        )
        if attachment is not None:
            # Content may link the file by any of these forms
            for alias in (f"/{url.lstrip('/')}", url, f"{{static}}/{attachment_id}"):
                self.attachment_service.alias(alias, attachment_id)

    def index_generators(self, generators) -> None:
        """
        Index all content produced by Pelican's generators.

        Indexing the same generator list twice does nothing, so several
        plugins can trigger it.

        Args:
            generators: Generators passed with the all_generators_finalized signal
        """
        if generators is self._indexed:
            return
        self._indexed = generators

        self.attachment_service.clear()
        contents = []
        for generator in generators:
            for static in getattr(generator, "staticfiles", []):
                self.index_static(static)
            for attr in ("articles", "translations", "pages", "hidden_pages"):
                contents.extend(getattr(generator, attr, []))

        seen = set()
        changed = 0
        for content in contents:
            try:
                item = self.build_item(content)
            except Exception:
                _log.exception(f"Could not index {getattr(content, 'source_path', 'unknown')}")
                continue
            seen.add(item.id)
            if self.entity_service.upsert(item, persist=False):
                changed += 1

        for item in self.entity_service.get_all():
            if item.id not in seen:
                self.entity_service.delete(item.id, persist=False)

        self.entity_service.save()
        _log.info(
            f"[site_index] Indexed {len(seen)} content items ({changed} changed), "
            f"{len(self.attachment_service.ids())} images"
        )


# Global index instance
_index = None


def get_site_index(settings: dict) -> SiteIndex:
    """
    Get or create the global site index.

    Args:
        settings: Pelican settings (ENTITY_INDEX_PATH, SITEURL)

    Returns:
        SiteIndex instance
    """
    global _index
    if _index is None:
        _index = SiteIndex(
            EntityService(settings.get("ENTITY_INDEX_PATH", DEFAULT_INDEX_PATH)),
            AttachmentService(),
            siteurl=settings.get("SITEURL", ""),
        )
    return _index
