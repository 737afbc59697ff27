"""
Entity Link Processor

Replaces entity annotations in rendered content with links to the pages
hosting those entities, or with their plain label when no link should be shown.
"""

import html
import logging
import random
from collections.abc import Mapping

from bs4 import BeautifulSoup

from entities import EntityService
from entity_markup import AnnotationMatch, AnnotationScanner

_log = logging.getLogger(__name__)

LINK_CLASS = "wl-link"
NO_LINK_CLASS = "wl-no-link"
ANCHOR_CLASS = "wl-entity-page-link"


def label_text(label: str) -> str:
    """Visible text of an annotation label, with nested markup and entities resolved."""
    if "<" not in label and "&" not in label:
        return label
    return " ".join(BeautifulSoup(label, "html.parser").get_text().split())


class EntityLinkProcessor:
    """Processes entity annotations in Pelican content."""

    def __init__(
        self,
        entity_service: EntityService,
        settings: Mapping | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize the processor.

        Args:
            entity_service: Resolves entity URIs to content items
            settings: Pelican settings, read for ENTITY_LINK_BY_DEFAULT
            rng: Random source used to pick alternative labels
        """
        self.entity_service = entity_service
        self.settings = settings if settings is not None else {}
        self.scanner = AnnotationScanner()
        self.rng = rng or random.Random()

    def is_link_by_default(self) -> bool:
        return bool(self.settings.get("ENTITY_LINK_BY_DEFAULT", True))

    def process_content(self, content: str, is_feed: bool = False) -> str:
        """
        Replace every entity annotation in the content.

        Feeds are returned untouched. If anything goes wrong the original
        content is returned.

        Args:
            content: Rendered HTML content
            is_feed: Whether the content is rendered into a feed

        Returns:
            The content with annotations turned into links or plain labels
        """
        if is_feed or not content:
            return content

        link_by_default = self.is_link_by_default()

        try:
            return self.scanner.replace(
                content, lambda match: self._link(match, link_by_default)
            )
        except Exception:
            _log.exception("[entity_links] Error replacing entity annotations")
            return content

    def _link(self, match: AnnotationMatch, link_by_default: bool) -> str:
        """
        Build the replacement for one annotation.

        Args:
            match: The annotation found in the content
            link_by_default: The site-wide link setting for this pass

        Returns:
            An anchor to the entity page, or the bare label
        """
        item = self.entity_service.resolve_by_uri(match.uri)
        if item is None:
            _log.debug(f"[entity_links] No local page for {match.uri}")
            return match.label

        no_link = match.has_class(NO_LINK_CLASS)
        link = match.has_class(LINK_CLASS)

        if (not link_by_default and not link) or no_link:
            return match.label

        href = html.escape(self.entity_service.permalink(item.id) or "", quote=True)
        title_attribute = self.get_title_attribute(item.id, label_text(match.label))

        return f"<a class='{ANCHOR_CLASS}'{title_attribute} href='{href}'>{match.label}</a>"

    def get_title_attribute(self, item_id: int, label: str) -> str:
        """
        Get a ``title`` attribute with an alternative label for the link.

        Returns:
            The attribute with a leading space, or an empty string if there is
            no alternative label
        """
        title = self.get_link_title(item_id, label)
        if not title:
            return ""
        return f" title='{html.escape(title, quote=True)}'"

    def get_link_title(self, item_id: int, ignore_label: str) -> str:
        """
        Pick a label for the item that differs from the one in the text.

        The candidates are the item's alternative labels plus its title, taken
        in random order.

        Args:
            item_id: Id of the linked item
            ignore_label: The label already shown in the text

        Returns:
            The first candidate that differs case-insensitively, or an empty string
        """
        labels = self.entity_service.alternative_labels(item_id)
        labels.append(self.entity_service.title(item_id) or "")
        self.rng.shuffle(labels)

        ignored = ignore_label.casefold()
        for label in labels:
            if label and label.casefold() != ignored:
                return label
        return ""

    def get_entity_uris(self, content: str) -> list[str]:
        """
        Get the entity URIs annotated in the content.

        Args:
            content: HTML content

        Returns:
            URIs in first-seen order, without duplicates
        """
        try:
            return self.scanner.extract_uris(content)
        except Exception:
            _log.exception("[entity_links] Error extracting entity URIs")
            return []
