"""Image attachments known to the site and the lookups used for JSON-LD images."""

import logging
from dataclasses import dataclass
from pathlib import Path

from bs4 import BeautifulSoup
from PIL import Image, UnidentifiedImageError

from entities import FEATURED_IMAGE_KEY, ContentItem

_log = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tiff"}


@dataclass
class ImageAttachment:
    id: str
    url: str
    width: int | None = None
    height: int | None = None


def read_image_size(path: Path) -> tuple[int | None, int | None]:
    """
    Read the pixel size of an image file.

    Args:
        path: Path to the image

    Returns:
        (width, height), or (None, None) if the file can't be read as an image
    """
    try:
        with Image.open(path) as image:
            return image.size
    except (OSError, UnidentifiedImageError) as e:
        _log.info(f"Could not read image size of {path}: {e}")
        return None, None


class AttachmentService:
    """Registry of image attachments, addressed by their static path."""

    def __init__(self):
        self._attachments: dict[str, ImageAttachment] = {}
        self._by_url: dict[str, str] = {}

    def register(self, attachment: ImageAttachment) -> None:
        self._attachments[attachment.id] = attachment
        self._by_url[attachment.url] = attachment.id

    def register_file(self, attachment_id: str, path: Path, url: str) -> ImageAttachment | None:
        """
        Register an image file found in the site's static content.

        Args:
            attachment_id: Id of the attachment (path relative to the content root)
            path: Absolute path of the file, used to read its size
            url: Public URL of the file

        Returns:
            The registered attachment, or None for non-image files
        """
        if Path(path).suffix.lower() not in IMAGE_EXTENSIONS:
            return None

        width, height = read_image_size(Path(path))
        attachment = ImageAttachment(id=attachment_id, url=url, width=width, height=height)
        self.register(attachment)
        return attachment

    def alias(self, url: str, attachment_id: str) -> None:
        """Make another URL form of an attachment resolvable in embedded images."""
        self._by_url[url] = attachment_id

    def clear(self) -> None:
        self._attachments.clear()
        self._by_url.clear()

    def get(self, attachment_id: str) -> ImageAttachment | None:
        return self._attachments.get(attachment_id)

    def ids(self) -> list[str]:
        return list(self._attachments)

    def featured_image_id(self, item: ContentItem) -> str | None:
        return item.meta.get(FEATURED_IMAGE_KEY) or None

    def get_image_embeds(self, body: str) -> list[str]:
        """
        Get the ids of the images embedded in content, in document order.

        An ``<img>`` is identified by its ``data-attachment-id`` attribute or,
        failing that, by its ``src`` matching a registered attachment URL.

        Args:
            body: HTML content

        Returns:
            Deduplicated attachment ids
        """
        if not body:
            return []

        ids = []
        soup = BeautifulSoup(body, "html.parser")
        for img in soup.find_all("img"):
            attachment_id = img.get("data-attachment-id")
            if not attachment_id:
                attachment_id = self._by_url.get(img.get("src", ""))
            if attachment_id and attachment_id not in ids:
                ids.append(attachment_id)
        return ids

    def get_gallery(self, item: ContentItem) -> list[str]:
        return [
            attachment_id
            for attachment_id in dict.fromkeys(item.gallery)
            if attachment_id in self._attachments
        ]

    def get_image_src(self, attachment_id: str) -> tuple[str, int | None, int | None] | None:
        """
        Get the full-size source of an attachment.

        Returns:
            (url, width, height), or None if the attachment is unknown
        """
        attachment = self._attachments.get(attachment_id)
        if attachment is None:
            return None
        return attachment.url, attachment.width, attachment.height
