"""
Scanner for entity annotation markup.

Annotated content marks entity mentions with an element carrying the entity
URI in its ``itemid`` attribute:

    <span class="textannotation wl-link" itemid="http://data.example/entity/rome">Rome</span>

The label may contain other inline tags (``<em>``, ``<strong>``) but never an
element with the same tag name as the annotation itself.
"""

import bisect
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class AnnotationMatch:
    """A single annotated entity mention found in content."""

    start: int
    end: int
    tag: str
    css_class: str
    uri: str
    label: str

    @property
    def classes(self) -> frozenset[str]:
        return frozenset(self.css_class.split())

    def has_class(self, token: str) -> bool:
        return token in self.classes


class AnnotationScanner:
    """Finds annotation elements in HTML content."""

    # Opening tag with at least one attribute, quoted values may contain "<" or ">"
    OPEN_TAG_PATTERN = re.compile(r"""<([a-zA-Z][\w-]*)(\s(?:[^<>"']|"[^"]*"|'[^']*')*)>""")

    # name="value" or name='value'
    ATTRIBUTE_PATTERN = re.compile(r"""([^\s"'<>/=]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")

    def scan(self, content: str) -> Iterator[AnnotationMatch]:
        """
        Yield every annotation match in document order.

        Args:
            content: HTML content

        Yields:
            AnnotationMatch for each non-overlapping annotation element
        """
        if not content:
            return

        tags = _TagIndex(content)
        pos = 0
        while True:
            open_tag = self.OPEN_TAG_PATTERN.search(content, pos)
            if open_tag is None:
                return

            match = self._match_at(content, open_tag, tags)
            if match is None:
                # Resume inside the rejected element, an inner tag may still match
                pos = open_tag.end()
                continue

            yield match
            pos = match.end

    def replace(self, content: str, callback: Callable[[AnnotationMatch], str]) -> str:
        """
        Replace every annotation match with the callback's output.

        Args:
            content: HTML content
            callback: Called with each match, returns the replacement text

        Returns:
            The content with all matches substituted
        """
        parts = []
        last_end = 0
        for match in self.scan(content):
            parts.append(content[last_end : match.start])
            parts.append(callback(match))
            last_end = match.end

        if not parts:
            return content

        parts.append(content[last_end:])
        return "".join(parts)

    def extract_uris(self, content: str) -> list[str]:
        """Entity URIs referenced in content, deduplicated in first-seen order."""
        return list(dict.fromkeys(match.uri for match in self.scan(content)))

    def _match_at(
        self, content: str, open_tag: re.Match, tags: "_TagIndex"
    ) -> AnnotationMatch | None:
        tag = open_tag.group(1)
        raw_attributes = open_tag.group(2)
        if raw_attributes.rstrip().endswith("/"):
            return None

        attributes = self._parse_attributes(raw_attributes)
        css_class = attributes.get("class")
        uri = attributes.get("itemid")
        if css_class is None or not uri:
            return None

        close_tag = tags.next_close(tag, open_tag.end())
        if close_tag is None:
            return None

        close_start, close_end = close_tag
        if tags.has_open(tag, open_tag.end(), close_start):
            return None

        return AnnotationMatch(
            start=open_tag.start(),
            end=close_end,
            tag=tag,
            css_class=css_class,
            uri=uri,
            label=content[open_tag.end() : close_start],
        )

    def _parse_attributes(self, raw: str) -> dict[str, str]:
        attributes = {}
        for attr in self.ATTRIBUTE_PATTERN.finditer(raw):
            name = attr.group(1).lower()
            value = attr.group(2) if attr.group(2) is not None else attr.group(3)
            # First occurrence wins, as in browsers
            attributes.setdefault(name, value)
        return attributes


class _TagIndex:
    """
    Offsets of the opening and closing tags of one document, per tag name.

    Each tag name is searched once per document, lookups bisect the collected
    offsets.
    """

    CLOSE_TAG = r"</{tag}\s*>"
    OPEN_TAG = r"<{tag}[\s/>]"

    def __init__(self, content: str):
        self.content = content
        self._closes: dict[str, list[tuple[int, int]]] = {}
        self._opens: dict[str, list[tuple[int, int]]] = {}

    def _offsets(self, index: dict, template: str, tag: str) -> list[tuple[int, int]]:
        name = tag.lower()
        if name not in index:
            pattern = re.compile(template.format(tag=re.escape(name)), re.IGNORECASE)
            index[name] = [(m.start(), m.end()) for m in pattern.finditer(self.content)]
        return index[name]

    def next_close(self, tag: str, pos: int) -> tuple[int, int] | None:
        """(start, end) of the first closing tag starting at or after pos."""
        closes = self._offsets(self._closes, self.CLOSE_TAG, tag)
        i = bisect.bisect_left(closes, (pos,))
        return closes[i] if i < len(closes) else None

    def has_open(self, tag: str, start: int, end: int) -> bool:
        """Whether an opening tag of this name starts within [start, end)."""
        opens = self._offsets(self._opens, self.OPEN_TAG, tag)
        i = bisect.bisect_left(opens, (start,))
        return i < len(opens) and opens[i][0] < end
