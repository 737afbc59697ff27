"""
Entity Links Plugin for Pelican

Turns entity annotations (elements with an ``itemid`` attribute) into links to
the pages hosting the entities.

Templates use the filters:

    {{ article.content | entity_links }}
    {{ article.content | entity_uris | tojson }}

Links are left out of feeds. The ENTITY_LINK_BY_DEFAULT setting decides
whether plain annotations are linked. Per mention, the ``wl-link`` and
``wl-no-link`` classes override it.
"""

import logging
from pathlib import Path

from jinja2 import pass_context
from markupsafe import Markup
from pelican import signals

from site_index import get_site_index

from .processor import EntityLinkProcessor

_log = logging.getLogger(__name__)

# Output files written as feeds
FEED_EXTENSIONS = {".xml", ".rss", ".atom"}

# Global processor instance
_processor = None


def get_processor(settings: dict) -> EntityLinkProcessor:
    """Get or create the global EntityLinkProcessor instance.

    Args:
        settings: Pelican settings
    """
    global _processor
    if _processor is None:
        _processor = EntityLinkProcessor(
            get_site_index(settings).entity_service, settings=settings
        )
    return _processor


def _is_feed(context) -> bool:
    output_file = context.get("output_file") or ""
    return Path(str(output_file)).suffix.lower() in FEED_EXTENSIONS


@pass_context
def entity_links(context, content):
    """Jinja filter replacing entity annotations with entity page links."""
    if _processor is None:
        return content
    return Markup(_processor.process_content(str(content), is_feed=_is_feed(context)))


def entity_uris(content):
    """Jinja filter listing the entity URIs annotated in the content."""
    if _processor is None:
        return []
    return _processor.get_entity_uris(str(content))


def add_filters(generator):
    """Add the entity filters to the generator's Jinja environment."""
    get_processor(generator.settings)
    generator.env.filters.update(
        {
            "entity_links": entity_links,
            "entity_uris": entity_uris,
        }
    )


def index_site(generators):
    """Index all articles, pages and images once every generator has run."""
    if not generators:
        return

    try:
        get_site_index(generators[0].settings).index_generators(generators)
    except Exception:
        _log.exception("[entity_links] Error indexing site content")


def register():
    """Plugin registration - required by Pelican."""
    _log.info(" Registering entity links plugin")
    signals.generator_init.connect(add_filters)
    signals.all_generators_finalized.connect(index_site)
