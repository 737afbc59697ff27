"""
JSON-LD Plugin for Pelican

Emits schema.org structured data for articles and pages:

    {{ article | jsonld }}

renders a <script type="application/ld+json"> block with the article's
document followed by the documents of the entities it refers to.

The image list of every item is cached in Redis for a day and invalidated
when the item or its featured image changes between builds.

Environment Variables:
    ENTITY_CACHE_ENABLED: Set to "false" to disable caching (default: "true")
    ENTITY_REDIS_HOST: Redis host (default: "localhost")
    ENTITY_REDIS_PORT: Redis port (default: "6379")
"""

import json
import logging

from markupsafe import Markup
from pelican import signals

from cache import get_cache
from site_index import content_item_id, get_site_index
from tools import env_flag

from .converter import IMAGE_CACHE_NAMESPACE, IMAGE_CACHE_TTL, PostToJsonldConverter

_log = logging.getLogger(__name__)

# Global converter instance
_converter = None


def get_converter(settings: dict) -> PostToJsonldConverter:
    """Get or create the global PostToJsonldConverter instance.

    Args:
        settings: Pelican settings (ENTITY_CACHE_ENABLED, JSONLD_IMAGE_CACHE_TTL)
    """
    global _converter
    if _converter is None:
        index = get_site_index(settings)
        enabled = settings.get("ENTITY_CACHE_ENABLED", env_flag("ENTITY_CACHE_ENABLED"))
        _converter = PostToJsonldConverter(
            index.entity_service,
            index.attachment_service,
            cache=get_cache(IMAGE_CACHE_NAMESPACE, enabled=enabled),
            cache_ttl=settings.get("JSONLD_IMAGE_CACHE_TTL", IMAGE_CACHE_TTL),
        )
    return _converter


def jsonld(content):
    """
    Jinja filter rendering the JSON-LD script block of an article or page.

    Returns an empty string when the content is unknown or conversion fails,
    so a page is never broken by its structured data.
    """
    if _converter is None:
        return ""

    try:
        graph = _converter.convert_graph(content_item_id(content))
    except Exception:
        _log.exception(f"[jsonld] Error converting {getattr(content, 'source_path', 'unknown')}")
        return ""

    if not graph:
        return ""

    data = graph[0] if len(graph) == 1 else graph
    # "</" inside a script block would end it early
    payload = json.dumps(data, ensure_ascii=False).replace("</", "<\\/")
    return Markup(f'<script type="application/ld+json">{payload}</script>')


def add_filters(generator):
    """Add the jsonld filter to the generator's Jinja environment."""
    get_converter(generator.settings)
    generator.env.filters.update({"jsonld": jsonld})


def index_site(generators):
    """
    Index the site after all generators ran.

    The converter is created first so that items changed since the previous
    build drop their cached images while being indexed.
    """
    if not generators:
        return

    settings = generators[0].settings
    try:
        get_converter(settings)
        get_site_index(settings).index_generators(generators)
    except Exception:
        _log.exception("[jsonld] Error indexing site content")


def register():
    """Plugin registration - required by Pelican."""
    _log.info(" Registering JSON-LD plugin")
    signals.generator_init.connect(add_filters)
    signals.all_generators_finalized.connect(index_site)
