import logging
import os

from tools import env_flag

AUTHOR = "Editorial Team"
SITENAME = "Linked Content Workbook"
SITEURL = ""

PATH = "content"

TIMEZONE = "Europe/Rome"

DEFAULT_LANG = "en"

def setup_logging(
    log_file_name: str | None = None,
    file_level: int | None = None,
    console_level: int | None = None,
    log_format: str | None = None,
):
    """
    Configure logging for the build: everything to an optional log file, INFO and
    above to the console.

    Args:
        log_file_name (str, optional): Log file path. Defaults to ENTITY_LOG_FILE from the environment.
        file_level (int, optional): File logging level. Defaults to logging.DEBUG.
        console_level (int, optional): Console logging level. Defaults to logging.INFO.
        log_format (str, optional): Custom log format. If None, uses a default format.

    Returns:
        logging.Logger: Configured root logger
    """

    logging.addLevelName(logging.DEBUG, "🔍")
    logging.addLevelName(logging.INFO, "🆗")
    logging.addLevelName(logging.WARNING, "⚠️ ")
    logging.addLevelName(logging.ERROR, "❌")
    logging.addLevelName(logging.CRITICAL, "🔥")

    if log_format is None:
        log_format = "%(asctime)s.%(msecs)03d %(levelname)s | %(message)s (%(filename)s:%(lineno)d:%(name)s)"
    formatter = logging.Formatter(log_format, datefmt="%H:%M:%S")

    if log_file_name is None:
        log_file_name = os.environ.get("ENTITY_LOG_FILE") or None

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Handlers filter
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level or logging.INFO)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file_name:
        file_handler = logging.FileHandler(log_file_name)
        file_handler.setLevel(file_level or logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Redis client chatter is not interesting during a build
    logging.getLogger("redis").setLevel(logging.WARNING)

    return root_logger


# Initialize logging
setup_logging(console_level=logging.INFO)

# Feed generation is usually not desired when developing
FEED_ALL_ATOM = None
CATEGORY_FEED_ATOM = None
TRANSLATION_FEED_ATOM = None
AUTHOR_FEED_ATOM = None
AUTHOR_FEED_RSS = None

DEFAULT_PAGINATION = 10

# Uncomment following line if you want document-relative URLs when developing
# RELATIVE_URLS = True

# Static paths - directories to copy to output
STATIC_PATHS = ["images"]

# Plugins
PLUGIN_PATHS = ["plugins"]
PLUGINS = [
    "entity_links",
    "jsonld",
]

# Entity enrichment configuration
# Link annotated entities unless a mention carries the wl-no-link class.
# Set to False to link only mentions carrying the wl-link class.
ENTITY_LINK_BY_DEFAULT = True

# Content items indexed by the previous build, used to detect changed items
ENTITY_INDEX_PATH = "cache/entities.jsonl"

# Redis cache for JSON-LD image lists (ENTITY_REDIS_HOST / ENTITY_REDIS_PORT)
ENTITY_CACHE_ENABLED = env_flag("ENTITY_CACHE_ENABLED")
JSONLD_IMAGE_CACHE_TTL = 86400

# Default theme, with article and page templates applying entity_links and jsonld
THEME_TEMPLATES_OVERRIDES = ["templates"]
