import logging
import re

from core.settings import STAGING_NAME_MAX_LENGTH

logger = logging.getLogger(__name__)

_SEPARATOR_RUN = re.compile(r"/+")
_SEPARATOR_REPLACEMENT = "_"


def sanitize_path(source_path: str, max_length: int = STAGING_NAME_MAX_LENGTH) -> str:
    """
    Derive a filesystem-safe staging name from an object key.

    Separator runs collapse to a single underscore. Names over max_length lose
    their spaces first, then get truncated. A truncated name never ends on a
    collapsed separator: trailing underscores are stripped, unless that would
    leave nothing.
    """
    name = _SEPARATOR_RUN.sub(_SEPARATOR_REPLACEMENT, source_path)
    if len(name) <= max_length:
        return name

    name = name.replace(" ", "")
    if len(name) <= max_length:
        logger.debug("Removed spaces from staging name for %s", source_path)
        return name

    truncated = name[:max_length]
    stripped = truncated.rstrip(_SEPARATOR_REPLACEMENT)
    logger.debug("Truncated staging name for %s", source_path)
    return stripped or truncated
