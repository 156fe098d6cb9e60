"""
Shared utilities.

Modules:
    json_utils: JSON extraction tiers for LLM responses
    media_utils: Media file handling (content types)
"""

from analyst.utils.json_utils import parse_brace_span, parse_direct, parse_fenced
from analyst.utils.media_utils import guess_mime_type, is_media_type

__all__ = [
    # json_utils
    "parse_direct",
    "parse_fenced",
    "parse_brace_span",
    # media_utils
    "guess_mime_type",
    "is_media_type",
]
