"""
Structured result extraction from model output.

The model is asked for JSON but may prepend commentary or wrap the
document in a code fence. Extraction tries an ordered chain of parse
tiers and the first tier that yields a JSON object wins.
"""

import logging
from enum import Enum
from typing import Any, Callable

from pydantic import ValidationError as SchemaValidationError

from analyst.models.schemas import AnalysisResult
from analyst.services.errors import MalformedResponseError
from analyst.utils.json_utils import parse_brace_span, parse_direct, parse_fenced

logger = logging.getLogger(__name__)


class ParseTier(str, Enum):
    """Extraction tiers in priority order."""
    DIRECT = "direct"
    FENCED = "fenced"
    BRACE_SPAN = "brace_span"


TIER_PARSERS: dict[ParseTier, Callable[[str], dict[str, Any] | None]] = {
    ParseTier.DIRECT: parse_direct,
    ParseTier.FENCED: parse_fenced,
    ParseTier.BRACE_SPAN: parse_brace_span,
}


def extract_document(raw_text: str) -> tuple[ParseTier, dict[str, Any]]:
    """
    Run the parse tiers in order and return the first JSON object found.

    Args:
        raw_text: Model output

    Returns:
        Tuple of (winning tier, parsed object)

    Raises:
        MalformedResponseError: Empty text or no tier succeeded
    """
    if not raw_text or not raw_text.strip():
        raise MalformedResponseError("Empty response from AI.", raw_text=raw_text or "")

    for tier, parser in TIER_PARSERS.items():
        document = parser(raw_text)
        if document is not None:
            logger.debug(f"Extracted JSON via {tier.value} tier")
            return tier, document

    preview = raw_text[:200] + "..." if len(raw_text) > 200 else raw_text
    logger.warning(f"Could not parse JSON from response. Input: {preview}")
    raise MalformedResponseError(
        "Could not parse JSON from response.",
        raw_text=raw_text,
        detail=f"Tried tiers: {', '.join(t.value for t in TIER_PARSERS)}",
    )


def extract_structured(raw_text: str) -> AnalysisResult:
    """
    Parse model output into an AnalysisResult.

    Args:
        raw_text: Model output

    Returns:
        Validated AnalysisResult

    Raises:
        MalformedResponseError: No JSON object found, or it does not
            match the result schema
    """
    tier, document = extract_document(raw_text)

    try:
        return AnalysisResult.model_validate(document)
    except SchemaValidationError as e:
        logger.warning(f"JSON from {tier.value} tier does not match schema: {e.error_count()} error(s)")
        raise MalformedResponseError(
            "Response JSON does not match the analysis schema.",
            raw_text=raw_text,
            detail=str(e),
        ) from e
