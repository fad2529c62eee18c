"""Extraction of ``@type/identifier`` mentions from document content."""

import logging
import re
import uuid

from knowledge_hub.models.knowledge import REFERENCE_TYPES, DocumentReference, Span

logger = logging.getLogger(__name__)

MENTION_REGEX = re.compile(r"@(\w+)/([\w\-/]+)")
CONTEXT_WINDOW = 50


def extract_references(content: str) -> list[DocumentReference]:
    """Scan ``content`` left to right for supported mentions.

    Matches do not overlap. Unsupported type prefixes are consumed by the
    scan but produce no reference.
    """
    references = []
    for match in MENTION_REGEX.finditer(content):
        ref_type, entity_id = match.group(1), match.group(2)
        if ref_type not in REFERENCE_TYPES:
            continue

        start, end = match.span()
        references.append(
            DocumentReference(
                id=str(uuid.uuid4()),
                type=ref_type,
                entity_id=entity_id,
                entity_name=entity_id,
                position=Span(start=start, end=end),
                context=content[max(0, start - CONTEXT_WINDOW) : min(len(content), end + CONTEXT_WINDOW)],
            )
        )

    logger.debug(f"Extracted {len(references)} references")
    return references
