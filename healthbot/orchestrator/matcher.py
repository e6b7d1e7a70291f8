"""First-match pattern matcher for support tickets."""

from typing import Iterable

from ..models.patterns import MatchResult, RemediationPattern
from ..models.tickets import Ticket

CATEGORY_MATCH_CONFIDENCE = 0.95
KEYWORD_MATCH_CONFIDENCE = 0.80
NO_MATCH = MatchResult(pattern=None, confidence=0.0)


def match(text: str, category: str, patterns: Iterable[RemediationPattern]) -> MatchResult:
    """Select the first pattern, in catalog order, with a keyword in ``text``.

    Later patterns are never considered once one matches, even if they would
    also match with the ticket's category.
    """
    for pattern in patterns:
        if pattern.matches(text):
            confidence = (
                CATEGORY_MATCH_CONFIDENCE if pattern.category == category
                else KEYWORD_MATCH_CONFIDENCE
            )
            return MatchResult(pattern=pattern, confidence=confidence)

    return NO_MATCH


def match_ticket(ticket: Ticket, patterns: Iterable[RemediationPattern]) -> MatchResult:
    """Match a ticket's title and description against the catalog."""
    return match(ticket.search_text, ticket.category or '', patterns)
