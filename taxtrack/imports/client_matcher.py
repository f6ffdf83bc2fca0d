"""
Client Matching for Income Imports

Client names are encrypted at rest, so they cannot be matched in a query.
The importer loads the (decrypted) clients once and matches in memory,
which is fine for the handful of clients a sole trader has.

Match order (first hit wins):
1. exact    - same name after normalization                score 1.0
2. partial  - one name contains the other (both >= 3 chars)
              score 0.8 + 0.15 * shorter/longer, capped at 0.95
3. fuzzy    - Levenshtein similarity >= threshold           score = similarity

Client names are never logged.
"""

import re
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from taxtrack.imports.provider_matcher import levenshtein_distance
from taxtrack.models.records import Client


MIN_PARTIAL_LENGTH = 3

_SUFFIXES = [
    re.compile(r"\bpty\.?\s*ltd\.?", re.IGNORECASE),
    re.compile(r"\binc\b\.?", re.IGNORECASE),
    re.compile(r"\bllc\b\.?", re.IGNORECASE),
    re.compile(r"\bltd\b\.?", re.IGNORECASE),
    re.compile(r"\bcorporation\b", re.IGNORECASE),
    re.compile(r"\bcorp\b\.?", re.IGNORECASE),
    re.compile(r"\bcompany\b", re.IGNORECASE),
    re.compile(r"\bco\b\.?", re.IGNORECASE),
    re.compile(r"\baustralia\b", re.IGNORECASE),
    re.compile(r"\bau\b", re.IGNORECASE),
]
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


class ClientMatch(BaseModel):
    """Result of matching a CSV client name to a stored client."""

    client_id: UUID
    client_name: str
    score: float = Field(..., ge=0.0, le=1.0)
    match_type: str = Field(..., pattern="^(exact|partial|fuzzy)$")


class ClientMatcher:
    """Matches client names from income CSVs to stored clients."""

    def normalize(self, value: str) -> str:
        """Lowercase, strip company suffixes and punctuation, collapse spaces."""
        result = value.lower()
        for suffix in _SUFFIXES:
            result = suffix.sub("", result)
        result = _NON_ALNUM.sub("", result)
        return _WHITESPACE.sub(" ", result).strip()

    def calculate_similarity(self, a: str, b: str) -> float:
        if a == b:
            return 1.0
        if not a or not b:
            return 0.0
        return 1 - levenshtein_distance(a, b) / max(len(a), len(b))

    def find_best_match(
        self,
        client_name: str,
        clients: list[Client],
        threshold: float = 0.6,
    ) -> Optional[ClientMatch]:
        """
        Find the stored client that best matches a name from the CSV.

        Args:
            client_name: Client column value
            clients: Stored clients (names already decrypted)
            threshold: Minimum similarity for a fuzzy match (0-1)

        Returns:
            The best match, or None if nothing is close enough
        """
        wanted = self.normalize(client_name)
        if not wanted or not clients:
            return None

        candidates = [(client, self.normalize(client.name)) for client in clients]

        for client, norm in candidates:
            if norm == wanted:
                return ClientMatch(
                    client_id=client.id,
                    client_name=client.name,
                    score=1.0,
                    match_type="exact",
                )

        for client, norm in candidates:
            if len(norm) < MIN_PARTIAL_LENGTH or len(wanted) < MIN_PARTIAL_LENGTH:
                continue
            if norm in wanted or wanted in norm:
                overlap = min(len(norm), len(wanted)) / max(len(norm), len(wanted))
                return ClientMatch(
                    client_id=client.id,
                    client_name=client.name,
                    score=min(0.95, 0.8 + overlap * 0.15),
                    match_type="partial",
                )

        best: Optional[ClientMatch] = None
        for client, norm in candidates:
            score = self.calculate_similarity(wanted, norm)
            if score >= threshold and (best is None or score > best.score):
                best = ClientMatch(
                    client_id=client.id,
                    client_name=client.name,
                    score=score,
                    match_type="fuzzy",
                )

        return best
