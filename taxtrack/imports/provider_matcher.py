"""
Provider Matching for CSV Imports

Bank exports describe purchases in free text ("GITHUB INC", "Officeworks
Pty Ltd 1234"). This module maps that text to a known provider.

Match order (first hit wins):
1. alias      - known alias of a provider in the list   score 1.0
2. exact      - same name after normalization           score 1.0
3. contains   - provider name appears in the item       score 0.9
4. fuzzy      - Levenshtein similarity >= threshold     score = similarity

Normalization lowercases, drops company suffixes (Pty Ltd, Inc, LLC, Ltd),
"Australia"/"AU", and punctuation, and collapses whitespace.
"""

import re
from typing import Optional

from pydantic import BaseModel, Field


# Normalized alias -> canonical provider name
PROVIDER_ALIASES: dict[str, str] = {
    # Internet providers
    "telstra": "Telstra",
    "iinet": "iiNet",
    "ii net": "iiNet",
    "optus": "Optus",
    "tpg": "TPG",
    "aussie": "Aussie Broadband",
    "aussie broadband": "Aussie Broadband",

    # Cloud/Tech
    "google": "Google",
    "google cloud": "Google Cloud",
    "google ads": "Google Ads",
    "aws": "AWS",
    "amazon": "Amazon",
    "amazon web services": "AWS",
    "azure": "Microsoft Azure",
    "microsoft": "Microsoft",
    "github": "GitHub",
    "gitlab": "GitLab",
    "digitalocean": "DigitalOcean",
    "digital ocean": "DigitalOcean",
    "netlify": "Netlify",
    "vercel": "Vercel",
    "heroku": "Heroku",
    "cloudflare": "Cloudflare",

    # Software/Subscriptions
    "adobe": "Adobe",
    "zoom": "Zoom",
    "slack": "Slack",
    "notion": "Notion",
    "dropbox": "Dropbox",
    "figma": "Figma",
    "canva": "Canva",
    "netflix": "Netflix",
    "spotify": "Spotify",
    "jetbrains": "JetBrains",

    # Office
    "officeworks": "Officeworks",
    "bunnings": "Bunnings",
    "ikea": "IKEA",

    # Fuel
    "bp": "BP",
    "shell": "Shell",
    "caltex": "Caltex",
    "ampol": "Ampol",
    "7eleven": "7-Eleven",
}

# (pattern, keywords) used to guess a category from item text
_KEYWORD_RULES: list[tuple[re.Pattern, tuple[str, ...]]] = [
    (re.compile(r"cloud|aws|azure|hosting|server"), ("hosting", "cloud")),
    (re.compile(r"software|app|subscription|saas"), ("software",)),
    (re.compile(r"internet|broadband|nbn|wifi"), ("internet",)),
    (re.compile(r"phone|mobile|telstra|optus"), ("phone",)),
    (re.compile(r"office|stationery|supplies"), ("office",)),
    (re.compile(r"furniture|desk|chair"), ("furniture",)),
    (re.compile(r"fuel|petrol|diesel|bp|shell|caltex"), ("fuel", "vehicle")),
    (re.compile(r"car|vehicle|rego|insurance"), ("vehicle",)),
    (re.compile(r"accountant|bookkeep|tax"), ("accounting",)),
    (re.compile(r"legal|lawyer|solicitor"), ("legal",)),
]

_SUFFIXES = [
    re.compile(r"\bpty\.?\s*ltd\.?", re.IGNORECASE),
    re.compile(r"\binc\b\.?", re.IGNORECASE),
    re.compile(r"\bllc\b\.?", re.IGNORECASE),
    re.compile(r"\bltd\b\.?", re.IGNORECASE),
    re.compile(r"\baustralia\b", re.IGNORECASE),
    re.compile(r"\bau\b", re.IGNORECASE),
]
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


class ProviderMatch(BaseModel):
    """Result of matching CSV item text to a provider."""

    provider_name: str
    score: float = Field(..., ge=0.0, le=1.0)
    match_type: str = Field(..., pattern="^(alias|exact|contains|fuzzy)$")


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance (insertions, deletions, substitutions) between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j - 1] + cost,  # substitution
                current[j - 1] + 1,      # insertion
                previous[j] + 1,         # deletion
            ))
        previous = current
    return previous[-1]


class ProviderMatcher:
    """Fuzzy matcher from CSV item names to known provider names."""

    def __init__(self, aliases: Optional[dict[str, str]] = None):
        self._aliases = aliases if aliases is not None else PROVIDER_ALIASES

    def normalize(self, value: str) -> str:
        """Lowercase, strip company suffixes and punctuation, collapse spaces."""
        result = value.lower()
        for suffix in _SUFFIXES:
            result = suffix.sub("", result)
        result = _NON_ALNUM.sub("", result)
        return _WHITESPACE.sub(" ", result).strip()

    def calculate_similarity(self, a: str, b: str) -> float:
        """1 - distance / longer length; 1.0 is identical, 0.0 is unrelated."""
        if a == b:
            return 1.0
        if not a or not b:
            return 0.0
        return 1 - levenshtein_distance(a, b) / max(len(a), len(b))

    def find_best_match(
        self,
        item_name: str,
        known_providers: list[str],
        threshold: float = 0.6,
    ) -> Optional[ProviderMatch]:
        """
        Find the known provider that best matches an item name.

        Args:
            item_name: Item/vendor text from the CSV
            known_providers: Provider names on record
            threshold: Minimum similarity for a fuzzy match (0-1)

        Returns:
            The best match, or None if nothing is close enough
        """
        normalized_item = self.normalize(item_name)
        if not normalized_item:
            return None

        normalized = [(name, self.normalize(name)) for name in known_providers]
        # Empty names would "contain" every item
        normalized = [(name, norm) for name, norm in normalized if norm]

        alias = self._aliases.get(normalized_item)
        if alias:
            alias_norm = self.normalize(alias)
            for name, norm in normalized:
                if norm == alias_norm:
                    return ProviderMatch(provider_name=name, score=1.0, match_type="alias")

        for name, norm in normalized:
            if norm == normalized_item:
                return ProviderMatch(provider_name=name, score=1.0, match_type="exact")

        for name, norm in normalized:
            if norm in normalized_item:
                return ProviderMatch(provider_name=name, score=0.9, match_type="contains")

        best: Optional[ProviderMatch] = None
        for name, norm in normalized:
            score = self.calculate_similarity(normalized_item, norm)
            if score >= threshold and (best is None or score > best.score):
                best = ProviderMatch(provider_name=name, score=score, match_type="fuzzy")

        return best

    def extract_keywords(self, item_name: str) -> list[str]:
        """Category keywords suggested by the item text, without duplicates."""
        text = item_name.lower()
        keywords: list[str] = []
        for pattern, words in _KEYWORD_RULES:
            if pattern.search(text):
                for word in words:
                    if word not in keywords:
                        keywords.append(word)
        return keywords
