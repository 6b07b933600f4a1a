"""
Review Signal Heuristics (Deterministic)
========================================

Lexicon-based sentiment and keyword detection over guest review text.
No model calls: fast, explainable, reproducible, and safe to run inline
during ingestion.

Usage:
    score = score_sentiment("Great location but the room was dirty")
    hits = detect_keyword_mentions(text, ISSUE_KEYWORDS.keys())
    top = extract_keywords(text, top_n=10)
"""

import re
from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple


# =============================================================================
# SENTIMENT LEXICON
# =============================================================================
# One hit per matching token; the net count is scaled by 1/10 and clamped.

POSITIVE_WORDS = (
    "excellent", "great", "wonderful", "amazing",
    "perfect", "love", "best", "fantastic",
)

NEGATIVE_WORDS = (
    "bad", "poor", "terrible", "awful",
    "horrible", "disappointed", "worst", "disgusting",
)

SENTIMENT_SCALE = 10.0


# =============================================================================
# ISSUE LEXICONS
# =============================================================================
# keyword -> (category, priority). Matched as lowercase substrings of the text.

ISSUE_KEYWORDS: Dict[str, Tuple[str, str]] = {
    "dirty": ("cleanliness", "high"),
    "broken": ("facilities", "high"),
    "noise": ("location", "medium"),
    "rude": ("communication", "high"),
    "expensive": ("value", "medium"),
}

# word -> category, counted across a listing's reviews to surface recurring complaints
RECURRING_PATTERNS: Dict[str, str] = {
    "clean": "cleanliness",
    "noise": "noise",
    "broken": "maintenance",
    "smell": "cleanliness",
    "small": "space",
    "old": "facilities",
    "difficult": "check-in",
}

# Report wording for negative themes: substring -> improvement area
IMPROVEMENT_PATTERNS: Dict[str, str] = {
    "clean": "cleanliness concerns",
    "noise": "noise issues",
    "small": "space concerns",
    "old": "outdated facilities",
}

# Positive words a listing report calls out when they recur
STRENGTH_WORDS = ("excellent", "great", "wonderful", "amazing", "perfect")

STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "was", "were", "are", "been", "be",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "this", "that", "these", "those", "there", "their", "they",
    "them", "then", "than", "very", "really", "just", "also", "again",
    "what", "when", "where", "which", "while", "about", "into", "over",
    "stay", "place",
})


def tokenize(text: Optional[str]) -> List[str]:
    """Lowercase and split on runs of non-letters."""
    if not text:
        return []
    return [tok for tok in re.split(r"[^a-z]+", text.lower()) if tok]


def score_sentiment(text: Optional[str]) -> float:
    """
    Net lexicon sentiment in [-1.0, 1.0].

    Each token found in POSITIVE_WORDS adds one, each token in NEGATIVE_WORDS
    subtracts one; the net is divided by 10 and clamped.
    """
    positive = 0
    negative = 0
    for token in tokenize(text):
        if token in POSITIVE_WORDS:
            positive += 1
        elif token in NEGATIVE_WORDS:
            negative += 1

    score = (positive - negative) / SENTIMENT_SCALE
    return max(-1.0, min(1.0, score))


def detect_keyword_mentions(text: Optional[str], keywords: Iterable[str]) -> Dict[str, int]:
    """
    Presence (1) or absence (0) of each keyword as a lowercase substring.

    Returns a dict with one entry per keyword, so callers can sum across reviews.
    """
    lowered = (text or "").lower()
    return {kw: 1 if kw in lowered else 0 for kw in keywords}


def mentions_any(text: Optional[str], keywords: Iterable[str]) -> bool:
    return any(detect_keyword_mentions(text, keywords).values())


def count_pattern_words(texts: Iterable[str], patterns: Iterable[str]) -> Dict[str, int]:
    """
    Count occurrences of each pattern word across texts.

    Texts are split on runs of non-letters and only tokens longer than three
    characters are counted, so very short pattern words never register.
    """
    wanted = set(patterns)
    counts: Counter = Counter()
    for text in texts:
        for token in tokenize(text):
            if len(token) > 3 and token in wanted:
                counts[token] += 1
    return dict(counts)


def extract_keywords(text: Optional[str], top_n: int = 10) -> List[Dict[str, int]]:
    """
    Most frequent content words in a text.

    Words of three characters or fewer and stop words are skipped.

    Returns:
        List of {"word": str, "count": int}, most frequent first.
    """
    counts = Counter(
        tok for tok in tokenize(text)
        if len(tok) > 3 and tok not in STOPWORDS
    )
    return [{"word": word, "count": count} for word, count in counts.most_common(top_n)]


def categorize_length(text: Optional[str]) -> str:
    """short (< 50 chars), medium (< 200), or detailed."""
    length = len(text or "")
    if length < 50:
        return "short"
    if length < 200:
        return "medium"
    return "detailed"
