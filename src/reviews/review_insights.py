"""
Review Insight Aggregation
==========================

Pure functions over lists of canonical reviews: category breakdowns,
recurring complaint detection, per-review issue flagging and the wording of
recommendations, strengths and improvement areas.

Nothing here touches the store; `analytics.ReviewAnalytics` does the reads
and hands the review sets in.
"""

from collections import Counter, OrderedDict
from typing import Any, Dict, List, Optional

from .review_models import Issue, IssueEntry, Review
from .review_signals import (
    IMPROVEMENT_PATTERNS,
    ISSUE_KEYWORDS,
    NEGATIVE_WORDS,
    POSITIVE_WORDS,
    RECURRING_PATTERNS,
    STRENGTH_WORDS,
    categorize_length,
    count_pattern_words,
    detect_keyword_mentions,
    mentions_any,
    score_sentiment,
)

LOW_RATING_THRESHOLD = 2          # overall, 1-5 scale
LOW_CATEGORY_THRESHOLD = 5        # category, 1-10 scale
CRITICAL_CATEGORY_THRESHOLD = 3
RECURRING_MIN_COUNT = 3
RECURRING_HIGH_COUNT = 5
MAX_RECOMMENDATIONS = 3


def rated(reviews: List[Review]) -> List[float]:
    return [r.rating for r in reviews if r.rating is not None]


def mean_rating(reviews: List[Review]) -> float:
    """Mean over non-null ratings, 0.0 when there are none."""
    ratings = rated(reviews)
    return sum(ratings) / len(ratings) if ratings else 0.0


def category_breakdown(reviews: List[Review]) -> List[Dict[str, Any]]:
    """
    Average and sample count per category, in first-seen order.

    Returns:
        List of {"category", "averageRating", "count"}
    """
    totals: "OrderedDict[str, List[float]]" = OrderedDict()
    for review in reviews:
        for entry in review.category_ratings:
            totals.setdefault(entry.category, []).append(entry.rating)
    return [
        {"category": category, "averageRating": sum(scores) / len(scores), "count": len(scores)}
        for category, scores in totals.items()
    ]


def sentiment_balance(reviews: List[Review]) -> float:
    """
    (positive - negative) / total, where a review is positive when it hits
    the positive lexicon and not the negative one, and vice versa.
    """
    if not reviews:
        return 0.0
    positive = 0
    negative = 0
    for review in reviews:
        has_pos = mentions_any(review.text, POSITIVE_WORDS)
        has_neg = mentions_any(review.text, NEGATIVE_WORDS)
        if has_pos and not has_neg:
            positive += 1
        elif has_neg and not has_pos:
            negative += 1
    return (positive - negative) / len(reviews)


def channel_breakdown(reviews: List[Review]) -> Dict[str, int]:
    return dict(Counter(r.channel or "unknown" for r in reviews))


def response_rate(reviews: List[Review]) -> float:
    """Percentage of reviews carrying manager notes."""
    if not reviews:
        return 0.0
    responded = sum(1 for r in reviews if r.manager_notes)
    return responded / len(reviews) * 100


def recurring_issues(reviews: List[Review]) -> List[Issue]:
    """Pattern words mentioned at least three times across the set."""
    counts = count_pattern_words((r.text for r in reviews), RECURRING_PATTERNS)
    issues = []
    for pattern, category in RECURRING_PATTERNS.items():
        count = counts.get(pattern, 0)
        if count >= RECURRING_MIN_COUNT:
            issues.append(Issue(
                category=category,
                pattern=pattern,
                count=count,
                severity="high" if count >= RECURRING_HIGH_COUNT else "medium",
                description=f'Recurring mention of "{pattern}" ({count} times)',
            ))
    return issues


def performance_recommendations(reviews: List[Review], categories: List[Dict[str, Any]]) -> List[str]:
    """
    Up to three operator actions: the weakest well-sampled category when it
    is below 7/10, and response rate when negative reviews go unanswered.
    """
    recommendations: List[str] = []
    if not categories:
        return recommendations

    sampled = [c for c in categories if c["count"] >= 3]
    if sampled:
        lowest = min(sampled, key=lambda c: c["averageRating"])
        if lowest["averageRating"] < 7:
            recommendations.append(
                f"Focus on improving {lowest['category']}. "
                f"Current average: {lowest['averageRating']:.1f}/10"
            )

    if any(r.rating is not None and r.rating <= 3 for r in reviews):
        rate = response_rate(reviews)
        if rate < 50:
            recommendations.append(
                f"Improve response rate to negative reviews. Current response rate: {rate:.0f}%"
            )

    return recommendations[:MAX_RECOMMENDATIONS]


def review_issue_entries(review: Review) -> List[IssueEntry]:
    """
    Flatten one review into issue rows:
    low overall rating, low category scores, and issue keywords in the text.
    """
    def entry(type_: str, priority: str, description: str, category: str) -> IssueEntry:
        return IssueEntry(
            type=type_,
            priority=priority,
            review_id=review.id,
            listing_id=review.listing_id,
            guest_name=review.guest_name,
            description=description,
            details=review.text,
            submitted_at=review.submitted_at,
            category=category,
        )

    entries = []
    if review.rating is not None and review.rating <= LOW_RATING_THRESHOLD:
        entries.append(entry("low_rating", "high", f"Low rating of {review.rating:g}/5", "overall"))

    for cat in review.category_ratings:
        if cat.rating <= LOW_CATEGORY_THRESHOLD:
            priority = "high" if cat.rating <= CRITICAL_CATEGORY_THRESHOLD else "medium"
            entries.append(entry(
                "category_issue", priority, f"Low {cat.category} rating: {cat.rating:g}/10", cat.category
            ))

    hits = detect_keyword_mentions(review.text, ISSUE_KEYWORDS)
    for keyword, (category, priority) in ISSUE_KEYWORDS.items():
        if hits[keyword]:
            entries.append(entry(
                "negative_feedback", priority, f'Mention of "{keyword}" in feedback', category
            ))

    return entries


# =============================================================================
# PER-REVIEW INSIGHTS
# =============================================================================

def review_flags(review: Review) -> List[str]:
    """Short machine-readable flags, e.g. ["low_rating", "low_cleanliness", "mentions_noise"]."""
    flags = []
    if review.rating is not None and review.rating <= LOW_RATING_THRESHOLD:
        flags.append("low_rating")
    for cat in review.category_ratings:
        if cat.rating <= LOW_CATEGORY_THRESHOLD:
            flags.append(f"low_{cat.category}")
    hits = detect_keyword_mentions(review.text, list(ISSUE_KEYWORDS) + list(IMPROVEMENT_PATTERNS))
    for keyword, hit in hits.items():
        if hit and f"mentions_{keyword}" not in flags:
            flags.append(f"mentions_{keyword}")
    return flags


def suggested_action(review: Review) -> str:
    if review.rating == 5:
        return "Thank guest and encourage sharing"
    if review.rating is not None and review.rating <= LOW_RATING_THRESHOLD:
        return "Follow up with guest and address concerns"
    if len(review.text) > 200:
        return "Consider featuring this detailed review"
    return "Standard acknowledgment"


def review_insight(review: Review) -> Dict[str, Any]:
    return {
        "sentiment": score_sentiment(review.text),
        "lengthCategory": categorize_length(review.text),
        "issues": review_flags(review),
        "recommendation": suggested_action(review),
    }


# =============================================================================
# LISTING REPORT WORDING
# =============================================================================

def mention_totals(reviews: List[Review], keywords) -> Dict[str, int]:
    """Number of reviews mentioning each keyword, in keyword order."""
    totals = {kw: 0 for kw in keywords}
    for review in reviews:
        for kw, hit in detect_keyword_mentions(review.text, totals).items():
            totals[kw] += hit
    return totals


def rating_distribution(reviews: List[Review]) -> Dict[int, int]:
    """Count of whole-star ratings 1..5; fractional ratings are not bucketed."""
    distribution = {5: 0, 4: 0, 3: 0, 2: 0, 1: 0}
    for review in reviews:
        if review.rating is not None and float(review.rating).is_integer() and 1 <= review.rating <= 5:
            distribution[int(review.rating)] += 1
    return distribution


def identify_strengths(reviews: List[Review], categories: Optional[List[Dict[str, Any]]] = None) -> List[str]:
    categories = categories if categories is not None else category_breakdown(reviews)
    strengths = [
        f"{c['category']} ({c['averageRating']:.1f}/10)"
        for c in categories if c["averageRating"] >= 9
    ]
    if reviews:
        for word, mentions in mention_totals(reviews, STRENGTH_WORDS).items():
            if mentions and mentions >= len(reviews) * 0.3:
                strengths.append(f'Frequently described as "{word}"')
    return strengths[:5]


def identify_improvement_areas(reviews: List[Review], categories: Optional[List[Dict[str, Any]]] = None) -> List[str]:
    categories = categories if categories is not None else category_breakdown(reviews)
    areas = [
        f"{c['category']} ({c['averageRating']:.1f}/10)"
        for c in categories if c["averageRating"] <= 6
    ]
    if reviews:
        totals = mention_totals(reviews, IMPROVEMENT_PATTERNS)
        for pattern, label in IMPROVEMENT_PATTERNS.items():
            mentions = totals[pattern]
            if mentions and mentions >= len(reviews) * 0.2:
                areas.append(label)
    return areas[:5]


def business_recommendations(reviews: List[Review], categories: Optional[List[Dict[str, Any]]] = None) -> List[str]:
    """Report-level actions: weakest category, response rate, declining ratings."""
    if not reviews:
        return []
    categories = categories if categories is not None else category_breakdown(reviews)
    recommendations = []

    sampled = [c for c in categories if c["count"] >= 5]
    if sampled:
        lowest = min(sampled, key=lambda c: c["averageRating"])
        if lowest["averageRating"] < 7:
            recommendations.append(
                f"Priority: Improve {lowest['category']}. Current: {lowest['averageRating']:.1f}/10"
            )

    rate = response_rate(reviews)
    if rate < 50:
        recommendations.append(f"Increase response rate to reviews. Current: {rate:.0f}%")

    if len(reviews) >= 10:
        newest = sorted(reviews, key=lambda r: r.submitted_at, reverse=True)
        recent_avg = sum(r.rating or 0 for r in newest[:5]) / 5
        older_avg = sum(r.rating or 0 for r in newest[5:10]) / 5
        if recent_avg < older_avg - 0.5:
            recommendations.append("Address declining ratings trend")

    return recommendations
