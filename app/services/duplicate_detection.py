"""
Duplicate Detection Service - near-duplicate check for new report submissions.

DESIGN PRINCIPLES:
- Pure and synchronous: the caller fetches open reports of the same category
- A peer matches when it is within 100 meters AND was created within the last 24 hours
- First match in input order wins (no ranking by distance or recency)
- Peers with unusable location or timestamp are skipped, never an error

PRECONDITION:
- The caller must exclude the candidate's own ID from the peer list.
  The detector does not compare IDs.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional
import math
import logging

from app.models.report import is_open_status
from app.utils.firestore_helpers import to_datetime
from app.utils.geo import haversine_distance, extract_coordinates

logger = logging.getLogger(__name__)


def _text_similarity(text1: Optional[str], text2: Optional[str]) -> float:
    """
    Jaccard similarity over distinct lowercased whitespace-separated words.

    Returns similarity between 0.0 and 1.0.
    """
    if not text1 or not text2:
        return 0.0

    words1 = set(text1.lower().split())
    words2 = set(text2.lower().split())

    union = words1 | words2
    if not union:
        return 0.0

    return len(words1 & words2) / len(union)


class DuplicateDetector:
    """
    Detects whether a candidate report duplicates an existing open report.
    """

    # Configuration constants (fixed, not runtime-configurable)
    DUPLICATE_DISTANCE_THRESHOLD_METERS = 100
    DUPLICATE_TIME_WINDOW = timedelta(hours=24)

    # Configuration: Similarity score components
    CATEGORY_MATCH_POINTS = 40
    DISTANCE_BUCKETS = [
        (50, 30),   # Within 50 meters
        (100, 20),  # Within 100 meters
        (200, 10),  # Within 200 meters
    ]
    TEXT_SIMILARITY_MAX_POINTS = 30
    MAX_SIMILARITY_SCORE = 100

    def find_duplicate(self, candidate: Dict, open_reports: List[Dict], now: datetime) -> Dict:
        """
        Check a candidate report against open reports of the same category.

        Args:
            candidate: New report dict (category, description, location)
            open_reports: Existing reports, in the order matches should be preferred
            now: Reference time for the 24 hour window

        Returns:
            Dict with is_duplicate and, when true, existing_report and similarity_score
        """
        candidate_coords = extract_coordinates(candidate.get("location"))
        if candidate_coords is None:
            logger.warning("Candidate report has no usable coordinates, skipping duplicate check")
            return {"is_duplicate": False}

        now = to_datetime(now)
        candidate_category = candidate.get("category")

        for existing in open_reports:
            if not is_open_status(existing.get("status")):
                continue

            if existing.get("category") != candidate_category:
                continue

            existing_coords = extract_coordinates(existing.get("location"))
            if existing_coords is None:
                logger.debug(f"Skipping report {existing.get('id')}: no usable coordinates")
                continue

            distance = haversine_distance(*candidate_coords, *existing_coords)
            if distance > self.DUPLICATE_DISTANCE_THRESHOLD_METERS:
                continue

            created_at = to_datetime(existing.get("created_at"))
            if created_at is None:
                logger.debug(f"Skipping report {existing.get('id')}: no usable created_at")
                continue

            if now - created_at > self.DUPLICATE_TIME_WINDOW:
                continue

            score = self.calculate_similarity_score(candidate, existing)
            logger.info(
                f"Duplicate report detected: matches report {existing.get('id')} "
                f"({distance:.1f}m away, similarity {score})"
            )
            return {
                "is_duplicate": True,
                "existing_report": existing,
                "similarity_score": score,
            }

        return {"is_duplicate": False}

    def calculate_similarity_score(self, report1: Dict, report2: Dict) -> int:
        """
        Score 0-100 combining category match, distance bucket and text overlap.
        """
        score = 0

        if report1.get("category") == report2.get("category"):
            score += self.CATEGORY_MATCH_POINTS

        coords1 = extract_coordinates(report1.get("location"))
        coords2 = extract_coordinates(report2.get("location"))
        if coords1 is not None and coords2 is not None:
            distance = haversine_distance(*coords1, *coords2)
            for limit, points in self.DISTANCE_BUCKETS:
                if distance < limit:
                    score += points
                    break

        similarity = _text_similarity(report1.get("description"), report2.get("description"))
        score += math.floor(similarity * self.TEXT_SIMILARITY_MAX_POINTS)

        return min(score, self.MAX_SIMILARITY_SCORE)


# Global service instance (singleton pattern)
_duplicate_detector = None


def get_duplicate_detector() -> DuplicateDetector:
    """
    Get or create DuplicateDetector singleton instance.

    Returns:
        DuplicateDetector: The global duplicate detector instance
    """
    global _duplicate_detector
    if _duplicate_detector is None:
        _duplicate_detector = DuplicateDetector()
    return _duplicate_detector
