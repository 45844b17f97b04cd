"""
Priority Scoring Service - rule-based priority classification for new reports.

DESIGN PRINCIPLES:
- Priority is SYSTEM-DERIVED at submission time, never recomputed afterwards
- Pure and deterministic: same (title, description, category, severity) -> same result
- No I/O, never raises for well-typed input

Two related but independently tuned score families live here:
- Operational priority (drives the priority enum and SLA deadline)
- Analytics priority score (drives risk level tagging and dashboard weighting)
They intentionally use different keyword/category tables and are kept separate.
"""

from typing import Dict, List, Optional
import logging

from app.models.report import PriorityLevel, RiskLevel

logger = logging.getLogger(__name__)


def _report_text(report: Dict) -> str:
    title = report.get("title") or ""
    description = report.get("description") or ""
    return f"{title} {description}".lower()


def _contains_any(text: str, keywords: List[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _enum_value(value) -> Optional[str]:
    return getattr(value, "value", value)


class PriorityClassifier:
    """
    Calculates the operational priority of a report.

    Factors:
    1. Keyword tier (first matching tier wins, tiers are not additive)
    2. Category base weight
    3. User-declared severity adjustment
    """

    BASE_SCORE = 50

    # Configuration: Keyword tiers (substring match on lowercased title + description)
    OPERATIONAL_CRITICAL_KEYWORDS = ["emergency", "urgent", "dangerous", "fire", "flood", "accident"]
    OPERATIONAL_HIGH_KEYWORDS = ["water", "traffic", "signal", "school", "hospital"]
    CRITICAL_KEYWORD_BONUS = 40
    HIGH_KEYWORD_BONUS = 25

    # Configuration: Category weights (unknown category contributes 0)
    OPERATIONAL_CATEGORY_WEIGHTS = {
        "water": 30,
        "traffic": 25,
        "streetlight": 15,
        "drainage": 20,
        "pothole": 10,
        "garbage": 5,
    }

    # Configuration: Severity adjustments (missing severity contributes 0)
    SEVERITY_ADJUSTMENTS = {
        "critical": 30,
        "high": 20,
        "medium": 0,
        "low": -10,
    }

    # Configuration: Score thresholds, checked top-down
    PRIORITY_THRESHOLDS = [
        (80, PriorityLevel.CRITICAL),
        (65, PriorityLevel.HIGH),
        (35, PriorityLevel.MEDIUM),
    ]

    def calculate_raw_score(self, report: Dict) -> int:
        score = self.BASE_SCORE
        text = _report_text(report)

        if _contains_any(text, self.OPERATIONAL_CRITICAL_KEYWORDS):
            score += self.CRITICAL_KEYWORD_BONUS
        elif _contains_any(text, self.OPERATIONAL_HIGH_KEYWORDS):
            score += self.HIGH_KEYWORD_BONUS

        category = _enum_value(report.get("category"))
        score += self.OPERATIONAL_CATEGORY_WEIGHTS.get(category, 0)

        severity = _enum_value(report.get("severity"))
        score += self.SEVERITY_ADJUSTMENTS.get(severity, 0)

        return score

    def score_to_priority(self, score: int) -> PriorityLevel:
        for threshold, level in self.PRIORITY_THRESHOLDS:
            if score >= threshold:
                return level
        return PriorityLevel.LOW

    def classify(self, report: Dict) -> Dict:
        """
        Classify a report into a priority level.

        Args:
            report: Dict with description, category and optional title/severity

        Returns:
            Dict with priority (enum value) and score (raw score clamped to 0-100)
        """
        raw_score = self.calculate_raw_score(report)
        priority = self.score_to_priority(raw_score)

        logger.debug(f"Classified report as {priority.value} (raw score {raw_score})")

        return {
            "priority": priority.value,
            "score": max(0, min(100, raw_score)),
        }


class AnalyticsScorer:
    """
    Reduced rule set used for the analytics priority score and risk level.

    Unlike the operational classifier, the two keyword bonuses here are
    checked independently and may both apply.
    """

    BASE_SCORE = 50
    MAX_SCORE = 100

    ANALYTICS_CRITICAL_KEYWORDS = ["emergency", "urgent", "dangerous"]
    ANALYTICS_HIGH_KEYWORDS = ["water", "traffic", "signal"]
    CRITICAL_KEYWORD_BONUS = 40
    HIGH_KEYWORD_BONUS = 25

    ANALYTICS_CATEGORY_WEIGHTS = {
        "water": 30,
        "traffic": 25,
        "streetlight": 15,
    }

    RISK_HIGH_THRESHOLD = 80
    RISK_MEDIUM_THRESHOLD = 60

    def calculate_analytics_score(self, report: Dict) -> int:
        score = self.BASE_SCORE
        text = _report_text(report)

        if _contains_any(text, self.ANALYTICS_CRITICAL_KEYWORDS):
            score += self.CRITICAL_KEYWORD_BONUS
        if _contains_any(text, self.ANALYTICS_HIGH_KEYWORDS):
            score += self.HIGH_KEYWORD_BONUS

        category = _enum_value(report.get("category"))
        score += self.ANALYTICS_CATEGORY_WEIGHTS.get(category, 0)

        return min(score, self.MAX_SCORE)

    def calculate_risk_level(self, report: Dict) -> RiskLevel:
        score = self.calculate_analytics_score(report)
        if score >= self.RISK_HIGH_THRESHOLD:
            return RiskLevel.HIGH
        if score >= self.RISK_MEDIUM_THRESHOLD:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW


# Department routing by category
DEPARTMENTS = {
    "pothole": "Roads & Infrastructure Department",
    "garbage": "Sanitation Department",
    "streetlight": "Electricity Department",
    "water": "Water Supply Department",
    "traffic": "Traffic Police Department",
    "drainage": "Drainage Department",
    "construction": "Building & Construction Department",
}
DEFAULT_DEPARTMENT = "General Administration"

ESTIMATED_RESOLUTION_TIMES = {
    "critical": "4 hours",
    "high": "24 hours",
    "medium": "72 hours",
    "low": "7 days",
}


def get_department_for_category(category) -> str:
    return DEPARTMENTS.get(_enum_value(category), DEFAULT_DEPARTMENT)


def get_estimated_resolution_time(priority) -> str:
    return ESTIMATED_RESOLUTION_TIMES.get(_enum_value(priority), ESTIMATED_RESOLUTION_TIMES["medium"])


def build_analytics_block(report: Dict, priority: str) -> Dict:
    """Analytics metadata stored alongside a new report."""
    scorer = get_analytics_scorer()
    return {
        "priority_score": scorer.calculate_analytics_score(report),
        "risk_level": scorer.calculate_risk_level(report).value,
        "estimated_resolution_time": get_estimated_resolution_time(priority),
    }


# Global service instances (singleton pattern)
_priority_classifier = None
_analytics_scorer = None


def get_priority_classifier() -> PriorityClassifier:
    """
    Get or create PriorityClassifier singleton instance.

    Returns:
        PriorityClassifier: The global priority classifier instance
    """
    global _priority_classifier
    if _priority_classifier is None:
        _priority_classifier = PriorityClassifier()
    return _priority_classifier


def get_analytics_scorer() -> AnalyticsScorer:
    global _analytics_scorer
    if _analytics_scorer is None:
        _analytics_scorer = AnalyticsScorer()
    return _analytics_scorer
