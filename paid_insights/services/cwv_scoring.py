"""
Core Web Vitals scoring.
Classifies the p70 LCP / CLS / INP values of a record against CwvThresholds.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..config import CwvThresholds

GOOD = "good"
NEEDS_IMPROVEMENT = "needs improvement"
POOR = "poor"

SEVERITY = {GOOD: 0, NEEDS_IMPROVEMENT: 1, POOR: 2}


def to_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def classify(value: Any, good: float, needs_improvement: float) -> Optional[str]:
    number = to_number(value)
    if number is None:
        return None
    if number <= good:
        return GOOD
    if number <= needs_improvement:
        return NEEDS_IMPROVEMENT
    return POOR


def overall_score(scores: List[Optional[str]]) -> Optional[str]:
    """Worst classification among the metrics present."""
    present = [score for score in scores if score is not None]
    if not present:
        return None
    return max(present, key=SEVERITY.__getitem__)


def score_record(record: Dict[str, Any], thresholds: CwvThresholds) -> Dict[str, Any]:
    lcp_score = classify(record.get("p70_lcp"), thresholds.lcp_good, thresholds.lcp_needs_improvement)
    cls_score = classify(record.get("p70_cls"), thresholds.cls_good, thresholds.cls_needs_improvement)
    inp_score = classify(record.get("p70_inp"), thresholds.inp_good, thresholds.inp_needs_improvement)

    scored = dict(record)
    scored.update({
        "lcp_score": lcp_score,
        "cls_score": cls_score,
        "inp_score": inp_score,
        "overall_cwv_score": overall_score([lcp_score, cls_score, inp_score]),
    })
    return scored
