"""
A/B test evaluation.

The first variant is the control. Every other variant is compared with it on
conversion rate. The relative lift is reported alongside a two-sided
two-proportion z-test, and the verdict comes from the test's p-value at the
configured confidence level. The older "absolute lift above a fixed
threshold" rule is still reported as ``exceeds_lift_threshold``, but it no
longer decides significance.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from scipy.stats import chi2_contingency
from statsmodels.stats.proportion import proportion_confint, proportions_ztest

from app.analytics.common import percentage, round_to
from app.analytics.retention import cohort_label, truncate

logger = logging.getLogger(__name__)


class VariantRecord(NamedTuple):
    variant: str
    user_count: int
    conversion_count: int


def conversion_rate(conversions: int, users: int) -> float:
    return conversions / users * 100 if users else 0.0


def relative_lift(rate: float, control_rate: float) -> Optional[float]:
    """Lift in percent over the control rate; None when the control rate is 0."""
    if not control_rate:
        return None
    return (rate - control_rate) / control_rate * 100


def wilson_interval(conversions: int, users: int, confidence_level: float) -> Dict[str, float]:
    if not users:
        return {"lower": 0.0, "upper": 0.0}
    lower, upper = proportion_confint(
        conversions, users, alpha=1 - confidence_level, method="wilson"
    )
    return {"lower": round_to(float(lower) * 100), "upper": round_to(float(upper) * 100)}


def two_proportion_ztest(
    conversions: int, users: int, control_conversions: int, control_users: int
) -> Tuple[Optional[float], Optional[float]]:
    """
    Two-sided z-test of variant vs. control conversion. Returns (z, p), or
    (None, None) when the pooled proportion makes the test undefined.
    """
    total_users = users + control_users
    pooled = (conversions + control_conversions) / total_users if total_users else 0.0
    if not users or not control_users or pooled in (0.0, 1.0):
        return None, None

    z_score, p_value = proportions_ztest(
        [conversions, control_conversions], [users, control_users], alternative="two-sided"
    )
    return float(z_score), float(p_value)


def chi_square_test(records: Sequence) -> Optional[dict]:
    """Omnibus chi-square test of independence across all variants."""
    table = [[r.conversion_count, r.user_count - r.conversion_count] for r in records]
    converted = sum(row[0] for row in table)
    not_converted = sum(row[1] for row in table)
    if not converted or not not_converted or any(r.user_count == 0 for r in records):
        return None

    chi2, p_value, dof, _ = chi2_contingency(table, correction=False)
    return {
        "chi_square": round_to(float(chi2), 4),
        "p_value": round_to(float(p_value), 4),
        "degrees_of_freedom": int(dof),
    }


def analyze_experiment(
    records: Sequence,
    confidence_level: float = 0.95,
    lift_threshold: float = 10.0,
    min_sample_size: int = 100,
    min_conversions: int = 10,
) -> dict:
    """
    Compares every variant with the first one (the control).

    ``records`` are objects with ``variant``, ``user_count`` and
    ``conversion_count`` attributes.
    """
    if len(records) < 2:
        raise ValueError("At least 2 variants are required")

    alpha = 1 - confidence_level
    control = records[0]
    control_rate = conversion_rate(control.conversion_count, control.user_count)

    def sufficient(record) -> bool:
        return record.user_count >= min_sample_size and record.conversion_count >= min_conversions

    variants = []
    for index, record in enumerate(records):
        rate = conversion_rate(record.conversion_count, record.user_count)
        result = {
            "variant": record.variant,
            "is_control": index == 0,
            "user_count": record.user_count,
            "conversion_count": record.conversion_count,
            "conversion_rate": round_to(rate),
            "confidence_interval": wilson_interval(
                record.conversion_count, record.user_count, confidence_level
            ),
            "lift": None,
            "z_score": None,
            "p_value": None,
            "is_significant": False,
            "exceeds_lift_threshold": False,
            "sufficient_sample": sufficient(record),
        }

        if index > 0:
            lift = relative_lift(rate, control_rate)
            z_score, p_value = two_proportion_ztest(
                record.conversion_count, record.user_count,
                control.conversion_count, control.user_count,
            )
            result["lift"] = round_to(lift) if lift is not None else None
            result["exceeds_lift_threshold"] = lift is not None and abs(lift) > lift_threshold
            result["z_score"] = round_to(z_score, 4) if z_score is not None else None
            result["p_value"] = round_to(p_value, 4) if p_value is not None else None
            result["is_significant"] = (
                p_value is not None
                and p_value < alpha
                and result["sufficient_sample"]
                and sufficient(control)
            )
        variants.append(result)

    total_users = sum(r.user_count for r in records)
    total_conversions = sum(r.conversion_count for r in records)

    winner = None
    if total_users:
        best = max(
            range(len(records)),
            key=lambda i: (conversion_rate(records[i].conversion_count, records[i].user_count), -i),
        )
        winner = records[best].variant

    analysis = {
        "confidence_level": confidence_level,
        "lift_threshold": lift_threshold,
        "control": control.variant,
        "winner": winner,
        "is_significant": any(v["is_significant"] for v in variants),
        "total_users": total_users,
        "total_conversions": total_conversions,
        "overall_conversion_rate": percentage(total_conversions, total_users),
        "variants": variants,
        "chi_square": chi_square_test(records) if len(records) > 2 else None,
    }
    logger.debug("A/B analysis: winner=%s significant=%s", winner, analysis["is_significant"])
    return analysis


def recommend(analysis: dict, days_running: int) -> dict:
    """Turns an analysis into a next action with a confidence label."""
    variants = analysis["variants"]
    messages: List[str] = []

    has_enough_data = all(v["sufficient_sample"] for v in variants)
    best_rate = max(v["conversion_rate"] for v in variants)

    if not has_enough_data:
        action, confidence = "continue", "low"
        messages.append("Insufficient sample size. Continue running the experiment.")
    elif analysis["is_significant"]:
        action, confidence = "implement_winner", "high"
        messages.append(
            f'Implement variant "{analysis["winner"]}": statistically significant winner detected.'
        )
    elif max(best_rate - v["conversion_rate"] for v in variants) < 1:
        action, confidence = "no_clear_winner", "medium"
        messages.append("No meaningful difference between variants detected.")
    else:
        action, confidence = "continue", "medium"
        messages.append(
            f'"{analysis["winner"]}" is leading but the difference is not significant yet.'
        )

    worst = min(variants, key=lambda v: v["conversion_rate"])
    if has_enough_data and best_rate > 0 and worst["conversion_rate"] / best_rate < 0.5:
        messages.append(
            f'Consider stopping variant "{worst["variant"]}": it converts at less than half the best rate.'
        )

    if days_running > 14 and not analysis["is_significant"]:
        messages.append("Experiment has run for over two weeks without a significant result.")

    return {
        "action": action,
        "confidence": confidence,
        "recommended_variant": analysis["winner"],
        "days_running": days_running,
        "messages": messages,
    }


def variant_time_series(
    variant_names: Sequence[str],
    assignments: Iterable[Tuple[str, datetime]],
    conversions: Iterable[Tuple[str, datetime]],
    granularity: str = "day",
) -> List[dict]:
    """
    Per-variant assignments and conversions by period, with running totals.

    ``assignments`` and ``conversions`` are ``(variant_name, timestamp)``
    pairs; each converting user should appear once, at their first conversion.
    """
    assigned = defaultdict(lambda: defaultdict(int))
    converted = defaultdict(lambda: defaultdict(int))
    for variant, timestamp in assignments:
        assigned[variant][cohort_label(truncate(timestamp, granularity), granularity)] += 1
    for variant, timestamp in conversions:
        converted[variant][cohort_label(truncate(timestamp, granularity), granularity)] += 1

    series = []
    for variant in variant_names:
        periods = sorted(set(assigned[variant]) | set(converted[variant]))
        cumulative_assignments = cumulative_conversions = 0
        points = []
        for period in periods:
            period_assignments = assigned[variant][period]
            period_conversions = converted[variant][period]
            cumulative_assignments += period_assignments
            cumulative_conversions += period_conversions
            points.append(
                {
                    "period": period,
                    "assignments": period_assignments,
                    "conversions": period_conversions,
                    "conversion_rate": percentage(period_conversions, period_assignments),
                    "cumulative_assignments": cumulative_assignments,
                    "cumulative_conversions": cumulative_conversions,
                    "cumulative_conversion_rate": percentage(cumulative_conversions, cumulative_assignments),
                }
            )
        series.append({"variant": variant, "data_points": points})
    return series
