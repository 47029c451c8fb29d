"""Tests for scoring, banding, gap derivation and the executive summary."""

import pytest

from config import NARRATIVES
from engine import (NON_COMPLIANT, PARTIAL, band_score, build_executive_summary,
                    build_report, compute_overall_score, compute_section_score,
                    compute_section_scores, derive_findings, priority_score,
                    resolve_effort, resolve_severity, round_half_up, urgent_gaps)

ZERO_COUNTS = {
    "answered_count": 0,
    "compliant_count": 0,
    "partial_count": 0,
    "gap_count": 0,
    "not_applicable_count": 0,
}


# ----------- Scoring -------------
def test_unanswered_section_scores_zero(catalogue):
    result = compute_section_score("s1", {}, catalogue)

    assert result["percentage"] == 0
    for key, value in ZERO_COUNTS.items():
        assert result[key] == value
    assert result["total_questions"] == 2
    assert result["unanswered_count"] == 2


def test_all_compliant_section_is_100(catalogue):
    answers = {"q1": "compliant", "q2": "compliant"}

    assert compute_section_score("s1", answers, catalogue)["percentage"] == 100


def test_weighted_section_scenario(catalogue):
    """Weight 3 answered no (1*3) and weight 1 answered yes (3*1): 6 of 12."""
    answers = {"q1": "non_compliant", "q2": "compliant"}

    result = compute_section_score("s1", answers, catalogue)

    assert result["percentage"] == 50
    assert result["compliant_count"] == 1
    assert result["gap_count"] == 1
    assert result["answered_count"] == 2
    assert result["unanswered_count"] == 0


def test_not_applicable_matches_unanswered_score(catalogue):
    with_na = compute_section_score("s1", {"q1": "partial", "q2": "not_applicable"}, catalogue)
    omitted = compute_section_score("s1", {"q1": "partial"}, catalogue)

    assert with_na["percentage"] == omitted["percentage"] == 67
    assert with_na["not_applicable_count"] == 1
    assert with_na["answered_count"] == 2
    assert with_na["unanswered_count"] == 0
    assert omitted["not_applicable_count"] == 0
    assert omitted["unanswered_count"] == 1


def test_all_not_applicable_scores_zero(catalogue):
    answers = {"q1": "not_applicable", "q2": "not_applicable"}

    result = compute_section_score("s1", answers, catalogue)

    assert result["percentage"] == 0
    assert result["not_applicable_count"] == 2


def test_unknown_section_scores_zero(catalogue):
    result = compute_section_score("missing", {"q1": "compliant"}, catalogue)

    assert result["percentage"] == 0
    assert result["total_questions"] == 0
    assert result["unanswered_count"] == 0


def test_overall_is_flattened_weighted_average(catalogue):
    # s1: (9 + 1) / 12 -> 83%, s2: (2 + 3) / 9 -> 56%; mean of sections would be ~70
    answers = {
        "q1": "compliant",
        "q2": "non_compliant",
        "q3": "non_compliant",
        "q4": "compliant",
    }
    s1 = compute_section_score("s1", answers, catalogue)["percentage"]
    s2 = compute_section_score("s2", answers, catalogue)["percentage"]

    overall = compute_overall_score(answers, catalogue)

    assert (s1, s2) == (83, 56)
    assert overall == 71  # 15 / 21
    assert overall != round_half_up((s1 + s2) / 2)


def test_overall_ignores_unknown_ids_and_bad_values(catalogue):
    answers = {"ghost": "non_compliant", "q1": "compliant", "q2": "maybe"}

    assert compute_overall_score(answers, catalogue) == 100


def test_empty_catalogue_is_total(empty_catalogue):
    assert compute_overall_score({"q1": "compliant"}, empty_catalogue) == 0
    assert compute_section_scores({}, empty_catalogue) == []
    assert derive_findings({"q1": "partial"}, empty_catalogue) == []


def test_section_scores_follow_catalogue_order(catalogue):
    scores = compute_section_scores({"q3": "partial"}, catalogue)

    assert [s["section_id"] for s in scores] == ["s1", "s2"]
    assert scores[1]["percentage"] == 67
    assert scores[1]["band"]["label"] == "Developing"
    assert scores[0]["band"]["label"] == "Critical gaps"


@pytest.mark.parametrize("x, expected", [(0.5, 1), (2.5, 3), (12.5, 13), (66.4, 66), (99.99, 100)])
def test_round_half_up(x, expected):
    assert round_half_up(x) == expected


# ----------- Banding -------------
@pytest.mark.parametrize(
    "percentage, label, tier",
    [
        (100, "Strong", "positive"),
        (80, "Strong", "positive"),
        (79, "Developing", "caution"),
        (60, "Developing", "caution"),
        (59, "Weak", "warning"),
        (40, "Weak", "warning"),
        (39, "Critical gaps", "severe"),
        (0, "Critical gaps", "severe"),
    ],
)
def test_band_boundaries(percentage, label, tier):
    band = band_score(percentage)

    assert band["label"] == label
    assert band["tier"] == tier


# ----------- Gaps -------------
def test_findings_only_for_partial_and_non_compliant(catalogue):
    answers = {"q1": "compliant", "q2": "not_applicable", "q4": "partial"}

    findings = derive_findings(answers, catalogue)

    assert [f["question_id"] for f in findings] == ["q4"]


def test_empty_answers_yield_no_findings(catalogue):
    assert derive_findings({}, catalogue) == []


def test_priority_scenario_partial_vs_non_compliant(catalogue):
    partial = derive_findings({"q1": PARTIAL}, catalogue)[0]
    gap = derive_findings({"q1": NON_COMPLIANT}, catalogue)[0]

    assert partial["priority_score"] == 11
    assert gap["priority_score"] == 12
    assert priority_score("critical", "quick", PARTIAL) == 11


def test_fallbacks_for_missing_severity_and_effort(catalogue):
    q3 = catalogue.questions["q3"]

    assert resolve_severity(q3) == "medium"
    assert resolve_effort(q3) == "moderate"

    finding = derive_findings({"q3": "non_compliant"}, catalogue)[0]
    assert finding["severity"] == "medium"
    assert finding["effort"] == "moderate"
    assert finding["priority_score"] == 7
    assert finding["remediation"] == "Search guidance."


def test_severity_inferred_from_weight(catalogue):
    q1 = catalogue.questions["q1"]._replace(severity=None)
    q2 = catalogue.questions["q2"]._replace(severity=None)

    assert resolve_severity(q1) == "high"
    assert resolve_severity(q2) == "low"


def test_unknown_tags_fall_back_to_middle_scores():
    assert priority_score("extreme", "instant", PARTIAL) == 2 * 2 + 2


def test_findings_sorted_by_priority_with_stable_ties(catalogue):
    answers = {
        "q1": "partial",  # 11
        "q2": "non_compliant",  # 6
        "q3": "non_compliant",  # 7
        "q4": "partial",  # 7
    }

    findings = derive_findings(answers, catalogue)

    assert [f["question_id"] for f in findings] == ["q1", "q3", "q4", "q2"]
    assert [f["priority_score"] for f in findings] == [11, 7, 7, 6]
    assert findings[0]["section_label"] == "Section One"


def test_urgent_gaps_are_critical_and_not_started(catalogue):
    findings = derive_findings({"q1": "non_compliant", "q4": "non_compliant"}, catalogue)

    assert [f["question_id"] for f in urgent_gaps(findings)] == ["q1"]
    assert urgent_gaps(derive_findings({"q1": "partial"}, catalogue)) == []


# ----------- Summary & report -------------
def test_summary_counts(catalogue):
    answers = {
        "q1": "partial",
        "q2": "non_compliant",
        "q3": "non_compliant",
        "q4": "partial",
    }
    findings = derive_findings(answers, catalogue)

    summary = build_executive_summary(45, findings)

    assert summary["critical_count"] == 1
    assert summary["high_count"] == 1
    assert summary["medium_count"] == 1
    assert summary["low_count"] == 1
    assert summary["quick_win_count"] == 2
    assert summary["narrative"] == NARRATIVES["warning"]


@pytest.mark.parametrize(
    "overall, tier", [(80, "positive"), (79, "caution"), (60, "caution"), (40, "warning"), (39, "severe")]
)
def test_summary_narrative_follows_bands(overall, tier):
    assert build_executive_summary(overall, [])["narrative"] == NARRATIVES[tier]


def test_report_is_recomputed_from_answers(catalogue):
    answers = {"q1": "non_compliant", "q2": "compliant"}

    first = build_report(answers, catalogue)
    answers["q1"] = "compliant"
    second = build_report(answers, catalogue)

    assert first["overall_percentage"] == 50
    assert first["band"]["label"] == "Weak"
    assert len(first["findings"]) == 1
    assert first["urgent_gaps"][0]["question_id"] == "q1"
    assert first["answered_count"] == 2
    assert first["total_questions"] == 4
    assert second["overall_percentage"] == 100
    assert second["findings"] == []
    assert second["summary"]["narrative"] == NARRATIVES["positive"]


def test_shipped_catalogue_extremes():
    all_ids = [
        "gov-1", "gov-2", "gov-3", "gov-4", "gov-5", "gov-6",
        "rec-1", "rec-2", "rec-3", "rec-4", "rec-5",
    ]
    yes = build_report({qid: "compliant" for qid in all_ids})
    no = build_report({qid: "non_compliant" for qid in all_ids})

    assert yes["overall_percentage"] == 100
    assert yes["band"]["label"] == "Strong"
    assert no["overall_percentage"] == 33
    assert no["band"]["label"] == "Critical gaps"
    assert len(no["findings"]) == len(all_ids)
    # critical quick wins that were not started rank first, in catalogue order
    assert no["findings"][0]["question_id"] == "gov-2"
    assert no["findings"][0]["priority_score"] == 12
