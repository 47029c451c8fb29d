"""Tests for the Dash layout builders, figures and callbacks."""

import logging

import plotly.graph_objects as go
import pytest
from dash.exceptions import PreventUpdate

import app
from config import NEUTRAL_COLOR
from engine import CATALOGUE, build_catalogue, build_report


def test_question_has_no_default_answer():
    row = app.build_question(CATALOGUE.questions["gov-1"])
    radio = row.children[1]

    assert radio.value is None
    assert [o["value"] for o in radio.options] == [
        "compliant",
        "partial",
        "non_compliant",
        "not_applicable",
    ]


def test_high_priority_badge_only_for_weight_three():
    heavy = app.build_question(CATALOGUE.questions["gov-1"])
    light = app.build_question(CATALOGUE.questions["gov-5"])

    assert len(heavy.children[0].children) == 2
    assert len(light.children[0].children) == 1


def test_one_card_per_section():
    cards = app.build_section_cards()

    assert len(cards) == len(CATALOGUE.sections)


def test_bar_figure_uses_band_colours():
    report = build_report({"gov-1": "compliant", "rec-1": "non_compliant"})

    fig = app.bar_figure(report["section_scores"])

    assert isinstance(fig, go.Figure)
    assert list(fig.data[0].y)[:2] == [100, 33]
    assert fig.data[0].marker.color[0] == report["section_scores"][0]["band"]["color"]


def test_radar_figure_closes_the_loop():
    report = build_report({})

    fig = app.radar_figure(report["section_scores"], theme="dark")

    assert len(fig.data[0].r) == len(CATALOGUE.sections) + 1


def test_action_cards_highlight_urgent_gaps():
    report = build_report({"gov-1": "non_compliant", "gov-3": "partial"})

    cards = app.action_cards(report["findings"])

    assert [c.className for c in cards] == ["action urgent", "action"]


def test_action_table_rows():
    report = build_report({"gov-1": "non_compliant", "gov-3": "partial"})

    table = app.action_table(report["findings"])

    assert len(table.children[1].children) == 2


def _odd_severity_findings():
    catalogue = build_catalogue(
        [{"id": "s", "label": "Only section"}],
        [{"id": "q", "section": "s", "text": "Odd question", "weight": 2, "severity": "severe", "effort": "quick"}],
    )
    return build_report({"q": "partial"}, catalogue)["findings"]


def test_action_cards_tolerate_unknown_severity():
    cards = app.action_cards(_odd_severity_findings())

    severity = cards[0].children[0].children[1]
    assert severity.children == "severe"
    assert severity.style == {"color": NEUTRAL_COLOR}


def test_action_table_tolerates_unknown_severity():
    table = app.action_table(_odd_severity_findings())

    cell = table.children[1].children[0].children[1]
    assert cell.children == "severe"
    assert cell.style == {"color": NEUTRAL_COLOR}


# -------- Callbacks ------------------
def _ids(*qids):
    return [{"type": "q-input", "qid": qid} for qid in qids]


def test_on_answer_skips_unanswered_questions():
    answers = app.on_answer(["compliant", None, "partial"], _ids("gov-1", "gov-2", "gov-3"))

    assert answers == {"gov-1": "compliant", "gov-3": "partial"}


def test_on_answer_logs_and_skips_bad_input(caplog):
    with caplog.at_level(logging.WARNING, logger="app"):
        answers = app.on_answer(["compliant", "yes", "partial"], _ids("ghost", "gov-1", "gov-2"))

    assert answers == {"gov-2": "partial"}
    assert "ghost" in caplog.text
    assert "gov-1" in caplog.text


def test_on_answer_handles_empty_inputs():
    assert app.on_answer(None, None) == {}


def test_update_progress_per_section():
    answers = {qid: "compliant" for qid in CATALOGUE.sections[0].question_ids}
    answers["rec-1"] = "not_applicable"

    overall, per_section = app.update_progress(answers)

    assert overall == f"{len(answers)} of {CATALOGUE.total_questions()} questions answered"
    assert per_section[0] == "Complete · 100%"
    assert per_section[1] == f"1/{len(CATALOGUE.sections[1].question_ids)} answered"
    assert len(per_section) == len(CATALOGUE.sections)


def test_update_results_needs_a_store():
    with pytest.raises(PreventUpdate):
        app.update_results(None, "light", "Acme", None, None, None)


def test_update_results_renders_report():
    meta, summary, bar, radar, urgent, plan, table = app.update_results(
        {"gov-1": "non_compliant"}, "light", "Acme", "Technology", None, None
    )

    assert meta == "Acme · Technology"
    assert isinstance(bar, go.Figure)
    assert len(plan) == 1
    assert urgent[0].children == "1 urgent gap"


def test_update_results_without_findings():
    *_, plan, table = app.update_results({}, "dark", None, None, None, None)

    assert plan[0].children == "No gaps identified."
    assert table == []


@pytest.mark.parametrize("org, blocked", [(None, True), ("   ", True), ("Acme", False)])
def test_report_requires_organisation_name(org, blocked):
    *disabled, hint = app.require_org_name(org)

    assert disabled == [blocked] * 4
    assert bool(hint) is blocked


def test_switch_to_results_needs_organisation_name():
    assert app.switch_to_results(1, "Acme") == "tab-results"
    with pytest.raises(PreventUpdate):
        app.switch_to_results(1, "")


def test_apply_theme():
    assert app.apply_theme(True) == ("page theme-dark", "dark")
    assert app.apply_theme(False) == ("page theme-light", "light")
