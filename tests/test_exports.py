"""Tests for CSV, PDF and PPTX rendering of the readiness report."""

import io

import pytest

from engine import build_report
from exports import (FINDING_COLUMNS, findings_frame, meta_line,
                     quick_win_line, write_pdf_bytes, write_ppt_bytes)

META = {"org": "Acme & Sons", "sector": "Technology", "size": "50–249", "volume": "11–50"}


@pytest.fixture
def report(catalogue):
    answers = {"q1": "non_compliant", "q2": "partial", "q3": "compliant", "q4": "not_applicable"}
    return build_report(answers, catalogue)


def test_findings_frame_in_priority_order(report):
    df = findings_frame(report)

    assert list(df.columns) == FINDING_COLUMNS
    assert df["priority"].tolist() == [1, 2]
    assert df["question"].tolist() == ["Is there a documented policy?", "Is there a request log?"]
    assert df.loc[0, "severity"] == "Critical"
    assert df.loc[0, "status"] == "Not started"
    assert df.loc[1, "status"] == "Partial"
    assert df.loc[0, "target"] == "< 1 day"


def test_findings_frame_empty(catalogue):
    df = findings_frame(build_report({}, catalogue))

    assert df.empty
    assert list(df.columns) == FINDING_COLUMNS


def test_meta_line():
    assert meta_line(META) == "Acme & Sons · Technology · 50–249 employees · 11–50 DSARs a year"
    assert meta_line({"org": "Acme"}) == "Acme"
    assert meta_line(None) == ""


def test_quick_win_line():
    assert quick_win_line({"quick_win_count": 0}) == ""
    assert quick_win_line({"quick_win_count": 1}).startswith("1 quick win identified")
    assert quick_win_line({"quick_win_count": 3}).startswith("3 quick wins identified")


def test_pdf_export(report):
    buf = io.BytesIO()

    write_pdf_bytes(buf, report, META)

    assert buf.getvalue().startswith(b"%PDF")


def test_pdf_export_without_findings(catalogue):
    buf = io.BytesIO()

    write_pdf_bytes(buf, build_report({}, catalogue))

    assert buf.getvalue().startswith(b"%PDF")


def test_ppt_export(report):
    buf = io.BytesIO()

    write_ppt_bytes(buf, report, META)

    # pptx files are zip archives
    assert buf.getvalue()[:2] == b"PK"


def test_ppt_export_without_findings(catalogue):
    buf = io.BytesIO()

    write_ppt_bytes(buf, build_report({}, catalogue))

    assert buf.getvalue()[:2] == b"PK"
