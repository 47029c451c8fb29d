# exports.py

import logging
from xml.sax.saxutils import escape

import pandas as pd
from pptx import Presentation
from pptx.util import Inches, Pt
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import (ListFlowable, ListItem, Paragraph,
                                SimpleDocTemplate, Spacer, Table, TableStyle)

from config import (EFFORT_LABELS, EFFORT_TARGETS, METHOD_NOTE, SEVERITY_LABELS,
                    STATUS_LABELS, TITLE)
from engine import truncate

logger = logging.getLogger(__name__)

FINDING_COLUMNS = [
    "priority",
    "section",
    "question",
    "severity",
    "status",
    "effort",
    "target",
    "remediation",
    "reference",
]


def findings_frame(report):
    """
    Flatten the report's findings into one row per action, in priority order.

    Args:
        report (dict): output of `engine.build_report`

    Returns:
        pd.DataFrame: columns as in FINDING_COLUMNS
    """
    rows = [
        {
            "priority": i,
            "section": f["section_label"],
            "question": f["question"],
            "severity": SEVERITY_LABELS.get(f["severity"], f["severity"]),
            "status": STATUS_LABELS.get(f["answer"], f["answer"]),
            "effort": EFFORT_LABELS.get(f["effort"], f["effort"]),
            "target": EFFORT_TARGETS.get(f["effort"], ""),
            "remediation": f["remediation"],
            "reference": f["reference"],
        }
        for i, f in enumerate(report.get("findings", []), start=1)
    ]
    return pd.DataFrame(rows, columns=FINDING_COLUMNS)


def meta_line(meta):
    """Organisation, sector and size joined for report headers."""
    meta = meta or {}
    parts = [meta.get("org") or ""]
    if meta.get("sector"):
        parts.append(meta["sector"])
    if meta.get("size"):
        parts.append(f"{meta['size']} employees")
    if meta.get("volume"):
        parts.append(f"{meta['volume']} DSARs a year")
    return " · ".join(p for p in parts if p)


def _counts_line(summary):
    counts = [
        (summary.get("critical_count", 0), "critical"),
        (summary.get("high_count", 0), "high"),
        (summary.get("medium_count", 0), "medium"),
        (summary.get("low_count", 0), "low"),
    ]
    return ", ".join(f"{n} {label}" for n, label in counts if n) or "No gaps identified"


def quick_win_line(summary):
    n = summary.get("quick_win_count", 0)
    if not n:
        return ""
    return f"{n} quick win{'s' if n > 1 else ''} identified — actions achievable in under a day."


def write_ppt_bytes(buf, report, meta=None):
    """
    Write a PowerPoint deck to a bytes buffer.

    1. Title slide with organisation details.
    2. Summary slide with overall score, band, narrative and gap counts.
    3. Section scores table.
    4. Prioritised action plan table.

    Args:
        buf (BytesIO): buffer to write the presentation to
        report (dict): output of `engine.build_report`
        meta (dict, optional): intake fields (org, sector, size, volume)

    Returns:
        None
    """
    prs = Presentation()
    slide = prs.slides.add_slide(prs.slide_layouts[0])
    slide.shapes.title.text = "DSAR Readiness Report"
    slide.placeholders[1].text = meta_line(meta) or TITLE

    summary = report.get("summary", {})
    band = report.get("band", {})
    slide = prs.slides.add_slide(prs.slide_layouts[1])
    slide.shapes.title.text = "Executive Summary"
    body = slide.shapes.placeholders[1].text_frame
    body.clear()
    body.paragraphs[0].text = (
        f"Overall readiness: {report.get('overall_percentage', 0)}% ({band.get('label', '')})"
    )
    body.add_paragraph().text = summary.get("narrative", "")
    body.add_paragraph().text = f"Gaps: {_counts_line(summary)}"
    if quick_win_line(summary):
        body.add_paragraph().text = quick_win_line(summary)
    for p in body.paragraphs[1:]:
        p.font.size = Pt(14)

    slide = prs.slides.add_slide(prs.slide_layouts[5])
    slide.shapes.title.text = "Section Scores"
    sections = report.get("section_scores", [])
    rows, cols = len(sections) + 1, 4
    table = slide.shapes.add_table(
        rows, cols, Inches(0.5), Inches(1.5), Inches(9.0), Inches(0.8 + 0.35 * rows)
    ).table
    for j, head in enumerate(["Section", "Score (%)", "Band", "Answered"]):
        table.cell(0, j).text = head
    for i, s in enumerate(sections, start=1):
        table.cell(i, 0).text = s["label"]
        table.cell(i, 1).text = str(s["percentage"])
        table.cell(i, 2).text = s["band"]["label"]
        table.cell(i, 3).text = f"{s['answered_count']}/{s['total_questions']}"

    df = findings_frame(report)
    slide = prs.slides.add_slide(prs.slide_layouts[5])
    slide.shapes.title.text = "Prioritised Action Plan"
    if df.empty:
        box = slide.shapes.add_textbox(Inches(0.8), Inches(1.6), Inches(8.0), Inches(1.0))
        box.text_frame.text = "No gaps identified."
    else:
        rows, cols = len(df) + 1, 5
        table = slide.shapes.add_table(
            rows, cols, Inches(0.3), Inches(1.3), Inches(9.4), Inches(0.4 + 0.3 * rows)
        ).table
        for j, head in enumerate(["Finding", "Severity", "Status", "Effort", "Target"]):
            table.cell(0, j).text = head
        for i, r in enumerate(df.itertuples(index=False), start=1):
            table.cell(i, 0).text = truncate(r.question)
            table.cell(i, 1).text = r.severity
            table.cell(i, 2).text = r.status
            table.cell(i, 3).text = r.effort
            table.cell(i, 4).text = r.target
    prs.save(buf)


_TABLE_STYLE = [
    ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#e9ebf3")),
    ("TEXTCOLOR", (0, 0), (-1, 0), colors.HexColor("#37352f")),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
    ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
    ("TOPPADDING", (0, 0), (-1, 0), 6),
]


def write_pdf_bytes(buf, report, meta=None):
    doc = SimpleDocTemplate(
        buf, pagesize=A4, leftMargin=16, rightMargin=16, topMargin=16, bottomMargin=16
    )
    styles = getSampleStyleSheet()
    avail = A4[0] - 72
    story = [
        Paragraph("<b>DSAR Readiness Report</b>", styles["Title"]),
        Spacer(1, 8),
        Paragraph(escape(meta_line(meta)), styles["Normal"]),
        Spacer(1, 10),
    ]

    summary = report.get("summary", {})
    band = report.get("band", {})
    story += [
        Paragraph(
            f"<b>Overall readiness:</b> {report.get('overall_percentage', 0)}% "
            f"({band.get('label', '')})",
            styles["Heading3"],
        ),
        Paragraph(escape(summary.get("narrative", "")), styles["Normal"]),
        Spacer(1, 6),
        Paragraph(f"Gaps: {_counts_line(summary)}", styles["Normal"]),
    ]
    if quick_win_line(summary):
        story.append(Paragraph(quick_win_line(summary), styles["Normal"]))
    story.append(Spacer(1, 12))

    # Section scores
    tbl_data = [["Section", "Score (%)", "Band", "Answered"]] + [
        [s["label"], str(s["percentage"]), s["band"]["label"], f"{s['answered_count']}/{s['total_questions']}"]
        for s in report.get("section_scores", [])
    ]
    tbl = Table(tbl_data, colWidths=[220, 80, 110, avail - 410], hAlign="LEFT")
    tbl.setStyle(TableStyle(_TABLE_STYLE + [("ALIGN", (1, 1), (1, -1), "RIGHT")]))
    story += [
        Paragraph("<b>Section Scores</b>", styles["Heading3"]),
        Spacer(1, 6),
        tbl,
        Spacer(1, 12),
    ]

    urgent = report.get("urgent_gaps", [])
    if urgent:
        bullets = ListFlowable(
            [ListItem(Paragraph(escape(f"[{u['section_label']}] {u['question']}"), styles["Normal"])) for u in urgent],
            bulletType="bullet",
        )
        story += [
            Paragraph("<b>Urgent Gaps</b>", styles["Heading3"]),
            Spacer(1, 6),
            bullets,
            Spacer(1, 12),
        ]

    findings = report.get("findings", [])
    if findings:
        story += [Paragraph("<b>Prioritised Action Plan</b>", styles["Heading3"]), Spacer(1, 6)]
        for i, f in enumerate(findings, start=1):
            story += [
                Paragraph(
                    f"<b>{i}. {escape(f['question'])}</b> "
                    f"({SEVERITY_LABELS.get(f['severity'], f['severity'])}, "
                    f"{STATUS_LABELS.get(f['answer'], f['answer'])})",
                    styles["Normal"],
                ),
                Paragraph(f"<i>{escape(f['section_label'])}</i>", styles["Normal"]),
                Paragraph(f"What to do: {escape(f['remediation'])}", styles["Normal"]),
                Paragraph(f"<i>{escape(f['reference'])}</i>", styles["Normal"]),
                Spacer(1, 8),
            ]

        df = findings_frame(report)
        plan = [["Finding", "Severity", "Status", "Target", "Owner"]] + [
            [Paragraph(escape(truncate(r.question)), styles["BodyText"]), r.severity, r.status, r.target, ""]
            for r in df.itertuples(index=False)
        ]
        plan_tbl = Table(plan, colWidths=[avail - 260, 60, 70, 60, 70], hAlign="LEFT", repeatRows=1)
        plan_tbl.setStyle(TableStyle(_TABLE_STYLE))
        story += [
            Paragraph("<b>Action Plan Summary</b>", styles["Heading3"]),
            Spacer(1, 6),
            plan_tbl,
            Spacer(1, 12),
        ]

    story.append(Paragraph(f"<font size='8'>{escape(METHOD_NOTE)}</font>", styles["Normal"]))
    doc.build(story)
    logger.info("PDF report written with %d findings", len(findings))
