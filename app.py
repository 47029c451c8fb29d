# app.py

import logging

import dash
import dash_daq as daq
import plotly.graph_objects as go
from dash import ALL, Input, Output, State, dcc, html

from config import (DEBUG, DSAR_VOLUMES, EFFORT_LABELS, EFFORT_TARGETS, HOST,
                    LOG_LEVEL, METHOD_NOTE, NEUTRAL_COLOR, OPTIONS, ORG_SIZES,
                    PORT, SECTORS, SEVERITY_COLORS, SEVERITY_LABELS,
                    STATUS_LABELS, TITLE)
from engine import (CATALOGUE, InvalidAnswerError, UnknownQuestionError,
                    build_report, compute_section_score, set_answer, truncate)
from exports import (findings_frame, meta_line, quick_win_line,
                     write_pdf_bytes, write_ppt_bytes)

logger = logging.getLogger(__name__)

app = dash.Dash(__name__, suppress_callback_exceptions=True)
app.title = TITLE
server = app.server


# ----------- Helpers -------------
def _severity_label(severity):
    return SEVERITY_LABELS.get(severity, severity)


def _severity_color(severity):
    return SEVERITY_COLORS.get(severity, NEUTRAL_COLOR)


def _meta(org, sector, size, volume):
    return {"org": org or "", "sector": sector or "", "size": size or "", "volume": volume or ""}


# for chart sizes
RADAR_H = 360
BAR_H = 360


def _base_fig_layout(fig, theme="light", height=360):
    """
    Apply a consistent layout to a figure.

    Sets the font and grid colours for the light/dark theme and pins the height.

    :param fig: a figure to update
    :param theme: a string, either "light" or "dark"
    :param height: the height of the figure in pixels
    :return: the updated figure
    """

    font_color = "#f6f7fb" if theme == "dark" else "#37352f"
    grid_color = "#334155" if theme == "dark" else "#e8e5e0"
    fig.update_layout(
        autosize=False,
        height=height,
        margin=dict(l=30, r=30, t=30, b=30),
        paper_bgcolor="rgba(0,0,0,0)",
        plot_bgcolor="rgba(0,0,0,0)",
        font=dict(color=font_color),
        xaxis=dict(showgrid=False, zeroline=False, linecolor=font_color, fixedrange=True),
        yaxis=dict(
            showgrid=True,
            gridcolor=grid_color,
            zeroline=False,
            linecolor=font_color,
            ticks="outside",
            fixedrange=True,
        ),
        uirevision="keep",
    )
    return fig


# -------------- Layout --------------------
def build_question(q):
    """
    Build one question row: text, priority badge, answer options and collapsible guidance.

    :param q: an engine.Question
    :return: an HTML Div
    """
    header = [html.Span(q.text, className="qtext")]
    if q.weight == 3:
        header.append(html.Span("High priority", className="badge-priority"))
    return html.Div(
        [
            html.Div(header, className="qhead"),
            dcc.RadioItems(
                id={"type": "q-input", "qid": q.id},
                options=[{"label": o["label"], "value": o["value"]} for o in OPTIONS],
                value=None,
                className="answers",
            ),
            html.Details(
                [
                    html.Summary("Why this matters"),
                    html.P(q.guidance, className="guidance"),
                    html.P(q.reference, className="reference"),
                ],
                className="help",
            ),
        ],
        className="qrow",
    )


def build_section_cards():
    """
    Build one card per catalogue section, each holding its questions in order.

    :return: a list of HTML Div elements
    """
    cards = []
    for section in CATALOGUE.sections:
        children = [
            html.H3(
                [html.Span(section.icon, className="section-icon"), section.label],
                className="section-title",
            ),
            html.Div(id={"type": "section-progress", "sid": section.id}, className="section-progress"),
        ]
        children += [build_question(CATALOGUE.questions[qid]) for qid in section.question_ids]
        cards.append(html.Div(children, className=f"section-card s-{section.id}"))
    return cards


def _field(label, control):
    return html.Div([html.Label(label), control], className="field")


app.layout = html.Div(
    id="page-root",
    className="page theme-light",
    children=[
        dcc.Store(id="answers-store", data={}),
        dcc.Store(id="theme-store", data="light"),
        # Header
        html.Div(
            [
                html.H1(TITLE),
                html.Div(
                    [
                        _field(
                            "Organisation",
                            dcc.Input(
                                id="org-name",
                                placeholder="Enter your organisation name",
                                className="textin",
                            ),
                        ),
                        _field(
                            "Sector",
                            dcc.Dropdown(
                                id="sector",
                                options=SECTORS,
                                placeholder="Select sector",
                                className="dropdown",
                            ),
                        ),
                        _field(
                            "Employees",
                            dcc.RadioItems(id="org-size", options=ORG_SIZES, className="chips"),
                        ),
                        _field(
                            "DSARs per year",
                            dcc.RadioItems(id="dsar-volume", options=DSAR_VOLUMES, className="chips"),
                        ),
                        _field(
                            "Dark mode",
                            daq.BooleanSwitch(
                                id="theme-switch",
                                on=False,
                                color="#2563eb",
                                className="theme-switch",
                            ),
                        ),
                    ],
                    className="meta",
                ),
            ],
            className="header",
        ),
        dcc.Tabs(
            id="tabs",
            value="tab-assess",
            children=[
                dcc.Tab(
                    label="Assessment",
                    value="tab-assess",
                    children=[
                        html.Div(id="progress", className="progress"),
                        html.Div(build_section_cards(), className="grid"),
                        html.Button(
                            "View Results",
                            id="view-results",
                            n_clicks=0,
                            className="primary",
                        ),
                        html.Div(id="org-hint", className="muted"),
                    ],
                ),
                dcc.Tab(
                    label="Readiness Report",
                    value="tab-results",
                    children=[
                        html.Div(id="report-meta", className="report-meta"),
                        html.Div(id="summary", className="summary"),
                        # Export controls
                        html.Div(
                            [
                                html.Button(
                                    "Download CSV",
                                    id="dl-csv",
                                    n_clicks=0,
                                    className="secondary",
                                ),
                                dcc.Download(id="dl-csv-out"),
                                html.Button(
                                    "Download PPTX",
                                    id="dl-ppt",
                                    n_clicks=0,
                                    className="secondary",
                                ),
                                dcc.Download(id="dl-ppt-out"),
                                html.Button(
                                    "Download PDF",
                                    id="dl-pdf",
                                    n_clicks=0,
                                    className="secondary",
                                ),
                                dcc.Download(id="dl-pdf-out"),
                            ],
                            className="export-row",
                        ),
                        html.Div(
                            [
                                dcc.Graph(
                                    id="bar",
                                    style={"height": f"{BAR_H}px"},
                                    config={"responsive": False, "displaylogo": False},
                                ),
                                dcc.Graph(
                                    id="radar",
                                    style={"height": f"{RADAR_H}px"},
                                    config={"responsive": False, "displaylogo": False},
                                ),
                            ],
                            className="charts",
                        ),
                        html.Div(id="urgent", className="urgent"),
                        html.H2("Prioritised action plan"),
                        html.P(
                            "Actions ranked by priority. Critical gaps with quick fixes appear first.",
                            className="muted",
                        ),
                        html.Div(id="action-plan", className="actions"),
                        html.H2("Action plan summary"),
                        html.Div(id="action-table", className="action-table"),
                        html.P(METHOD_NOTE, className="method-note"),
                    ],
                ),
            ],
        ),
    ],
)


# ---------- Figures (fixed sizes, consistent) ------------------
def bar_figure(section_scores, theme="light"):
    """
    Return a bar chart of section percentages, each bar coloured by its band.

    Args:
        section_scores (list): `section_scores` of a report
        theme (str, optional): light or dark. Defaults to "light".

    Returns:
        go.Figure: bar figure
    """
    labels = [s["label"] for s in section_scores]
    fig = go.Figure(
        go.Bar(
            x=labels,
            y=[s["percentage"] for s in section_scores],
            marker_color=[s["band"]["color"] for s in section_scores],
            text=[f"{s['percentage']}%" for s in section_scores],
            textposition="outside",
        )
    )
    fig.update_layout(
        xaxis=dict(categoryorder="array", categoryarray=labels),
        yaxis=dict(range=[0, 105], tick0=0, dtick=20),
    )
    return _base_fig_layout(fig, theme, height=BAR_H)


def radar_figure(section_scores, theme="light"):
    vals = [s["percentage"] for s in section_scores]
    cats = [s["label"] for s in section_scores]
    if cats:
        cats, vals = cats + [cats[0]], vals + [vals[0]]

    grid_color = "#334155" if theme == "dark" else "#e8e5e0"
    fig = go.Figure(
        go.Scatterpolar(r=vals, theta=cats, fill="toself", name="Readiness", line=dict(width=2))
    )
    fig.update_layout(
        polar=dict(
            radialaxis=dict(range=[0, 100], autorange=False, dtick=20, gridcolor=grid_color),
            angularaxis=dict(gridcolor=grid_color),
        ),
    )
    return _base_fig_layout(fig, theme, height=RADAR_H)


def summary_children(report):
    band = report["band"]
    summary = report["summary"]
    counts = [
        html.Span(
            f"● {summary[f'{sev}_count']} {sev}",
            style={"color": SEVERITY_COLORS[sev]},
            className="count",
        )
        for sev in ("critical", "high", "medium", "low")
        if summary[f"{sev}_count"]
    ]
    children = [
        html.Div(f"{report['overall_percentage']}%", className="score", style={"color": band["color"]}),
        html.Div(band["label"], className="band", style={"color": band["color"]}),
        html.P(summary["narrative"], className="narrative"),
        html.Div(counts, className="counts"),
        html.P(
            f"{report['answered_count']} of {report['total_questions']} questions answered.",
            className="muted",
        ),
    ]
    if quick_win_line(summary):
        children.append(html.P(quick_win_line(summary), className="quick-wins"))
    return html.Div(children, style={"background": band["background"]}, className="summary-card")


def action_cards(findings):
    """
    One card per finding, in priority order, with what to do and the reference.

    Critical findings where nothing is in place are highlighted.
    """
    cards = []
    for i, f in enumerate(findings, start=1):
        urgent = f["severity"] == "critical" and f["answer"] == "non_compliant"
        cards.append(
            html.Div(
                [
                    html.Div(
                        [
                            html.Span(f"{i}", className="rank"),
                            html.Span(
                                _severity_label(f["severity"]),
                                style={"color": _severity_color(f["severity"])},
                                className="severity",
                            ),
                            html.Span(STATUS_LABELS[f["answer"]], className="status"),
                            html.Span(EFFORT_LABELS.get(f["effort"], f["effort"]), className="effort"),
                            html.Span(f["section_label"], className="section"),
                        ],
                        className="action-head",
                    ),
                    html.P(f["question"], className="action-question"),
                    html.P("What to do", className="action-label"),
                    html.P(f["remediation"], className="remediation"),
                    html.P(f["reference"], className="reference"),
                ],
                className="action urgent" if urgent else "action",
            )
        )
    return cards


def action_table(findings):
    header = html.Tr([html.Th(h) for h in ["Finding", "Severity", "Status", "Effort", "Owner", "Target"]])
    rows = [
        html.Tr(
            [
                html.Td(truncate(f["question"])),
                html.Td(_severity_label(f["severity"]), style={"color": _severity_color(f["severity"])}),
                html.Td(STATUS_LABELS[f["answer"]]),
                html.Td(EFFORT_TARGETS.get(f["effort"], "")),
                html.Td(""),
                html.Td(""),
            ]
        )
        for f in findings
    ]
    return html.Table([html.Thead(header), html.Tbody(rows)])


# -------- Callbacks ------------------
@app.callback(
    Output("answers-store", "data"),
    Input({"type": "q-input", "qid": ALL}, "value"),
    State({"type": "q-input", "qid": ALL}, "id"),
)
def on_answer(values, ids):
    """
    Rebuild the answer store from every question's current selection.

    Args:
        values (list): selected answer tag per question, None when unanswered
        ids (list): matching component ids

    Returns:
        dict: mapping of question id to answer tag
    """
    answers = {}
    for cid, value in zip(ids or [], values or []):
        try:
            answers = set_answer(answers, cid["qid"], value)
        except (UnknownQuestionError, InvalidAnswerError) as e:
            logger.warning("Skipping answer for %s: %s", cid.get("qid"), e)
    return answers


@app.callback(
    Output("progress", "children"),
    Output({"type": "section-progress", "sid": ALL}, "children"),
    Input("answers-store", "data"),
)
def update_progress(answers):
    answers = answers or {}
    per_section = []
    for section in CATALOGUE.sections:
        stats = compute_section_score(section.id, answers)
        if stats["unanswered_count"]:
            per_section.append(f"{stats['answered_count']}/{stats['total_questions']} answered")
        else:
            per_section.append(f"Complete · {stats['percentage']}%")
    total = CATALOGUE.total_questions()
    return f"{len(answers)} of {total} questions answered", per_section


@app.callback(
    Output("report-meta", "children"),
    Output("summary", "children"),
    Output("bar", "figure"),
    Output("radar", "figure"),
    Output("urgent", "children"),
    Output("action-plan", "children"),
    Output("action-table", "children"),
    Input("answers-store", "data"),
    Input("theme-store", "data"),
    Input("org-name", "value"),
    Input("sector", "value"),
    Input("org-size", "value"),
    Input("dsar-volume", "value"),
)
def update_results(answers, theme, org, sector, size, volume):
    """
    Rebuild the readiness report from the current answers and redraw the results tab.

    Returns:
        tuple: meta line, summary card, bar figure, radar figure, urgent gaps,
            action cards and action plan table
    """
    if answers is None:
        raise dash.exceptions.PreventUpdate

    report = build_report(answers)
    urgent = report["urgent_gaps"]
    urgent_children = []
    if urgent:
        urgent_children = [
            html.H3(f"{len(urgent)} urgent gap{'s' if len(urgent) > 1 else ''}"),
            html.Ul([html.Li(f"[{u['section_label']}] {u['question']}") for u in urgent]),
        ]
    findings = report["findings"]
    return (
        meta_line(_meta(org, sector, size, volume)),
        summary_children(report),
        bar_figure(report["section_scores"], theme),
        radar_figure(report["section_scores"], theme),
        urgent_children,
        action_cards(findings) or [html.P("No gaps identified.", className="muted")],
        action_table(findings) if findings else [],
    )


# Exports
@app.callback(
    Output("dl-csv-out", "data"),
    Input("dl-csv", "n_clicks"),
    State("answers-store", "data"),
    prevent_initial_call=True,
)
def download_csv(_, answers):
    """
    Download the prioritised action plan as a CSV file.

    Args:
        _ (int): Click count of the "Download CSV" button.
        answers (dict): The answer store.

    Returns:
        dict: dcc.send_data_frame payload
    """
    if not answers:
        raise dash.exceptions.PreventUpdate
    df = findings_frame(build_report(answers))
    return dcc.send_data_frame(df.to_csv, "dsar_action_plan.csv", index=False)


@app.callback(
    Output("dl-ppt-out", "data"),
    Input("dl-ppt", "n_clicks"),
    State("answers-store", "data"),
    State("org-name", "value"),
    State("sector", "value"),
    State("org-size", "value"),
    State("dsar-volume", "value"),
    prevent_initial_call=True,
)
def download_ppt(_, answers, org, sector, size, volume):
    if not answers:
        raise dash.exceptions.PreventUpdate
    report = build_report(answers)
    meta = _meta(org, sector, size, volume)
    return dcc.send_bytes(lambda b: write_ppt_bytes(b, report, meta), "DSAR_Readiness_Report.pptx")


@app.callback(
    Output("dl-pdf-out", "data"),
    Input("dl-pdf", "n_clicks"),
    State("answers-store", "data"),
    State("org-name", "value"),
    State("sector", "value"),
    State("org-size", "value"),
    State("dsar-volume", "value"),
    prevent_initial_call=True,
)
def download_pdf(_, answers, org, sector, size, volume):
    """
    Download the readiness report as a PDF file.

    Returns:
        dict: dcc.send_bytes payload

    Raises:
        dash.exceptions.PreventUpdate: If nothing has been answered yet.
    """
    if not answers:
        raise dash.exceptions.PreventUpdate
    report = build_report(answers)
    meta = _meta(org, sector, size, volume)
    return dcc.send_bytes(lambda b: write_pdf_bytes(b, report, meta), "DSAR_Readiness_Report.pdf")


# The report needs an organisation name before it can be viewed or downloaded
@app.callback(
    Output("view-results", "disabled"),
    Output("dl-csv", "disabled"),
    Output("dl-ppt", "disabled"),
    Output("dl-pdf", "disabled"),
    Output("org-hint", "children"),
    Input("org-name", "value"),
)
def require_org_name(org):
    missing = not (org or "").strip()
    hint = "Enter your organisation name to view the report." if missing else ""
    return missing, missing, missing, missing, hint


@app.callback(
    Output("tabs", "value"),
    Input("view-results", "n_clicks"),
    State("org-name", "value"),
    prevent_initial_call=True,
)
def switch_to_results(n, org):
    if not n or not (org or "").strip():
        raise dash.exceptions.PreventUpdate
    return "tab-results"


@app.callback(
    Output("page-root", "className"),
    Output("theme-store", "data"),
    Input("theme-switch", "on"),
)
def apply_theme(is_on):
    """
    Switch the questionnaire and report between light and dark mode.

    The theme name goes to theme-store so `update_results` redraws the section
    charts with matching font and grid colours.
    """
    theme = "dark" if is_on else "light"
    return f"page theme-{theme}", theme



# ---------- Main -------------------
if __name__ == "__main__":
    logging.basicConfig(
        level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    logger.info("Serving %s on %s:%s", TITLE, HOST, PORT)
    app.run(host=HOST, port=PORT, debug=DEBUG)
