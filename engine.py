# engine.py

import logging
from types import MappingProxyType
from typing import NamedTuple, Optional

import numpy as np
import pandas as pd

from config import (BANDS, EFFORT_SCORE, NARRATIVES, OPTIONS, QUESTIONS,
                    SECTIONS, SEVERITY_WEIGHT)

logger = logging.getLogger(__name__)

COMPLIANT = "compliant"
PARTIAL = "partial"
NON_COMPLIANT = "non_compliant"
NOT_APPLICABLE = "not_applicable"

ANSWER_VALUES = tuple(o["value"] for o in OPTIONS)
ANSWER_SCORES = {o["value"]: o["score"] for o in OPTIONS if o["score"] is not None}
MAX_ANSWER_SCORE = max(ANSWER_SCORES.values())
GAP_ANSWERS = (PARTIAL, NON_COMPLIANT)

RESPONSE_COLUMNS = ["id", "section_id", "weight", "answer"]


class CatalogueError(ValueError):
    """Raised when the question catalogue breaks an integrity rule."""


class UnknownQuestionError(KeyError):
    pass


class InvalidAnswerError(ValueError):
    pass


class Question(NamedTuple):
    id: str
    section_id: str
    text: str
    guidance: str
    reference: str
    weight: int
    severity: Optional[str]
    effort: Optional[str]
    remediation: str


class Section(NamedTuple):
    id: str
    label: str
    icon: str
    question_ids: tuple


class Catalogue(NamedTuple):
    sections: tuple
    questions: MappingProxyType

    def total_questions(self):
        return len(self.questions)


# ----------- Catalogue -------------
def build_catalogue(sections, questions) -> Catalogue:
    """
    Freeze the raw section and question tables into a read-only Catalogue.

    Questions keep their table order within each section. Unknown severity or
    effort tags are logged and left to the fallback rules.

    :param sections: ordered list of section dicts with "id", "label" and "icon"
    :param questions: ordered list of question dicts with a "section" key
    :return: an immutable Catalogue
    :raises CatalogueError: on duplicate ids, dangling section references or bad weights
    """
    section_ids = [s["id"] for s in sections]
    dupes = sorted({sid for sid in section_ids if section_ids.count(sid) > 1})
    if dupes:
        raise CatalogueError(f"Duplicate section ids: {dupes}")

    members = {sid: [] for sid in section_ids}
    frozen = {}
    for q in questions:
        qid = q["id"]
        if qid in frozen:
            raise CatalogueError(f"Duplicate question id: {qid}")
        if q["section"] not in members:
            raise CatalogueError(f"Question {qid} references unknown section {q['section']!r}")
        if q.get("weight") not in (1, 2, 3):
            raise CatalogueError(f"Question {qid} has weight {q.get('weight')!r}; expected 1, 2 or 3")
        severity, effort = q.get("severity"), q.get("effort")
        if severity is not None and severity not in SEVERITY_WEIGHT:
            logger.warning("Question %s has unknown severity %r", qid, severity)
        if effort is not None and effort not in EFFORT_SCORE:
            logger.warning("Question %s has unknown effort %r", qid, effort)
        frozen[qid] = Question(
            id=qid,
            section_id=q["section"],
            text=q["text"],
            guidance=q.get("guidance", ""),
            reference=q.get("reference", ""),
            weight=int(q["weight"]),
            severity=severity,
            effort=effort,
            remediation=q.get("remediation", ""),
        )
        members[q["section"]].append(qid)

    empty = [sid for sid, qids in members.items() if not qids]
    if empty:
        logger.warning("Sections without questions: %s", empty)

    return Catalogue(
        sections=tuple(
            Section(s["id"], s["label"], s.get("icon", ""), tuple(members[s["id"]]))
            for s in sections
        ),
        questions=MappingProxyType(frozen),
    )


CATALOGUE = build_catalogue(SECTIONS, QUESTIONS)


# ----------- Answer store -------------
def set_answer(answers, question_id, value, catalogue=None):
    """
    Return a copy of `answers` with `question_id` set to `value`.

    Passing ``None`` as the value clears the answer. The input mapping is left untouched.
    """
    catalogue = catalogue or CATALOGUE
    if question_id not in catalogue.questions:
        raise UnknownQuestionError(question_id)
    updated = dict(answers or {})
    if value is None:
        updated.pop(question_id, None)
        return updated
    if value not in ANSWER_VALUES:
        raise InvalidAnswerError(f"Invalid answer {value!r} for {question_id}; expected one of {ANSWER_VALUES}")
    updated[question_id] = value
    return updated


def clean_answers(answers, catalogue=None):
    """Drop answers for questions not in the catalogue and values that are not answer tags."""
    catalogue = catalogue or CATALOGUE
    cleaned = {}
    for qid, value in (answers or {}).items():
        if qid not in catalogue.questions:
            logger.debug("Ignoring answer for unknown question %s", qid)
        elif value not in ANSWER_VALUES:
            logger.warning("Ignoring invalid answer %r for %s", value, qid)
        else:
            cleaned[qid] = value
    return cleaned


# ----------- Scoring -------------
def round_half_up(x) -> int:
    return int(np.floor(x + 0.5))


def _responses_frame(answers, catalogue, section_ids=None):
    answers = clean_answers(answers, catalogue)
    rows = []
    for section in catalogue.sections:
        if section_ids is not None and section.id not in section_ids:
            continue
        for qid in section.question_ids:
            rows.append(
                {
                    "id": qid,
                    "section_id": section.id,
                    "weight": catalogue.questions[qid].weight,
                    "answer": answers.get(qid),
                }
            )
    return pd.DataFrame(rows, columns=RESPONSE_COLUMNS)


def _weighted_percentage(resp_df):
    """
    Weighted score of the scored answers in `resp_df` as a 0-100 integer.

    Unanswered and not-applicable rows add nothing to either side of the ratio.
    """
    scored = resp_df[resp_df["answer"].isin(list(ANSWER_SCORES))]
    if scored.empty:
        return 0
    weights = scored["weight"].astype(float)
    weighted_score = (scored["answer"].map(ANSWER_SCORES) * weights).sum()
    weighted_max = (MAX_ANSWER_SCORE * weights).sum()
    if weighted_max <= 0:
        return 0
    return round_half_up(100 * weighted_score / weighted_max)


def compute_section_score(section_id, answers, catalogue=None):
    """
    Compute the weighted percentage and answer counts for one section.

    Args:
        section_id (str): section identifier; an unknown id yields an all-zero result
        answers (dict): mapping of question id to answer tag
        catalogue (Catalogue, optional): defaults to the shipped catalogue

    Returns:
        dict: percentage, answered_count, compliant_count, partial_count, gap_count,
            not_applicable_count, total_questions, unanswered_count
    """
    catalogue = catalogue or CATALOGUE
    resp_df = _responses_frame(answers, catalogue, section_ids={section_id})
    counts = resp_df["answer"].value_counts()
    total = len(resp_df)
    answered = int(resp_df["answer"].notna().sum())
    return {
        "percentage": _weighted_percentage(resp_df),
        "answered_count": answered,
        "compliant_count": int(counts.get(COMPLIANT, 0)),
        "partial_count": int(counts.get(PARTIAL, 0)),
        "gap_count": int(counts.get(NON_COMPLIANT, 0)),
        "not_applicable_count": int(counts.get(NOT_APPLICABLE, 0)),
        "total_questions": total,
        "unanswered_count": total - answered,
    }


def compute_overall_score(answers, catalogue=None) -> int:
    """Weighted percentage across every question in every section, not a mean of sections."""
    catalogue = catalogue or CATALOGUE
    return _weighted_percentage(_responses_frame(answers, catalogue))


def compute_section_scores(answers, catalogue=None):
    catalogue = catalogue or CATALOGUE
    scores = []
    for section in catalogue.sections:
        metrics = compute_section_score(section.id, answers, catalogue)
        scores.append(
            {
                "section_id": section.id,
                "label": section.label,
                **metrics,
                "band": band_score(metrics["percentage"]),
            }
        )
    return scores


# ----------- Banding -------------
def _band_row(percentage):
    for row in BANDS:
        if percentage >= row["min"]:
            return row
    return BANDS[-1]


def band_score(percentage):
    """
    Map a percentage to its readiness band.

    80+ -> Strong, 60-79 -> Developing, 40-59 -> Weak, below 40 -> Critical gaps.
    """
    row = _band_row(percentage)
    return {k: row[k] for k in ("label", "tier", "color", "background")}


# ----------- Gaps & recommendations -------------
def resolve_severity(question) -> str:
    """Severity of a question, inferred from its weight when the catalogue leaves it out."""
    if question.severity:
        return question.severity
    if question.weight == 3:
        return "high"
    if question.weight == 2:
        return "medium"
    return "low"


def resolve_effort(question) -> str:
    return question.effort or "moderate"


def severity_weight(severity) -> int:
    return SEVERITY_WEIGHT.get(severity, 2)


def effort_score(effort) -> int:
    return EFFORT_SCORE.get(effort, 2)


def priority_score(severity, effort, answer) -> int:
    """
    Rank a finding: severity counts double, cheap fixes come next, and an answer of
    "not started" adds one point over "partially in place".
    """
    return severity_weight(severity) * 2 + effort_score(effort) + (1 if answer == NON_COMPLIANT else 0)


def derive_findings(answers, catalogue=None):
    """
    Return one finding per question answered partial or non-compliant, best first.

    Findings are collected in catalogue order (section, then question) and sorted by
    priority score descending. The sort is stable, so equal scores keep catalogue order.

    Args:
        answers (dict): mapping of question id to answer tag
        catalogue (Catalogue, optional): defaults to the shipped catalogue

    Returns:
        list: finding dicts
    """
    catalogue = catalogue or CATALOGUE
    answers = clean_answers(answers, catalogue)
    items = []
    for section in catalogue.sections:
        for qid in section.question_ids:
            answer = answers.get(qid)
            if answer not in GAP_ANSWERS:
                continue
            q = catalogue.questions[qid]
            severity = resolve_severity(q)
            effort = resolve_effort(q)
            items.append(
                {
                    "section_id": section.id,
                    "section_label": section.label,
                    "question_id": qid,
                    "question": q.text,
                    "answer": answer,
                    "weight": q.weight,
                    "severity": severity,
                    "effort": effort,
                    "reference": q.reference,
                    "guidance": q.guidance,
                    "remediation": q.remediation or q.guidance,
                    "priority_score": priority_score(severity, effort, answer),
                }
            )
    return sorted(items, key=lambda x: x["priority_score"], reverse=True)


def urgent_gaps(findings):
    """Critical findings where nothing is in place yet."""
    return [f for f in findings if f["severity"] == "critical" and f["answer"] == NON_COMPLIANT]


def truncate(text, limit=80):
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "…"


# ----------- Summary & report -------------
def build_executive_summary(overall_percentage, findings):
    """
    Count findings by severity and quick wins, and pick the narrative for the overall band.

    Args:
        overall_percentage (int): overall weighted score
        findings (list): output of `derive_findings`

    Returns:
        dict: narrative, critical_count, high_count, medium_count, low_count, quick_win_count
    """
    findings = list(findings or [])

    def count(key, value):
        return sum(1 for f in findings if f.get(key) == value)

    return {
        "narrative": NARRATIVES[_band_row(overall_percentage)["tier"]],
        "critical_count": count("severity", "critical"),
        "high_count": count("severity", "high"),
        "medium_count": count("severity", "medium"),
        "low_count": count("severity", "low"),
        "quick_win_count": count("effort", "quick"),
    }


def build_report(answers, catalogue=None):
    """
    Build the full results view from the current answers.

    Nothing is cached; call again after every answer change.
    """
    catalogue = catalogue or CATALOGUE
    answers = clean_answers(answers, catalogue)
    overall = compute_overall_score(answers, catalogue)
    findings = derive_findings(answers, catalogue)
    logger.debug(
        "Report built: %d/%d answered, overall %d%%, %d findings",
        len(answers),
        catalogue.total_questions(),
        overall,
        len(findings),
    )
    return {
        "overall_percentage": overall,
        "band": band_score(overall),
        "section_scores": compute_section_scores(answers, catalogue),
        "findings": findings,
        "summary": build_executive_summary(overall, findings),
        "urgent_gaps": urgent_gaps(findings),
        "answered_count": len(answers),
        "total_questions": catalogue.total_questions(),
    }
