import pytest

from engine import build_catalogue

SECTIONS = [
    {"id": "s1", "label": "Section One", "icon": "§1"},
    {"id": "s2", "label": "Section Two", "icon": "§2"},
]

QUESTIONS = [
    {
        "id": "q1",
        "section": "s1",
        "text": "Is there a documented policy?",
        "guidance": "Policy guidance.",
        "reference": "Ref 1",
        "weight": 3,
        "severity": "critical",
        "effort": "quick",
        "remediation": "Write the policy.",
    },
    {
        "id": "q2",
        "section": "s1",
        "text": "Is there a request log?",
        "guidance": "Log guidance.",
        "reference": "Ref 2",
        "weight": 1,
        "severity": "low",
        "effort": "quick",
        "remediation": "Start a log.",
    },
    # no severity, effort or remediation: fallbacks apply
    {
        "id": "q3",
        "section": "s2",
        "text": "Are searches documented?",
        "guidance": "Search guidance.",
        "reference": "Ref 3",
        "weight": 2,
    },
    {
        "id": "q4",
        "section": "s2",
        "text": "Are exemptions recorded?",
        "guidance": "Exemption guidance.",
        "reference": "Ref 4",
        "weight": 1,
        "severity": "high",
        "effort": "significant",
        "remediation": "Record exemptions.",
    },
]


@pytest.fixture
def catalogue():
    """Two sections with mixed weights, one question relying on fallbacks."""
    return build_catalogue(SECTIONS, QUESTIONS)


@pytest.fixture
def empty_catalogue():
    return build_catalogue([], [])
