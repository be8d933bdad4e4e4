from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List
from .loader import load_questionnaire

SEVERITY_MINIMAL="minimal"
SEVERITY_MILD="mild"
SEVERITY_MODERATE="moderate"
SEVERITY_SEVERE="severe"

# answers that force severe regardless of the total
SUICIDAL_OVERRIDE = ("sometimes", "often")

APPROACHES = {
    SEVERITY_MINIMAL: "Your responses suggest you are managing well overall. The chat support can provide wellness tips and stress management techniques if needed.",
    SEVERITY_MILD: "Your responses suggest mild {concern}. The chat support can offer coping strategies, and you might consider speaking with a wellness coach or counselor.",
    SEVERITY_MODERATE: "Your responses indicate moderate {concern}. The chat support can provide immediate strategies, but consider consulting a mental health professional for additional support.",
    SEVERITY_SEVERE: "Your responses suggest significant {concern}. While our chat support is available, we strongly recommend speaking with a mental health professional as soon as possible.",
}

RISK_CHECKS = [
    ("sleep", "often", "significant sleep disturbance"),
    ("interest", "less_interested", "loss of interest in activities"),
    ("anxiety", "often", "frequent anxiety"),
    ("concentration", "often", "difficulty concentrating"),
    ("disconnected", "often", "feelings of disconnection"),
]

@dataclass
class AssessmentResult:
    overall_score: int
    category_scores: Dict[str, float]
    severity: str
    primary_concern: str
    suggested_approach: str
    risk_factors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

def _severity(overall: int, max_score: int) -> str:
    pct = overall / max_score * 100 if max_score else 0.0
    if pct < 25:
        return SEVERITY_MINIMAL
    if pct < 50:
        return SEVERITY_MILD
    if pct < 75:
        return SEVERITY_MODERATE
    return SEVERITY_SEVERE

def score_assessment(answers: Dict[str, str]) -> AssessmentResult:
    data = load_questionnaire()
    categories: Dict[str, str] = data["categories"]
    sums = {c: 0 for c in categories}
    counts = {c: 0 for c in categories}

    overall = 0
    for q in data["questions"]:
        chosen = answers.get(q["id"])
        if not chosen:
            continue
        opt = next((o for o in q["options"] if o["value"] == chosen), None)
        if opt is None:
            continue
        overall += int(opt["score"])
        sums[q["category"]] += int(opt["score"])
        counts[q["category"]] += 1

    category_scores = {c: (round(sums[c] / counts[c], 2) if counts[c] else 0) for c in categories}

    # first category wins ties, in yaml order
    primary = max(categories, key=lambda c: category_scores[c])
    concern = categories[primary]

    severity = _severity(overall, int(data.get("max_score", 32)))
    if answers.get("suicidal") in SUICIDAL_OVERRIDE:
        severity = SEVERITY_SEVERE

    risks: List[str] = []
    # an unanswered question counts as a risk here
    if answers.get("suicidal") != "never":
        risks.append("thoughts of self-harm or suicide")
    for qid, value, label in RISK_CHECKS:
        if answers.get(qid) == value:
            risks.append(label)

    return AssessmentResult(
        overall_score=overall,
        category_scores=category_scores,
        severity=severity,
        primary_concern=concern,
        suggested_approach=APPROACHES[severity].format(concern=concern),
        risk_factors=risks,
    )
