from typing import List

from fastapi import APIRouter

from ...assessment.engine import score_assessment
from ...assessment.loader import load_questions
from ..schemas import AssessmentAnswersIn, AssessmentQuestion, AssessmentResultOut

router = APIRouter(prefix="/assessment", tags=["assessment"])

@router.get("/questions", response_model=List[AssessmentQuestion])
def questions():
    return load_questions()

@router.post("/score", response_model=AssessmentResultOut)
def score(payload: AssessmentAnswersIn):
    r = score_assessment(payload.answers)
    return AssessmentResultOut(
        overallScore=r.overall_score,
        categoryScores=r.category_scores,
        severity=r.severity,
        primaryConcern=r.primary_concern,
        suggestedApproach=r.suggested_approach,
        riskFactors=r.risk_factors,
    )
