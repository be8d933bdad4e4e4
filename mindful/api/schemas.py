from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List, Literal

from ..chat.types import ChatTurn

class ChatTurnIn(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str

    def to_turn(self) -> ChatTurn:
        return ChatTurn(role=self.role, content=self.content)

class ChatRequestIn(BaseModel):
    messages: List[ChatTurnIn] = Field(min_length=1)

class ChatResultOut(BaseModel):
    response: str
    isEmergency: bool
    isError: bool
    isCancelled: bool = False
    errorKind: Optional[str] = None

class ProxyGenerateIn(BaseModel):
    # left loose: the route reports an empty/missing contents as 400 itself
    contents: Optional[List[Dict[str, Any]]] = None
    generationConfig: Optional[Dict[str, Any]] = None
    safetySettings: Optional[List[Dict[str, Any]]] = None
    model: Optional[str] = None

class ProxyGenerateOut(BaseModel):
    text: str
    raw: Dict[str, Any]

class AssessmentOption(BaseModel):
    value: str
    label: str
    score: int

class AssessmentQuestion(BaseModel):
    id: str
    question: str
    category: str
    options: List[AssessmentOption]

class AssessmentAnswersIn(BaseModel):
    answers: Dict[str, str]

class AssessmentResultOut(BaseModel):
    overallScore: int
    categoryScores: Dict[str, float]
    severity: str
    primaryConcern: str
    suggestedApproach: str
    riskFactors: List[str]
