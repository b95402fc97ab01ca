from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

FALLBACK_MODEL = "fallback"

# longest prompt or message accepted from a caller
MAX_INPUT_CHARS = 4000


@dataclass(frozen=True)
class DispatchOutcome:
    data: Any
    model_used: str
    used_fallback: bool
    notice: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.model_used == FALLBACK_MODEL


# -----------------------------
# REQUESTS
# -----------------------------
class CreativeRequest(BaseModel):
    prompt: Optional[str] = Field(None, max_length=MAX_INPUT_CHARS)
    model: Optional[str] = None
    max_length: Optional[int] = Field(None, gt=0)
    temperature: Optional[float] = Field(None, gt=0)
    api_key: Optional[str] = None


class SentimentRequest(BaseModel):
    prompt: Optional[str] = Field(None, max_length=MAX_INPUT_CHARS)
    model: Optional[str] = None
    api_key: Optional[str] = None


class ConversationRequest(BaseModel):
    message: Optional[str] = Field(None, max_length=MAX_INPUT_CHARS)
    past_user_inputs: List[str] = Field(default_factory=list)
    generated_responses: List[str] = Field(default_factory=list)
    model: Optional[str] = None
    min_length: Optional[int] = Field(None, gt=0)
    max_length: Optional[int] = Field(None, gt=0)
    temperature: Optional[float] = Field(None, gt=0)
    api_key: Optional[str] = None


# -----------------------------
# RESULTS
# -----------------------------
class TaskResult(BaseModel):
    model_used: str
    fallback_used: bool
    notice: Optional[str] = None


class CreativeResult(TaskResult):
    generated_text: str
    formatted_markdown: str


class SentimentResult(TaskResult):
    sentiment_results: List[Any] = Field(default_factory=list)


class ConversationResult(TaskResult):
    # upstream conversation fields (conversation, warnings...) pass through
    model_config = ConfigDict(extra="allow")

    generated_text: str = ""
    formatted_markdown: str = ""


class ApiEnvelope(BaseModel):
    success: bool = True
    result: Dict[str, Any]
