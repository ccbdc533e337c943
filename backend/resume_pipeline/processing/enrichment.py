"""
AI enrichment client for an Ollama-compatible chat endpoint
"""
import base64
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from resume_pipeline.core.config import settings
from resume_pipeline.core.exceptions import AIEnrichmentFailure

logger = structlog.get_logger()

# Keep prompts within small local model context windows
MAX_PROMPT_TEXT_CHARS = 12000

ANALYSIS_PROMPT = """You are an expert resume reviewer and ATS specialist.
Analyze the resume below{image_hint} and respond with ONLY a JSON object of this shape:
{{
  "contact_info": {{"name": str|null, "email": str|null, "phone": str|null, "location": str|null, "linkedin": str|null, "github": str|null}},
  "skills": {{"technical": [str], "soft": [str], "tools": [str], "certifications": [str]}},
  "quality_score": int 0-100,
  "ats_score": int 0-100,
  "aesthetic_score": int 0-100 or null,
  "aesthetic_assessment": str or null,
  "strengths": [str],
  "improvements": [str],
  "recommendations": [str]
}}

Resume text:
{text}
"""


class ContactInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None


class Skills(BaseModel):
    technical: List[str] = Field(default_factory=list)
    soft: List[str] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)


class AnalysisPayload(BaseModel):
    """Structured analysis expected back from the model"""

    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    skills: Skills = Field(default_factory=Skills)
    quality_score: int = Field(ge=0, le=100)
    ats_score: int = Field(ge=0, le=100)
    aesthetic_score: Optional[int] = Field(default=None, ge=0, le=100)
    aesthetic_assessment: Optional[str] = None
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


@dataclass
class EnrichmentOutcome:
    ok: bool
    analysis: Optional[AnalysisPayload] = None
    model: Optional[str] = None
    error: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None


class AIEnrichmentClient:
    """Sends resume text (and optionally the first page screenshot) for structured analysis"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.AI_ENRICHMENT_BASE_URL).rstrip("/")
        self.model = model or settings.AI_ENRICHMENT_MODEL
        self.timeout = min(max(timeout, 5.0), 60.0) if timeout is not None else settings.ai_timeout_seconds
        self.api_key = api_key if api_key is not None else settings.AI_ENRICHMENT_API_KEY
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_payload(self, text: str, screenshot_png: Optional[bytes] = None) -> Dict[str, Any]:
        message: Dict[str, Any] = {
            "role": "user",
            "content": ANALYSIS_PROMPT.format(
                text=text[:MAX_PROMPT_TEXT_CHARS],
                image_hint=" (the first page is attached as an image)" if screenshot_png else "",
            ),
        }
        if screenshot_png:
            message["images"] = [base64.b64encode(screenshot_png).decode("ascii")]
        return {
            "model": self.model,
            "messages": [message],
            "stream": False,
            "format": "json",
            "options": {"temperature": 0.2},
        }

    async def analyze(self, text: str, screenshot_png: Optional[bytes] = None) -> EnrichmentOutcome:
        """Never raises; failures come back as ``ok=False`` outcomes"""
        try:
            raw = await self._chat(self.build_payload(text, screenshot_png))
            analysis = parse_analysis(raw)
        except AIEnrichmentFailure as e:
            logger.warning("ai_enrichment_failed", model=self.model, error=e.message, details=e.details)
            return EnrichmentOutcome(ok=False, model=self.model, error=e.message)

        logger.info(
            "ai_enrichment_completed",
            model=self.model,
            quality_score=analysis.quality_score,
            ats_score=analysis.ats_score,
        )
        return EnrichmentOutcome(ok=True, analysis=analysis, model=self.model, raw=raw)

    async def _chat(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/api/chat", json=payload, headers=self._headers())
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException:
            raise AIEnrichmentFailure("AI request timed out", details={"timeout": self.timeout})
        except httpx.HTTPStatusError as e:
            raise AIEnrichmentFailure(
                "AI service returned an error", details={"status_code": e.response.status_code}
            )
        except httpx.HTTPError as e:
            raise AIEnrichmentFailure("AI service unreachable", details={"error": str(e)})
        except ValueError as e:
            raise AIEnrichmentFailure("AI service returned invalid JSON", details={"error": str(e)})

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise AIEnrichmentFailure("AI response had no message content")
        content = message.get("content")
        if not isinstance(content, str) or not content.strip():
            raise AIEnrichmentFailure(
                "AI response had no message content",
                details={"content_type": type(content).__name__},
            )
        return _load_json_object(content)


def _load_json_object(content: str) -> Dict[str, Any]:
    # Models sometimes wrap JSON in markdown fences or chatter
    cleaned = re.sub(r"^```(?:json)?|```$", "", content.strip(), flags=re.MULTILINE).strip()
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        raise AIEnrichmentFailure("AI response did not contain a JSON object")
    try:
        parsed = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise AIEnrichmentFailure("AI response JSON could not be parsed", details={"error": str(e)})
    if not isinstance(parsed, dict):
        raise AIEnrichmentFailure("AI response JSON was not an object")
    return parsed


def parse_analysis(raw: Dict[str, Any]) -> AnalysisPayload:
    try:
        return AnalysisPayload.model_validate(raw)
    except PydanticValidationError as e:
        raise AIEnrichmentFailure(
            "AI response did not match the analysis schema",
            details={"errors": e.error_count()},
        )
