from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError, field_validator

from ..errors import MalformedModelOutput, ServiceNotConfigured, UpstreamServiceError
from .model_output import parse_model_json

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.anthropic.com/v1/messages"
DEFAULT_MODEL = "claude-sonnet-4-20250514"
ANTHROPIC_VERSION = "2023-06-01"

RESEARCHER_CONTEXT = (
    "You are analyzing an academic paper by Dr. Dimo Dimov, a Professor of Entrepreneurship and "
    "Innovation at University of Bath. His research focuses on entrepreneurial thinking, new venture "
    "design, and venture capital funding."
)

JOURNAL_ABBREVIATIONS = """IMPORTANT JOURNAL ABBREVIATIONS FOR THIS RESEARCHER:
- JMS = Journal of Management Studies
- JBV = Journal of Business Venturing
- ETP = Entrepreneurship Theory and Practice
- JSBM = Journal of Small Business Management
- JPIM = Journal of Product Innovation Management
- JMI = Journal of Management Inquiry
- JBVI = Journal of Business Venturing Insights
- AMR = Academy of Management Review"""


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(";") if ";" in value else value.split(",")
        return [p.strip() for p in parts if p.strip()]
    if isinstance(value, list):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return [str(value)]


def _dedupe_keywords(items: List[str]) -> List[str]:
    out: List[str] = []
    seen = set()
    for item in items:
        key = item.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out


class PaperAnalysis(BaseModel):
    title: str
    authors: List[str] = []
    year: Optional[int] = None
    venue: Optional[str] = None
    summary: str = ""
    keywords: List[str] = []
    research_area: str = ""

    @field_validator("authors", mode="before")
    @classmethod
    def _authors(cls, value: Any) -> List[str]:
        return _as_list(value)

    @field_validator("keywords", mode="before")
    @classmethod
    def _keywords(cls, value: Any) -> List[str]:
        return _dedupe_keywords(_as_list(value))

    @field_validator("year", mode="before")
    @classmethod
    def _year(cls, value: Any) -> Optional[int]:
        if isinstance(value, str):
            value = value.strip()
            return int(value) if value.isdigit() else None
        if isinstance(value, (int, float)):
            return int(value)
        return None


class AbstractAnalysis(BaseModel):
    summary: str = ""
    keywords: List[str] = []
    research_area: str = ""

    @field_validator("keywords", mode="before")
    @classmethod
    def _keywords(cls, value: Any) -> List[str]:
        return _dedupe_keywords(_as_list(value))


class ReanalysisResult(BaseModel):
    summary: str
    research_area: str = ""


def is_configured() -> bool:
    return bool(os.getenv("ANTHROPIC_API_KEY", "").strip())


def _call_claude(prompt: str, max_tokens: int = 1000) -> str:
    api_key = os.getenv("ANTHROPIC_API_KEY", "").strip()
    if not api_key:
        raise ServiceNotConfigured("ANTHROPIC_API_KEY is not configured")
    endpoint = os.getenv("ANTHROPIC_ENDPOINT", "").strip() or DEFAULT_ENDPOINT
    model = os.getenv("ANTHROPIC_MODEL", "").strip() or DEFAULT_MODEL
    timeout = float(os.getenv("LLM_TIMEOUT", "60"))
    headers = {
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_VERSION,
        "content-type": "application/json",
    }
    payload = {
        "model": model,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(endpoint, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        logger.error(f"Claude API error: {status} {exc.response.text[:200]}")
        raise UpstreamServiceError(f"Claude API error: {status}") from exc
    except (httpx.HTTPError, ValueError) as exc:
        logger.error(f"Claude API request failed: {exc}")
        raise UpstreamServiceError(f"Claude API request failed: {exc}") from exc
    try:
        return data["content"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise UpstreamServiceError("Invalid response from Claude API") from exc


def _research_area(data: Dict[str, Any]) -> str:
    value = data.get("researchArea") or data.get("research_area") or ""
    return str(value).strip()


def analyze_paper_text(text: str, filename: str) -> PaperAnalysis:
    """Extract bibliographic metadata from PDF text.

    Raises ``UpstreamServiceError`` when the call fails and
    ``MalformedModelOutput`` when the reply cannot be used.
    """
    prompt = f"""
    Analyze this research paper and extract the following information as JSON:

    Paper text: "{text[:8000]}"

    Please respond with a JSON object containing:
    {{
      "title": "extracted or inferred title",
      "authors": ["author1", "author2"],
      "year": 2024,
      "venue": "journal or conference name",
      "summary": "2-3 sentence summary of key contributions",
      "keywords": ["keyword1", "keyword2", "keyword3", "keyword4", "keyword5"],
      "researchArea": "primary research area"
    }}

    Extract accurate information where possible. If something cannot be determined from the text,
    make reasonable inferences based on the content and filename: "{filename}".

    IMPORTANT: Respond ONLY with valid JSON. Do not include any other text.
    """
    data = parse_model_json(_call_claude(prompt, max_tokens=1000))
    try:
        return PaperAnalysis.model_validate({**data, "research_area": _research_area(data)})
    except ValidationError as exc:
        raise MalformedModelOutput(f"Model output is missing fields: {exc.error_count()} errors") from exc


def analyze_abstract(paper: Dict[str, Any]) -> AbstractAnalysis:
    prompt = f"""
    {RESEARCHER_CONTEXT}

    Paper Details:
    Title: "{paper.get('title') or ''}"
    Authors: "{paper.get('authors') or ''}"
    Year: {paper.get('year') or ''}
    Venue: "{paper.get('venue') or ''}"
    Abstract: "{paper.get('abstract') or ''}"
    Original Keywords: "{paper.get('keywords') or ''}"

    {JOURNAL_ABBREVIATIONS}

    Generate an enhanced summary and keywords based on the abstract. Create a SPECIFIC research area
    theme based on the main focus. Respond ONLY with valid JSON:

    {{
      "summary": "2-3 sentence summary highlighting key contributions and findings from the abstract",
      "keywords": ["5-8 relevant keywords"],
      "researchArea": "Specific research theme like 'Venture Capital Decision Making' - NOT just 'Entrepreneurship and Innovation'"
    }}

    BE CONSERVATIVE - only extract information actually present in the abstract.
    """
    data = parse_model_json(_call_claude(prompt, max_tokens=500))
    return AbstractAnalysis.model_validate({**data, "research_area": _research_area(data)})


def analyze_for_reanalysis(text: str, filename: str) -> ReanalysisResult:
    prompt = f"""
    {RESEARCHER_CONTEXT}

    Paper text: "{text[:8000]}"
    Filename: "{filename}"

    {JOURNAL_ABBREVIATIONS}

    Create a SPECIFIC research area theme based on the main focus. Generate ONLY a summary and research
    area. Respond ONLY with valid JSON:

    {{
      "summary": "2-3 sentence summary highlighting key contributions and findings",
      "researchArea": "Specific research theme like 'Entrepreneurial Cognition' or 'New Venture Creation'"
    }}

    BE CONSERVATIVE - only extract information actually present in the text.
    """
    data = parse_model_json(_call_claude(prompt, max_tokens=800))
    if not str(data.get("summary") or "").strip():
        raise MalformedModelOutput("Model output has no summary", raw_text=str(data))
    return ReanalysisResult(summary=str(data["summary"]).strip(), research_area=_research_area(data))


def answer_question(question: str, papers: List[Dict[str, Any]], context: Optional[Dict[str, Any]]) -> str:
    blocks = []
    for paper in papers:
        authors = ", ".join(str(a) for a in paper.get("authors") or [])
        keywords = ", ".join(str(k) for k in paper.get("keywords") or [])
        blocks.append(
            f'Paper: "{paper.get("title")}" ({paper.get("year")})\n'
            f"Authors: {authors}\n"
            f"Summary: {paper.get('summary') or ''}\n"
            f"Keywords: {keywords}"
        )
    context = context or {}
    paper_count = len(context.get("papers") or []) or "several"
    themes = context.get("themes") or []
    theme_count = len(themes) or "multiple"
    theme_names = ", ".join(
        str(t["name"]) for t in themes if isinstance(t, dict) and t.get("name")
    ) or "various areas"
    prompt = f"""
You are an AI assistant helping visitors explore a researcher's portfolio. Answer questions about their research based on the provided context.

RESEARCH PORTFOLIO CONTEXT:
The researcher has published {paper_count} papers across {theme_count} research themes including: {theme_names}.

RELEVANT PAPERS FOR THIS QUESTION:
{chr(10).join(blocks)}

QUESTION: "{question}"

Instructions:
- Answer based on the research papers provided above
- Be specific and reference actual papers when relevant
- If the question can't be answered from the available papers, say so honestly
- Keep responses conversational but informative
- If multiple papers are relevant, compare or synthesize their approaches

Provide a helpful, accurate response:
"""
    return _call_claude(prompt, max_tokens=2000).strip()
