from __future__ import annotations

from typing import Iterable, List, Optional

# Bucket name -> trigger fragments. Order matters: results follow it.
KEYWORD_BUCKETS = {
    "venture capital": ["venture capital", "funding", "investment", "financing"],
    "entrepreneurial cognition": ["cognition", "cognitive", "psychology", "thinking"],
    "innovation management": ["innovation", "creativity", "idea", "product development"],
    "new venture creation": ["startup", "new venture", "venture creation", "business formation"],
    "entrepreneurial networks": ["network", "social capital", "ties", "relationship"],
    "international entrepreneurship": ["international", "cross-border", "global"],
    "technology entrepreneurship": ["technology", "high-tech", "biotechnology", "digital"],
    "design": ["design", "user experience", "product design", "interface"],
    "education": ["education", "teaching", "learning", "curriculum", "pedagogy"],
    "strategy": ["strategy", "strategic", "planning", "competitive advantage"],
    "marketing": ["marketing", "branding", "advertising", "promotion"],
    "finance": ["finance", "financial", "investment", "capital"],
}

# Finer keyword -> theme name table used to refine a generic research area.
KEYWORD_THEMES = {
    "venture capital": "Venture Capital & Funding",
    "funding": "Venture Capital & Funding",
    "investor": "Venture Capital & Funding",
    "investment": "Venture Capital & Funding",
    "financing": "Venture Capital & Funding",
    "angel investor": "Venture Capital & Funding",
    "cognition": "Entrepreneurial Cognition",
    "cognitive": "Entrepreneurial Cognition",
    "psychology": "Entrepreneurial Psychology",
    "perception": "Entrepreneurial Psychology",
    "bias": "Entrepreneurial Psychology",
    "heuristic": "Entrepreneurial Psychology",
    "decision": "Entrepreneurial Decision Making",
    "choice": "Entrepreneurial Decision Making",
    "judgment": "Entrepreneurial Decision Making",
    "opportunity": "Opportunity Recognition",
    "opportunity recognition": "Opportunity Recognition",
    "innovation": "Innovation Management",
    "creativity": "Innovation & Creativity",
    "idea": "Innovation & Creativity",
    "network": "Entrepreneurial Networks",
    "social capital": "Entrepreneurial Networks",
    "ties": "Entrepreneurial Networks",
    "relationship": "Entrepreneurial Networks",
    "family business": "Family Business",
    "family firm": "Family Business",
    "startup": "New Venture Creation",
    "new venture": "New Venture Creation",
    "venture creation": "New Venture Creation",
    "spin-off": "Corporate Entrepreneurship",
    "corporate entrepreneurship": "Corporate Entrepreneurship",
    "performance": "Venture Performance",
    "growth": "Business Growth & Scaling",
    "strategy": "Entrepreneurial Strategy",
    "competitive advantage": "Entrepreneurial Strategy",
    "technology": "Technology Entrepreneurship",
    "high-tech": "Technology Entrepreneurship",
    "biotechnology": "Technology Entrepreneurship",
    "digital": "Digital Entrepreneurship",
    "international": "International Entrepreneurship",
    "cross-border": "International Entrepreneurship",
    "emerging market": "Emerging Markets",
    "developing country": "Emerging Markets",
    "learning": "Entrepreneurial Learning",
    "knowledge": "Knowledge & Learning",
    "experience": "Entrepreneurial Experience",
    "capability": "Dynamic Capabilities",
    "gender": "Gender & Entrepreneurship",
    "women": "Gender & Entrepreneurship",
    "female": "Gender & Entrepreneurship",
}

# Broad theme name -> fragments; the last entry is the catch-all.
BROAD_THEME_MAPPING = {
    "Venture Capital & Funding": ["venture capital", "funding", "investment", "financing", "angel", "investor"],
    "Entrepreneurial Cognition": [
        "cognition", "cognitive", "psychology", "thinking", "perception", "bias", "heuristic", "decision",
    ],
    "Innovation Management": ["innovation", "creativity", "idea", "product development", "r&d"],
    "New Venture Creation": [
        "startup", "new venture", "venture creation", "business formation", "entrepreneurial process",
    ],
    "Entrepreneurial Networks": ["network", "social capital", "ties", "relationship", "collaboration"],
    "International Entrepreneurship": ["international", "cross-border", "global", "emerging market"],
    "Technology Entrepreneurship": ["technology", "high-tech", "biotechnology", "digital"],
    "Family Business": ["family business", "family firm"],
    "Corporate Entrepreneurship": ["corporate entrepreneurship", "spin-off", "intrapreneurship"],
    "Entrepreneurial Learning": ["learning", "knowledge", "experience", "education"],
    "Entrepreneurship and Innovation": [],
}

GENERIC_AREA_MARKERS = ("entrepreneurship and innovation", "general")


def _lowered(keywords: Iterable[str]) -> List[str]:
    return [k.lower() for k in keywords if isinstance(k, str) and k.strip()]


def match_buckets(keywords: Iterable[str]) -> List[str]:
    """Return every bucket whose fragments occur inside some keyword."""
    lowered = _lowered(keywords)
    if not lowered:
        return []
    matched = []
    for bucket, fragments in KEYWORD_BUCKETS.items():
        if any(fragment in keyword for fragment in fragments for keyword in lowered):
            matched.append(bucket)
    return matched


def first_keyword_theme(keywords: Iterable[str]) -> Optional[str]:
    lowered = _lowered(keywords)
    for fragment, theme in KEYWORD_THEMES.items():
        if any(fragment in keyword for keyword in lowered):
            return theme
    return None


def is_generic_area(area: Optional[str]) -> bool:
    if not area or not area.strip():
        return True
    lower = area.lower()
    return any(marker in lower for marker in GENERIC_AREA_MARKERS)


def broad_theme_for(area: Optional[str], keywords: Iterable[str]) -> Optional[str]:
    area_lower = (area or "").lower()
    lowered = _lowered(keywords)
    for theme, fragments in BROAD_THEME_MAPPING.items():
        for fragment in fragments:
            if fragment in area_lower or any(fragment in k for k in lowered):
                return theme
    return None
