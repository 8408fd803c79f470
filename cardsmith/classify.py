"""
cardsmith/classify.py — Heuristic card type and category classification.

classify_type(text)     -> one of CARD_TYPES
classify_category(text) -> one of CATEGORY_LABELS, a context label, or "General"

Both tables are ordered tuples of (label, keywords). Ties go to the label
declared first, so results do not depend on dict ordering.

Type scoring
  +1 per keyword present (substring of lowercased text, counted once)
  +2 checklist  — a line starting with a bullet / dash
  +3 quote      — a quoted span (straight or curly quotes)
  +2 action     — whole word step / process / procedure
  all zero → concept

Category scoring
  sum of occurrence counts of every keyword present
  all zero → infer_category_from_context()
"""

from __future__ import annotations

import re

from cardsmith.models import DEFAULT_CARD_TYPE, DEFAULT_CATEGORY

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

TYPE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("concept",   ("concept", "definition", "theory", "principle", "framework", "model")),
    ("action",    ("action", "step", "process", "procedure", "method", "technique", "strategy")),
    ("quote",     ("quote", "saying", "proverb", "wisdom", "insight")),
    ("checklist", ("checklist", "list", "items", "tasks", "requirements", "criteria")),
    ("mindmap",   ("relationship", "connection", "link", "network", "system")),
)

CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("AI", (
        "ai", "artificial intelligence", "machine learning", "ml", "deep learning",
        "neural network", "algorithm", "automation", "chatbot", "gpt", "llm",
        "large language model", "nlp", "natural language processing",
        "computer vision", "robotics", "predictive analytics", "data science",
        "intelligent", "smart", "automated", "cognitive", "intelligence",
    )),
    ("Leadership", (
        "leadership", "leader", "vision", "inspire", "motivate", "empower", "mentor",
        "coach", "guide", "direct", "influence", "authority", "executive", "ceo",
        "manager",
    )),
    ("Management", (
        "management", "manager", "supervisor", "administrator", "director", "head",
        "oversight", "coordination", "supervision", "administration", "governance",
    )),
    ("Team Management", (
        "team", "collaboration", "cooperation", "group", "member", "colleague",
        "partnership", "alliance", "unity", "together", "collective", "synergy",
    )),
    ("People", (
        "people", "personnel", "staff", "employee", "individual", "human", "person",
        "workforce", "talent", "colleague", "team member", "stakeholder", "user",
    )),
    ("Organization", (
        "organization", "org", "organizational", "institution", "company",
        "corporation", "enterprise", "business", "firm", "agency", "department",
        "division", "unit",
    )),
    ("Operating Principles", (
        "operating principles", "principles", "values", "ethics", "standards",
        "guidelines", "policies", "procedures", "best practices", "methodology",
        "framework", "approach",
    )),
    ("Process", (
        "process", "workflow", "procedure", "method", "system", "approach",
        "methodology", "technique", "strategy", "tactic", "protocol", "routine",
        "operation",
    )),
    ("Architecture", (
        "architecture", "architectural", "design", "structure", "framework",
        "blueprint", "model", "pattern", "layout", "configuration",
        "infrastructure", "system design",
    )),
    ("Data", (
        "data", "information", "analytics", "metrics", "statistics", "insights",
        "intelligence", "reporting", "analysis", "measurement", "kpi", "dashboard",
        "database", "dataset",
    )),
    ("Technology", (
        "technology", "digital", "software", "hardware", "system", "platform",
        "application", "tool", "automation", "innovation", "development",
        "implementation", "integration", "maintenance", "upgrade",
    )),
    ("Communication", (
        "communication", "presentation", "speech", "talk", "discussion", "meeting",
        "conversation", "dialogue", "message", "feedback", "listen", "speak",
        "write", "email", "report", "documentation", "storytelling",
        "public speaking",
    )),
    ("Strategic Planning", (
        "strategy", "planning", "plan", "goal", "objective", "target", "mission",
        "vision", "roadmap", "blueprint", "framework", "approach", "methodology",
        "tactics", "initiative", "project", "program",
    )),
    ("Performance Management", (
        "performance", "evaluation", "assessment", "review", "feedback", "metrics",
        "kpi", "measurement", "analysis", "improvement", "optimization",
        "efficiency", "productivity", "quality", "excellence", "achievement",
        "results",
    )),
    ("Change Management", (
        "change", "transformation", "transition", "evolution", "adaptation",
        "innovation", "disruption", "modernization", "digitalization",
        "restructure", "reorganization", "improvement", "development", "growth",
    )),
    ("Decision Making", (
        "decision", "choice", "option", "alternative", "solution",
        "problem-solving", "analysis", "evaluation", "judgment", "conclusion",
        "determination", "resolve", "decide", "choose", "select", "prioritize",
    )),
    ("Conflict Resolution", (
        "conflict", "dispute", "disagreement", "resolution", "mediation",
        "negotiation", "compromise", "consensus", "agreement", "harmony",
        "reconciliation", "peace", "understanding", "tolerance", "respect",
    )),
    ("Time Management", (
        "time", "schedule", "deadline", "timeline", "prioritization",
        "organization", "efficiency", "productivity", "planning", "coordination",
        "management", "allocation", "optimization", "balance", "work-life",
    )),
    ("Financial Management", (
        "finance", "budget", "cost", "expense", "revenue", "profit", "investment",
        "financial", "economic", "monetary", "fiscal", "accounting", "audit",
        "forecasting", "planning", "analysis", "reporting",
    )),
    ("Customer Service", (
        "customer", "client", "service", "support", "satisfaction", "experience",
        "relationship", "engagement", "loyalty", "retention", "acquisition",
        "feedback", "complaint", "resolution", "excellence",
    )),
    ("Marketing", (
        "marketing", "brand", "advertising", "promotion", "campaign", "strategy",
        "market", "customer", "audience", "target", "message", "communication",
        "social media", "content", "analytics", "conversion",
    )),
    ("Human Resources", (
        "hr", "human resources", "recruitment", "hiring", "training", "development",
        "employee", "staff", "personnel", "workforce", "talent", "culture",
        "benefits", "compensation", "retention", "engagement",
    )),
    ("Operations", (
        "operations", "process", "workflow", "procedure", "system", "efficiency",
        "optimization", "streamline", "automation", "quality", "standards",
        "compliance", "safety", "risk", "management",
    )),
    ("Sales", (
        "sales", "revenue", "deal", "prospect", "client", "customer", "pitch",
        "negotiation", "closing", "relationship", "pipeline", "target", "quota",
        "commission", "performance", "growth",
    )),
)

CATEGORY_LABELS: tuple[str, ...] = tuple(label for label, _ in CATEGORY_KEYWORDS)

# Checked in order when no category keyword matched; first hit wins.
CONTEXT_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Financial Management",   ("$", "dollar", "cost", "budget")),
    ("Communication",          ("meeting", "presentation", "speak")),
    ("Strategic Planning",     ("goal", "objective", "target")),
    ("Problem Solving",        ("problem", "issue", "challenge")),
    ("Learning & Development", ("learn", "study", "research")),
    ("Customer Service",       ("customer", "client", "user")),
    ("Human Resources",        ("employee", "staff", "hire")),
    ("Sales",                  ("sale", "deal", "revenue")),
    ("Marketing",              ("market", "brand", "promotion")),
    ("Operations",             ("system", "process", "workflow")),
    ("Technology",             ("technology", "digital", "software")),
)

_BULLET_LINE_RE = re.compile(r"^\s*[-•*]\s+", re.MULTILINE)
_QUOTED_SPAN_RE = re.compile(r"[\"“”„«»].*[\"“”„«»]")
_ACTION_WORD_RE = re.compile(r"\b(step|process|procedure)\b", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Scoring helpers
# ---------------------------------------------------------------------------

def _best(scores: list[tuple[str, int]]) -> tuple[str, int]:
    """Highest score; earliest label on ties. Expects a non-empty list."""
    best_label, best_score = scores[0]
    for label, score in scores[1:]:
        if score > best_score:
            best_label, best_score = label, score
    return best_label, best_score


def type_scores(text: str) -> list[tuple[str, int]]:
    lowered = text.lower()
    scores = {
        label: sum(1 for kw in keywords if kw in lowered)
        for label, keywords in TYPE_KEYWORDS
    }
    if _BULLET_LINE_RE.search(text):
        scores["checklist"] += 2
    if _QUOTED_SPAN_RE.search(text):
        scores["quote"] += 3
    if _ACTION_WORD_RE.search(text):
        scores["action"] += 2
    return [(label, scores[label]) for label, _ in TYPE_KEYWORDS]


def category_scores(text: str) -> list[tuple[str, int]]:
    lowered = text.lower()
    return [
        (label, sum(lowered.count(kw) for kw in keywords))
        for label, keywords in CATEGORY_KEYWORDS
    ]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def classify_type(text: str) -> str:
    label, score = _best(type_scores(text))
    return label if score > 0 else DEFAULT_CARD_TYPE


def classify_category(text: str) -> str:
    label, score = _best(category_scores(text))
    if score == 0:
        return infer_category_from_context(text)
    return label


def infer_category_from_context(text: str) -> str:
    lowered = text.lower()
    for label, cues in CONTEXT_RULES:
        if any(cue in lowered for cue in cues):
            return label
    return DEFAULT_CATEGORY
