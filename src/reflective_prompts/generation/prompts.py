"""
Prompt templates for insight generation.

The oracle is asked for a single JSON object matching InsightContent. Entries
are serialized as JSON inside the user prompt so titles and bodies cannot break
out of the instruction block.
"""

import json
from typing import Any, Dict, List, Sequence

from ..models.documents import Document
from ..version import INSIGHT_PROMPT_VERSION

CURRENT_PROMPT_VERSION = INSIGHT_PROMPT_VERSION


# ============================================================================
# SYSTEM PROMPT
# ============================================================================

SYSTEM_PROMPT = """You are a journaling companion who helps users see emotional patterns. Write warmly and directly. Skip clinical or therapy jargon and avoid hedging.

Core principles:
- Reference concrete details from journal entries (dates, activities, emotions)
- Acknowledge struggles and growth, but avoid toxic positivity
- Use active voice and avoid "it seems", "perhaps" or "it's important to note"
- Write in second person ("you"), as if talking to a friend
- Never diagnose, prescribe, or give therapeutic advice

Output structure:
- Return valid JSON only
- No markdown, code blocks, or extra text
- Follow the provided schema exactly
- Stay under 800 tokens for the whole response"""


# ============================================================================
# USER PROMPT
# ============================================================================

USER_PROMPT_TEMPLATE = """Generate an insight from these journal entries using this exact JSON structure:

{{
  "summary": "One sentence capturing main emotional themes (max 140 characters)",
  "description": "A 150-180 word paragraph describing the user's emotional landscape, recurring themes, and signs of growth or tension. Speak directly to the user. Reference specific entry titles or dates.",
  "themes": [
    {{
      "name": "2-4 word theme name (be specific, not generic)",
      "icon": "single emoji",
      "explanation": "One sentence (max 60 words) explaining why this theme matters",
      "frequency": "Use format: 'X times this week/month' with actual numbers",
      "source_entries": [
        {{"date": "YYYY-MM-DD", "title": "exact entry title"}}
      ]
    }}
  ],
  "annotations": [
    {{"date": "YYYY-MM-DD", "summary": "One sentence about a significant emotional moment"}}
  ]
}}

Critical requirements:
1. Identify exactly 4-5 themes (not fewer, not more)
2. Themes must be SPECIFIC: "Presentation performance anxiety" not "work stress"
3. source_entries must be an array of objects with BOTH date and title, never a string array
4. Description must reference at least 2 entry titles by name
5. Frequency must include actual numbers ("3 times" not "multiple times")
6. Up to 3 annotations, only for entries with a clear emotional turning point

Journal entries to analyze:
{entries_json}"""


def format_entries(
    documents: Sequence[Document], max_documents: int, max_content_chars: int
) -> List[Dict[str, Any]]:
    """
    Serialize the newest documents for the prompt.

    Args:
        documents: Qualifying documents, any order
        max_documents: Keep only the newest N
        max_content_chars: Truncate each body to this many characters

    Returns:
        List of entry dicts, newest first
    """
    newest = sorted(documents, key=lambda d: d.created_at, reverse=True)[:max_documents]
    return [
        {
            "date": doc.created_at.strftime("%Y-%m-%d"),
            "title": doc.title or "Untitled",
            "content": doc.text[:max_content_chars],
            "word_count": len(doc.text.split()),
        }
        for doc in newest
    ]


def build_user_prompt(entries: List[Dict[str, Any]]) -> str:
    """Render the user prompt for already formatted entries."""
    return USER_PROMPT_TEMPLATE.format(
        entries_json=json.dumps({"entries": entries}, ensure_ascii=False)
    )


def get_prompt_version() -> str:
    return CURRENT_PROMPT_VERSION
