"""Prompt templates and custom-instruction validation for the summaries feature."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

from ..errors import ProhibitedPatternError, TooLongError, TooShortError, ValidationError
from ..documents import DocumentMetadata
from .types import RefinementIntent, SummarySize

MIN_INSTRUCTION_CHARS = 10
MAX_INSTRUCTION_CHARS = 1000

# Advisory string matching only; this is not a security boundary.
PROHIBITED_PATTERNS: Tuple[str, ...] = (
    "ignore previous",
    "ignore all",
    "disregard",
    "forget everything",
)

CUSTOM_FALLBACK_PROMPT = "Please refine the summary based on my feedback."


@dataclass(frozen=True)
class SizeTemplate:
    paragraphs: str
    word_count: int
    guidance: Sequence[str]


@dataclass(frozen=True)
class QuickAction:
    intent: RefinementIntent
    label: str
    description: str


SIZE_TEMPLATES: Mapping[SummarySize, SizeTemplate] = {
    SummarySize.SHORT: SizeTemplate(
        paragraphs="2-3 sentences",
        word_count=100,
        guidance=(
            "Create a brief summary that:",
            "- Captures the main point or thesis in 2-3 sentences",
            "- Highlights only the most critical information",
            "- Is concise and to-the-point",
            "- Provides a quick overview for readers",
        ),
    ),
    SummarySize.MEDIUM: SizeTemplate(
        paragraphs="1-2 paragraphs",
        word_count=250,
        guidance=(
            "Create a balanced summary that:",
            "- Covers the main ideas in 1-2 paragraphs",
            "- Includes key supporting details",
            "- Provides sufficient context",
            "- Balances brevity with completeness",
        ),
    ),
    SummarySize.LONG: SizeTemplate(
        paragraphs="3-4 paragraphs",
        word_count=500,
        guidance=(
            "Create a comprehensive summary that:",
            "- Explores main ideas in depth across 3-4 paragraphs",
            "- Includes important details and examples",
            "- Provides thorough context and background",
            "- Covers multiple aspects of the content",
            "- Maintains clear structure and flow",
        ),
    ),
}

REFINEMENT_TEMPLATES: Mapping[RefinementIntent, Sequence[str]] = {
    RefinementIntent.SHORTER: (
        "Please make this summary shorter and more concise.",
        "- Remove less important details",
        "- Keep only the most essential information",
        "- Maintain clarity and coherence",
        "- Aim for about 30-40% reduction in length",
    ),
    RefinementIntent.LONGER: (
        "Please expand this summary with more details.",
        "- Add more context and explanation",
        "- Include additional relevant information",
        "- Elaborate on key points",
        "- Maintain the same clear structure",
        "- Aim for about 30-40% increase in length",
    ),
    RefinementIntent.SIMPLER: (
        "Please simplify this summary for easier understanding.",
        "- Use simpler language and shorter sentences",
        "- Avoid technical jargon where possible",
        "- Explain complex concepts in plain terms",
        "- Make it accessible to a general audience",
    ),
    RefinementIntent.TECHNICAL: (
        "Please make this summary more technical and detailed.",
        "- Include technical terminology where appropriate",
        "- Add specific details and data points",
        "- Use industry-standard language",
        "- Provide deeper technical insights",
    ),
    RefinementIntent.BULLET_POINTS: (
        "Please reformat this summary as bullet points.",
        "- Convert paragraphs into clear bullet points",
        "- Each point should be concise and focused",
        "- Organize by main topics or themes",
        "- Maintain logical flow and hierarchy",
        "- Use sub-bullets for details if needed",
    ),
    RefinementIntent.ADD_DETAILS: (
        "Please add more details and depth to this summary.",
        "- Expand on the main points with specific information",
        "- Include relevant examples or data",
        "- Provide more context and background",
        "- Maintain clear organization",
    ),
}

QUICK_ACTIONS: Tuple[QuickAction, ...] = (
    QuickAction(RefinementIntent.SHORTER, "Shorter", "Make it more concise"),
    QuickAction(RefinementIntent.LONGER, "Longer", "Add more details"),
    QuickAction(RefinementIntent.SIMPLER, "Simpler", "Use simpler language"),
    QuickAction(RefinementIntent.TECHNICAL, "Technical", "More technical depth"),
    QuickAction(RefinementIntent.BULLET_POINTS, "Bullet Points", "Format as bullets"),
    QuickAction(RefinementIntent.ADD_DETAILS, "Add Details", "Include more information"),
)


def document_lead_in(document: DocumentMetadata) -> str:
    if document.is_pdf:
        return "Analyze the following PDF document:"
    if document.is_image:
        return "Analyze the text content in the following image:"
    if document.is_text:
        return "Analyze the following text document:"
    if document.is_word:
        return "Analyze the following Word document:"
    return "Analyze the following document:"


def build_initial_prompt(
    document: DocumentMetadata,
    size: SummarySize,
    custom_instructions: Optional[str] = None,
) -> str:
    template = SIZE_TEMPLATES[size]
    sections = [
        document_lead_in(document),
        "Task: Create a comprehensive summary of this document.",
        "\n".join(
            [
                "Requirements:",
                f"- Length: {template.paragraphs} (~{template.word_count} words)",
                f"- Target word count: Approximately {template.word_count} words",
                "- Style: Clear, concise, and well-structured",
                "- Focus: Key points, main ideas, and important details",
                "- Format: Use paragraphs for readability",
            ]
        ),
        "\n".join(template.guidance),
    ]
    if custom_instructions and custom_instructions.strip():
        sections.append(f"Additional Instructions:\n{custom_instructions.strip()}")
    sections.append("Please provide the summary now:")
    return "\n\n".join(sections) + "\n"


def build_refinement_prompt(intent: RefinementIntent, custom_feedback: Optional[str] = None) -> str:
    intent = RefinementIntent(intent)
    if intent is RefinementIntent.CUSTOM:
        # An empty custom request is not rejected; it falls back to a generic ask.
        if custom_feedback and custom_feedback.strip():
            return custom_feedback
        return CUSTOM_FALLBACK_PROMPT
    return "\n".join(REFINEMENT_TEMPLATES[intent]) + "\n"


def validate_custom_instructions(text: Optional[str]) -> None:
    """Raise a ``ValidationError`` subclass when ``text`` is unacceptable.

    Missing or blank instructions are valid (they are optional).
    """
    if text is None or not text.strip():
        return
    trimmed = text.strip()
    if len(trimmed) < MIN_INSTRUCTION_CHARS:
        raise TooShortError(f"Custom instructions should be at least {MIN_INSTRUCTION_CHARS} characters")
    if len(trimmed) > MAX_INSTRUCTION_CHARS:
        raise TooLongError(f"Custom instructions should not exceed {MAX_INSTRUCTION_CHARS} characters")
    lowered = trimmed.lower()
    for pattern in PROHIBITED_PATTERNS:
        if pattern in lowered:
            raise ProhibitedPatternError(
                f"Instructions contain a potentially problematic phrase: '{pattern}'"
            )


def is_valid_custom_instructions(text: Optional[str]) -> bool:
    try:
        validate_custom_instructions(text)
    except ValidationError:
        return False
    return True
