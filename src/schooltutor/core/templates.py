"""Local templates for offline content generation.

Intent classification of the student's latest message plus Markdown
templates parameterized by subject, topic and grade. Every template
announces that it was generated offline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

# Grade shown when neither the profile nor the session knows it
DEFAULT_GRADE = "8"

OFFLINE_NOTE = (
    "*Offline lesson: generated from local templates while the AI tutor "
    "is unavailable.*"
)

SUBJECT_EMOJI: dict[str, str] = {
    "mathematics": "🔢",
    "math": "🔢",
    "science": "🔬",
    "physics": "⚛️",
    "chemistry": "🧪",
    "biology": "🧬",
    "english": "📝",
    "history": "📚",
    "geography": "🌍",
    "computer science": "💻",
    "art": "🎨",
    "music": "🎵",
}
DEFAULT_EMOJI = "📖"


class Intent(Enum):
    """What the student's message asks for."""

    EXPLANATION = "explanation"
    EXAMPLE = "example"
    PRACTICE = "practice"
    HELP = "help"
    CONTINUATION = "continuation"
    GENERIC = "generic"


# Checked in this order; the first intent with a matching pattern wins
INTENT_PATTERNS: list[tuple[Intent, list[str]]] = [
    (Intent.EXPLANATION, [r"\bwhat\s+is\b", r"\bexplain", r"\bdefin"]),
    (Intent.EXAMPLE, [r"\bexamples?\b", r"\bshow\s+me\b"]),
    (Intent.PRACTICE, [r"\bpractice\b", r"\bexercises?\b", r"\bproblems?\b"]),
    (Intent.HELP, [r"\bhelp\b", r"\bconfus", r"\bunderstand\b"]),
    (Intent.CONTINUATION, [r"\bcontinue\b", r"\bnext\b", r"\bmore\b"]),
]

# Words that ask to be assessed
ASSESSMENT_PATTERNS = [
    r"\btest\s+me\b",
    r"\bquiz\b",
    r"\bassess",
    r"\bexam\b",
]


def classify_intent(text: str) -> Intent:
    """Classify a student message into one of the template intents.

    Args:
        text: Student message

    Returns:
        Matching Intent, GENERIC when nothing matches
    """
    text_lower = text.lower().strip()

    for intent, patterns in INTENT_PATTERNS:
        for pattern in patterns:
            if re.search(pattern, text_lower):
                return intent
    return Intent.GENERIC


def is_assessment_request(text: str) -> bool:
    """Detect a request to be tested on the topic."""
    text_lower = text.lower().strip()
    return any(re.search(pattern, text_lower) for pattern in ASSESSMENT_PATTERNS)


def subject_emoji(subject: str) -> str:
    return SUBJECT_EMOJI.get(subject.lower().strip(), DEFAULT_EMOJI)


def continuation_stage(message_count: int) -> str:
    if message_count < 3:
        return "building on the basics"
    if message_count < 6:
        return "exploring more advanced ideas"
    return "applying what you've learned"


@dataclass
class TemplateContext:
    """Values substituted into local templates."""

    subject: str
    topic: str
    grade: str = DEFAULT_GRADE
    student_name: str = "there"
    difficulty: str = "moderate"
    message: str = ""
    message_count: int = 0

    @property
    def emoji(self) -> str:
        return subject_emoji(self.subject)


# =============================================================================
# TEMPLATES
# =============================================================================


def render_welcome(ctx: TemplateContext) -> str:
    return f"""# {ctx.subject}: {ctx.topic} {ctx.emoji}

Hi {ctx.student_name}! Today we are learning about **{ctx.topic}** at a Grade {ctx.grade} level.

## What we will cover
- The core ideas behind {ctx.topic}
- Worked examples you can follow step by step
- Practice questions to check your understanding

Ask me to explain any part of {ctx.topic}, or say "continue" when you are ready.

{OFFLINE_NOTE}"""


def render_lesson(ctx: TemplateContext) -> str:
    return f"""# {ctx.topic} {ctx.emoji}

A {ctx.difficulty} lesson on **{ctx.topic}** ({ctx.subject}, Grade {ctx.grade}).

## 1. Introduction
{ctx.topic} is a key idea in {ctx.subject}. Start by writing down what you already know about it.

## 2. Key concepts
- Identify the main terms used in {ctx.topic}
- Learn how they relate to each other
- Connect them to topics you studied before

## 3. Worked example
Work through one example from your textbook, writing every step.

## 4. Practice
Try three problems on {ctx.topic} and check each answer.

{OFFLINE_NOTE}"""


def _render_explanation(ctx: TemplateContext) -> str:
    return f"""# {ctx.topic}: explanation {ctx.emoji}

You asked: **"{ctx.message}"**

## What is {ctx.topic}?
{ctx.topic} is a core concept in {ctx.subject}. At Grade {ctx.grade} the focus is on what it means and where it is used.

## Key points
- Learn the definition in your own words
- Find one everyday situation where it appears
- Notice how it connects to earlier {ctx.subject} topics

Can you describe a situation where you would use {ctx.topic}?

{OFFLINE_NOTE}"""


def _render_example(ctx: TemplateContext) -> str:
    return f"""# {ctx.topic}: examples {ctx.emoji}

## Example 1 (warm-up)
Take the simplest case of {ctx.topic} and solve it step by step.

## Example 2 (everyday life)
Look for {ctx.topic} in something you see every day and describe it.

## Example 3 (Grade {ctx.grade} level)
Pick a textbook exercise on {ctx.topic} and explain each step aloud.

Which example would you like to go through together?

{OFFLINE_NOTE}"""


def _render_practice(ctx: TemplateContext) -> str:
    return f"""# Practice: {ctx.topic} {ctx.emoji}

Here are {ctx.difficulty} practice questions for Grade {ctx.grade}:

1. In one sentence, what is {ctx.topic}?
2. Give an example of {ctx.topic} from {ctx.subject}.
3. Solve a problem that uses {ctx.topic} and show your working.

Reply with your answers and I will go through them with you.

{OFFLINE_NOTE}"""


def _render_help(ctx: TemplateContext) -> str:
    return f"""# Let's untangle {ctx.topic} {ctx.emoji}

It is completely normal to find {ctx.topic} tricky at first.

## Step by step
1. Tell me which part feels confusing
2. We go back to the simplest version of the idea
3. We build up again with one small example

What is the first thing that stops making sense?

{OFFLINE_NOTE}"""


def _render_continuation(ctx: TemplateContext) -> str:
    stage = continuation_stage(ctx.message_count)
    return f"""# Continuing with {ctx.topic} {ctx.emoji}

Great, we are now {stage} of **{ctx.topic}**.

Choose what to do next:
1. Go deeper into {ctx.topic}
2. See how it connects to other {ctx.subject} topics
3. Practice what we have covered

{OFFLINE_NOTE}"""


def _render_generic(ctx: TemplateContext) -> str:
    return f"""# Exploring {ctx.topic} {ctx.emoji}

You said: **"{ctx.message}"**

Let's connect that to **{ctx.topic}**. What made you think of it, and would you like an explanation, an example or a practice question?

{OFFLINE_NOTE}"""


_RESPONSE_RENDERERS = {
    Intent.EXPLANATION: _render_explanation,
    Intent.EXAMPLE: _render_example,
    Intent.PRACTICE: _render_practice,
    Intent.HELP: _render_help,
    Intent.CONTINUATION: _render_continuation,
    Intent.GENERIC: _render_generic,
}


def render_response(intent: Intent, ctx: TemplateContext) -> str:
    """Render the local reply for a classified student message."""
    return _RESPONSE_RENDERERS[intent](ctx)


def render_placeholder(
    session_id: str,
    subject: str,
    topic: str,
    student_id: str = "",
    grade: str = "",
    board: str = "",
    country: str = "",
) -> str:
    """Static text returned when no other generation tier succeeded."""
    lines = [
        f"# {topic} {subject_emoji(subject)}",
        "",
        "Lesson content is temporarily unavailable. Please try again in a moment.",
        "",
        f"- **Session:** {session_id or 'n/a'}",
    ]
    if student_id:
        lines.append(f"- **Student:** {student_id}")
    lines.append(f"- **Subject:** {subject}")
    lines.append(f"- **Topic:** {topic}")
    for label, value in (("Grade", grade), ("Board", board), ("Country", country)):
        if value:
            lines.append(f"- **{label}:** {value}")
    return "\n".join(lines)
