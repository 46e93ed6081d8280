"""Text helpers for model output and console listings."""

import re

# Reasoning blocks some local models emit before the answer
REASONING_BLOCK = re.compile(
    r"<(think|thinking|analysis|reasoning)>.*?</\1>", re.DOTALL | re.IGNORECASE
)
# Only a "Thinking..." or "Thinking:" status line, not prose that starts with the word
THINKING_PREFIX = re.compile(r"^\s*thinking\s*(?:\.\.\.|\u2026|:)[^\n]*\n?", re.IGNORECASE)


def strip_think(text: str) -> str:
    """Remove reasoning blocks and a leading "Thinking..." line from model output."""
    cleaned = REASONING_BLOCK.sub("", text)
    cleaned = THINKING_PREFIX.sub("", cleaned.strip(), count=1)
    return cleaned.strip()


def truncate(text: str, max_len: int = 200) -> str:
    """Shorten text to ``max_len`` characters, ending with "..." when cut."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
