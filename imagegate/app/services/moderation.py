"""Keyword blacklist moderation for image prompts."""

from dataclasses import dataclass
from typing import Optional


# Matched as plain substrings of the lower-cased prompt, so "star" also
# matches "starfish". Order here is the order reported to the client.
BLACKLIST: tuple[str, ...] = (
    "celebrity", "celebrities", "famous", "star",
    "trademark", "logo", "brand",
    "disney", "marvel", "pokemon",
    "political", "politician", "president",
)


@dataclass(frozen=True)
class ModerationDecision:
    """Outcome of a moderation check."""
    allowed: bool
    reason: Optional[str] = None


def find_restricted_terms(prompt: Optional[str]) -> list[str]:
    """Return the blacklisted terms contained in prompt, in blacklist order."""
    if not prompt:
        return []
    prompt_lower = prompt.lower()
    return [term for term in BLACKLIST if term in prompt_lower]


def moderate(prompt: Optional[str]) -> ModerationDecision:
    """Check a prompt against the blacklist.

    Missing or empty prompts never match; rejecting them is the caller's
    job.
    """
    matches = find_restricted_terms(prompt)
    if matches:
        return ModerationDecision(
            allowed=False,
            reason=f"Prompt contains restricted words: {', '.join(matches)}",
        )
    return ModerationDecision(allowed=True)
