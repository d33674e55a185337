"""
Input validation utilities for LLM operations.

Plan prompts embed the whole schema descriptor, so an introspected database
with many collections can outgrow the model's context. Inputs are checked
against a hard character limit before any API call.
"""

from typing import Optional


class InputValidator:
    """Character-count guard for LLM requests."""

    @staticmethod
    def validate_total_chars(
        prompt: str,
        system_prompt: Optional[str] = None,
        max_chars: int = 0
    ) -> None:
        """
        Raise ValueError when prompt + system prompt exceed max_chars.

        Characters are a cheap, model-independent proxy for tokens; the
        limit is set well under the model context in LLM__MAX_INPUT_CHARS.
        """
        total_chars = len(prompt) + len(system_prompt or "")

        if total_chars > max_chars:
            raise ValueError(
                f"Total input too large: {total_chars} characters, "
                f"maximum allowed: {max_chars}"
            )
