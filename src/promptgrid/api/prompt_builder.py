"""Prompt composition for the image generation backend.

The backend only takes free text, so structured output hints selected in the
UI (aspect ratio, resolution) are appended to the user's prompt as short
imperative clauses.

Composition Rules
-----------------
Clauses are appended in this order, each only when applicable:

1. ``Use a {aspect_ratio} aspect ratio`` when an aspect ratio is given.
2. ``Output the image at 2K resolution (2048×2048 pixels)`` for ``"2048"``,
   or ``Output the image at 1K resolution (1024×1024 pixels)`` for ``"1024"``.
   Any other resolution value is ignored.

The prompt and clauses are joined with ``". "`` and terminated with ``"."``.
If no clause applies the prompt is returned unchanged (no trailing period).

Usage
-----
::

    >>> build_prompt("A lighthouse at dusk", aspect_ratio="16:9")
    'A lighthouse at dusk. Use a 16:9 aspect ratio.'
    >>> build_prompt("A lighthouse at dusk")
    'A lighthouse at dusk'
"""

from __future__ import annotations

_RESOLUTION_CLAUSES: dict[str, str] = {
    "2048": "Output the image at 2K resolution (2048×2048 pixels)",
    "1024": "Output the image at 1K resolution (1024×1024 pixels)",
}


def build_prompt(
    prompt_text: str,
    aspect_ratio: str | None = None,
    resolution: str | None = None,
) -> str:
    """Compose the final prompt sent to the backend.

    Args:
        prompt_text: The user's prompt.  Used verbatim.
        aspect_ratio: Optional aspect ratio such as ``"16:9"``.  Not
            validated; any non-empty value produces a clause.
        resolution: Optional resolution selector.  Only ``"1024"`` and
            ``"2048"`` produce a clause.

    Returns:
        The composed prompt.
    """
    clauses: list[str] = []

    if aspect_ratio:
        clauses.append(f"Use a {aspect_ratio} aspect ratio")

    resolution_clause = _RESOLUTION_CLAUSES.get(resolution or "")
    if resolution_clause:
        clauses.append(resolution_clause)

    if not clauses:
        return prompt_text
    return ". ".join([prompt_text, *clauses]) + "."
