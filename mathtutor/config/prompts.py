"""
config/prompts.py
──────────────────────────────────────────────────────────────────────────────
Vision prompt strings in one place.

To change what the worksheet converter extracts: edit LATEX_EXTRACTION_PROMPT.
"""
from __future__ import annotations

# ── Worksheet image → LaTeX ────────────────────────────────────────────────────
LATEX_EXTRACTION_PROMPT = (
    "Extract the math text and equations from this image. "
    "Convert all equations to LaTeX. "
    "Return only LaTeX code, no explanations."
)

# Placeholder written into the corpus when an image cannot be converted.
CONVERSION_ERROR_TEMPLATE = "[Error converting image: {message}]"
