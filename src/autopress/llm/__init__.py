from .client import (
    RewriteClient,
    RewriteError,
    SamplingParams,
    normalize_rewrite_output,
    paragraphs_to_html,
    sampling_for_attempt,
)
from .prompts import build_corrective_instructions, build_fallback_prompt, build_rewrite_prompt

__all__ = [
    "RewriteClient",
    "RewriteError",
    "SamplingParams",
    "build_corrective_instructions",
    "build_fallback_prompt",
    "build_rewrite_prompt",
    "normalize_rewrite_output",
    "paragraphs_to_html",
    "sampling_for_attempt",
]
