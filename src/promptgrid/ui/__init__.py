"""Client side of the API: HTTP client and submission state machine."""

from promptgrid.ui.api_client import ApiRequestError, PromptGridClient, decode_image
from promptgrid.ui.submission import SubmissionController, SubmissionPhase

__all__ = [
    "ApiRequestError",
    "PromptGridClient",
    "SubmissionController",
    "SubmissionPhase",
    "decode_image",
]
