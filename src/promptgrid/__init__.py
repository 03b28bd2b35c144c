"""PromptGrid - prompt-to-image grid backed by an external generation service."""

__version__ = "0.1.0"
