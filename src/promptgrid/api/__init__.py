"""PromptGrid — FastAPI REST API layer.

This package contains the FastAPI application, Pydantic response models,
and the prompt composition logic.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API responses.
prompt_builder
    Aspect-ratio / resolution prompt composition.
"""
