"""Core generation pipeline.

- **config**: ``PromptGridConfig`` (Pydantic Settings, ``PROMPTGRID_`` prefix)
- **errors**: request-level error taxonomy
- **models**: domain dataclasses passed between stages
- **session**: shared ``SessionState`` (cookie store restore, external login)
- **backend**: ``GenerationClient`` for the external generation service
- **retriever**: concurrent, failure-tolerant artifact downloads
- **assembler**: base64 encoding of the final result
- **pipeline**: ``GenerationPipeline`` tying the stages together
"""
