"""Domain layer — ids, durations, validation, and the snapshot codec.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, runtime, or config.
"""
