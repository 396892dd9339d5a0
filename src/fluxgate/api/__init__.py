"""Fluxgate — FastAPI REST API layer.

This package contains the FastAPI application and the Pydantic
request/response models.

Modules
-------
main
    FastAPI application with the image generation routes and the
    ``main()`` CLI entry point.
models
    Pydantic models for request validation and response shaping.
"""
