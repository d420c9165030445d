"""imagedrop — FastAPI REST API layer.

Modules
-------
main
    FastAPI application with the ingestion and retrieval routes and the
    ``main()`` CLI entry point.
auxiliary
    Health, images directory, image card, mock weather and echo routes.
models
    Pydantic models for API request validation.
"""
