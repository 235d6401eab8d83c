"""
NoteForge Backend - Application Package
=======================================

What: Backend for a rich-text note editor that persists editor HTML per
      document and turns external content (PDF, DOCX, YouTube transcripts,
      web pages, raw text) into streamed AI-generated notes.

Layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services / Ingestion / Editor     │  ← Orchestration, parsing, state
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

Service handles (database, content store, completion provider, ...) are built
once per process in the application lifespan and handed to routes through
FastAPI dependencies; nothing below the routes reaches for module state.
"""

__version__ = "1.0.0"
