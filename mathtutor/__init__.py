"""
Math Tutor Embedding Backend
=======================================================
Hexagonal (Ports & Adapters) architecture.

Layer map
─────────────────────────────────────────────────────
  config/       All tuneable settings & prompt strings
  domain/       Pure business objects (models, failure taxonomy) — no I/O
  ports/        Abstract interfaces (Python Protocols)
  adapters/     Concrete implementations of each Port (OpenAI, Postgres, JSON file)
  services/     Orchestration logic; depends only on Ports, never Adapters
  interfaces/   Delivery layer: FastAPI app, CLI
  tests/        Full test suite: unit / integration / e2e

Swapping any external dependency (embedding model, vision model, database,
checkpoint storage):
  1. Write a new adapter in adapters/ implementing the relevant Port
  2. Change the single wiring line in services/container.py
"""
__version__ = "1.0.0"
