"""
e-Factura Kernel

Shared foundation for the Authority integration layer:
- Structured logging and typed errors
- Injectable clock
- SQLAlchemy base, engine and ORM models
- Collaborator protocols (tokens, storage, notifications, events)
"""

__version__ = "0.1.0"
