"""
Service layer.

Each service encapsulates the business rules of one domain and talks
to SQLite through ``core.db``.  Services raise the errors defined in
``core.errors``; the API layer translates them into HTTP responses.
"""
