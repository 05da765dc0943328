"""
Application package initializer.

The marketplace is organised by domain: users, services (listings),
service requests (negotiation proposals) and payments.  Each domain
has a Pydantic schema module in ``schemas``, business logic in
``services`` and a router in ``api/endpoints``.
"""

from .main import app  # noqa: F401
