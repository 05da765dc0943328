"""
HTTP layer.

``router.py`` aggregates the domain routers defined in ``endpoints``;
the application factory in ``main`` includes it.
"""
