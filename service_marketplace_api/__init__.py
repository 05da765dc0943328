"""
Top‑level package for the Service Marketplace API.

This file makes ``service_marketplace_api`` a Python package so that
modules within ``app`` can be imported using fully qualified names
like ``service_marketplace_api.app.main``.

The package provides no public exports; all functionality lives in
submodules under ``app``.
"""

__all__ = []
