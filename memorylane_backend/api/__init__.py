"""
HTTP API.  Run with ``uvicorn memorylane_backend.api.main:app``.
"""
