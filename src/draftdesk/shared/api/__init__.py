"""
Shared API
==========

Middleware and exception handlers for the FastAPI application.
"""
