"""
Shared Kernel Module
====================

Shared infrastructure used by the drafting module and the HTTP layer.

DO NOT add drafting business logic to the shared kernel.
"""
