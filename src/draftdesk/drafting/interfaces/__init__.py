"""
Drafting Interfaces Layer
==========================

Interface adapters (controllers) for the drafting module.
"""

from draftdesk.drafting.interfaces.controllers import router as drafting_router, webhook_router

__all__ = ["drafting_router", "webhook_router"]
