"""
draftdesk
=========

Drafts grounded replies to customer-support chat inquiries for operator review.
"""

__version__ = "1.0.0"
