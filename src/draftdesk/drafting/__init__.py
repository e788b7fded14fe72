"""
Drafting Module
===============

Bounded context for drafting replies to customer-support chat inquiries.

Responsibilities:
- Retrieve knowledge passages relevant to an inquiry (vector search with fallback)
- Synthesize a grounded draft reply for operator review
- Hand drafts to operators and accept knowledge documents
"""
