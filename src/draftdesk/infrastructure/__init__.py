"""
Infrastructure Layer
=====================

External service clients:
- LLM (OpenAI embeddings and chat completions)
- Vector store (Milvus / in-memory)
- Operator notifications (Slack)
"""
