"""
API route modules.
"""

from vista.api.routes import embeddings, sync, webhooks

__all__ = ["embeddings", "sync", "webhooks"]
