from bookrag.embedder.base import BaseEmbedder
from bookrag.embedder.http import HttpEmbeddingClient, WireFormat

__all__ = ["BaseEmbedder", "HttpEmbeddingClient", "WireFormat"]
