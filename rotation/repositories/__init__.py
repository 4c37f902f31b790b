"""Repository package: expose all concrete repositories from one import."""
from .document_repository import DocumentRepository, MemoryDocumentRepository

__all__ = [
    'DocumentRepository',
    'MemoryDocumentRepository',
]
