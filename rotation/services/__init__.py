"""Services package: expose the store and the pure helpers from one import."""
from .rotation_service import RotationStore
from .pick_service import build_candidates, pick_today, score_pair
from .document_service import load_document, seed_document
from .view_service import build_view

__all__ = [
    'RotationStore',
    'build_candidates',
    'pick_today',
    'score_pair',
    'load_document',
    'seed_document',
    'build_view',
]
