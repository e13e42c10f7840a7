"""
Memory Studio - local-first knowledge base with hybrid semantic + keyword retrieval.
"""

from .core.config import VERSION

__version__ = VERSION
