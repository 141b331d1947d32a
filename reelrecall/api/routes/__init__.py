"""
API route modules.
"""

from reelrecall.api.routes import search, videos

__all__ = ["search", "videos"]
