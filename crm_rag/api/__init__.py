"""
CRM RAG API
===========

FastAPI surface for querying and feeding the CRM knowledge base.
"""

from .main import create_app

__all__ = ["create_app"]
