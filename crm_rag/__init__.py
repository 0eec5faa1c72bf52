"""
CRM RAG
=======

Question answering over body shop CRM records (customers, quotes, work
history) backed by a vector index and a language model.
"""

__version__ = "0.1.0"
