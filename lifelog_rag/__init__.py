"""
Lifelog RAG: grounded question answering over a user's personal data.
"""

__version__ = "1.0.0"
