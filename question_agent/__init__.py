"""
Question Agent - QTI Assessment Assistant
=========================================

A conversational agent for teachers and content authors working with
assessment questions. It looks questions up in a question store, creates
and updates them, and converts them to and from QTI 3.0 assessment items.

This package provides:
- Agent system: a think/act reasoning loop over a language model
- Tool registry with database and QTI tools
- QTI 3.0 generation, validation and parsing
- JSON-file and in-memory question stores
"""

__version__ = "1.0.0"
