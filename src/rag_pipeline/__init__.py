"""Woodshop chat pipeline.

This package answers woodworking questions from retrieved documents, streams
the answer, and derives deep-linked video references and related products
from the completed text.
"""
