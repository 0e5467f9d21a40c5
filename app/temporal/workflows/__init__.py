"""Temporal workflows for document generation."""

from .document_generation import DocumentGenerationWorkflow

__all__ = ["DocumentGenerationWorkflow"]
