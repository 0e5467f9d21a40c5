"""Temporal activities for document generation."""

from .generation import run_generation_job

__all__ = ["run_generation_job"]
