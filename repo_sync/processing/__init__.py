"""Content processing for emitted file operations."""

from repo_sync.processing.content_annotator import ContentAnnotator, annotate, format_date

__all__ = ["ContentAnnotator", "annotate", "format_date"]
