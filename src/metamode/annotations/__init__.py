"""Annotation extraction package."""

from metamode.annotations.extractor import parse_annotations, parse_annotations_file
from metamode.annotations.scanner import scan_directory

__all__ = ["parse_annotations", "parse_annotations_file", "scan_directory"]
