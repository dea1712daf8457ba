"""Exporter module for writing finished sessions to disk."""

from novel_dl.exporter.packager import OutputPackager

__all__ = ["OutputPackager"]
