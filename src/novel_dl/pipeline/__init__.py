"""Download orchestration over a discovered chapter list."""

from novel_dl.pipeline.orchestrator import DownloadOrchestrator, DownloadSession, OutputMode

__all__ = ["DownloadOrchestrator", "DownloadSession", "OutputMode"]
