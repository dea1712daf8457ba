"""Turn a finished download session into a .txt document or a .zip archive."""

import io
import zipfile
from pathlib import Path

import structlog

from novel_dl.pipeline.orchestrator import DownloadSession, OutputMode

logger = structlog.get_logger()

BANNER_RULE = "=" * 40


class OutputPackager:
    """Package a session's chapters in the format chosen for the session."""

    def __init__(self, session: DownloadSession):
        self.session = session

    @property
    def filename(self) -> str:
        """``<title>(<start>~<end>).txt`` or ``<title>.zip``."""
        session = self.session
        if session.mode == OutputMode.ARCHIVE:
            return f"{session.title}.zip"
        return f"{session.title}({session.start}~{session.end}).txt"

    def to_text(self) -> str:
        """Single document: header banner followed by every chapter."""
        session = self.session
        header = (
            f"{session.title}\n"
            f"Episodes {session.start}~{session.end}"
            f" ({session.completed_episodes}/{session.total_episodes} downloaded)\n"
            f"{BANNER_RULE}\n\n"
        )
        return header + session.text

    def to_archive(self) -> bytes:
        """ZIP archive with one ``<episode title>.txt`` entry per chapter.

        Repeated titles get a numeric suffix so no entry is shadowed.
        """
        buffer = io.BytesIO()
        used: set[str] = set()

        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for chapter in self.session.entries:
                name = chapter.episode_title
                suffix = 1
                while name in used:
                    suffix += 1
                    name = f"{chapter.episode_title} ({suffix})"
                used.add(name)
                zf.writestr(
                    f"{name}.txt", f"{chapter.episode_title}\n\n{chapter.content}"
                )

        return buffer.getvalue()

    def to_bytes(self) -> bytes:
        if self.session.mode == OutputMode.ARCHIVE:
            return self.to_archive()
        return self.to_text().encode("utf-8")

    def write(self, output_dir: Path) -> Path:
        """Write the packaged output into ``output_dir``.

        Returns:
            Path of the written file
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        output_path = output_dir / self.filename
        data = self.to_bytes()
        output_path.write_bytes(data)

        logger.info("output_written", path=str(output_path), bytes=len(data))
        return output_path
