"""Inbox folder scanning, brief front-matter parsing, sources files, and archiving."""

import logging
import shutil
from datetime import datetime
from pathlib import Path

import frontmatter
import yaml

from refinery.models import Source

logger = logging.getLogger(__name__)


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    """Create inbox and archive directories if they don't exist."""
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Return all .md files in inbox_dir, oldest first."""
    return sorted(inbox_dir.glob("*.md"), key=lambda p: p.stat().st_mtime)


def parse_sources(raw) -> tuple[Source, ...]:
    """Build Source entries from a list of {url, title, content} mappings.

    Entries without content are skipped.
    """
    if not isinstance(raw, list):
        return ()
    sources: list[Source] = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("content"):
            logger.warning("Ignoring source without content: %r", item)
            continue
        sources.append(
            Source(
                url=str(item.get("url", "")),
                title=str(item.get("title", "")),
                content=str(item["content"]),
            )
        )
    return tuple(sources)


def load_sources_file(path: Path) -> tuple[Source, ...]:
    """Load sources from a YAML (or JSON) file holding a list of sources."""
    with path.open("r", encoding="utf-8") as f:
        return parse_sources(yaml.safe_load(f))


def parse_brief_file(file_path: Path) -> tuple[str, dict]:
    """Parse a brief markdown file with optional YAML front-matter.

    Returns:
        (brief, metadata) where metadata may carry:
        sources (list of {url, title, content}), max_attempts (int),
        score_only (bool). If no front-matter, metadata is {}.
    """
    post = frontmatter.load(str(file_path))
    return post.content.strip(), dict(post.metadata)


def archive_file(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move file to archive_dir with a timestamp prefix ("FAILED_" first when failed)."""
    timestamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    prefix = "FAILED_" if failed else ""
    dest = archive_dir / f"{prefix}{timestamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    return dest
