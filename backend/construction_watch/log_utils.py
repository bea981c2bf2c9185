import json
import logging
from pathlib import Path

from .settings import settings

logger = logging.getLogger(__name__)

def append_jsonl(file_path: Path, record: dict):
    """Append one JSON record per line, creating the parent dir if needed."""
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
    except OSError as e:
        logger.warning(f"Failed writing {file_path.name}: {e}")

def truncate_jsonl(file_path: Path, max_lines: int = 5000):
    """Keep only the last max_lines in a jsonl file."""
    if not file_path.exists():
        return

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            lines = f.readlines()

        if len(lines) <= max_lines:
            return

        with open(file_path, "w", encoding="utf-8") as f:
            f.writelines(lines[-max_lines:])

        logger.info(f"Truncated {file_path.name} to {max_lines} lines.")
    except OSError as e:
        logger.error(f"Failed to truncate {file_path}: {e}")

def rotate_logs():
    """Scheduled cleanup of the scraper run log."""
    truncate_jsonl(settings.run_log_file, max_lines=settings.run_log_max_lines)
