"""File management for per-session audio captures and result files."""

import json
import logging
import random
import string
import time
from pathlib import Path
from datetime import datetime
from typing import BinaryIO, Dict, Any, List, Optional

from ..models.result import AnswerRecord


logger = logging.getLogger(__name__)


class FileManager:
    """Manages the log directory holding one .raw and one .json file per session."""

    def __init__(self, log_dir: str = "./log"):
        """Initialize file manager with log directory.

        Args:
            log_dir: Directory receiving session artifacts
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"FileManager initialized with log_dir: {self.log_dir}")

    def new_session_id(self) -> str:
        """Generate a session id: timestamp with random suffix.

        Returns:
            Session ID such as 20240131_174502_k3x9
        """
        while True:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=4))
            session_id = f"{timestamp}_{random_suffix}"
            if not self.raw_path(session_id).exists():
                return session_id

    def raw_path(self, session_id: str) -> Path:
        return self.log_dir / f"{session_id}.raw"

    def result_path(self, session_id: str) -> Path:
        return self.log_dir / f"{session_id}.json"

    def open_raw_log(self, session_id: str) -> BinaryIO:
        """Open the raw audio capture file for writing.

        The caller owns the returned handle.
        """
        path = self.raw_path(session_id)
        logger.debug(f"Opening raw audio log: {path}")
        return open(path, 'wb')

    def save_result(self, session_id: str, record: AnswerRecord) -> str:
        """Save the answer record of a session as JSON.

        Returns:
            Path to saved result file
        """
        result_file = self.result_path(session_id)
        try:
            with open(result_file, 'w', encoding='utf-8') as f:
                json.dump(record.to_dict(), f, ensure_ascii=False)
            logger.info(f"Session result saved: {result_file}")
            return str(result_file)
        except (OSError, TypeError) as e:
            logger.error(f"problem logging json - {e}")
            raise

    def load_result(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Load a session result file, or None if it does not exist or is unreadable."""
        result_file = self.result_path(session_id)
        if not result_file.exists():
            logger.warning(f"Session result file not found: {result_file}")
            return None
        try:
            with open(result_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading session result: {e}")
            return None

    def list_sessions(self) -> List[str]:
        """List session IDs that have a raw audio capture, oldest first."""
        sessions = sorted(path.stem for path in self.log_dir.glob("*.raw"))
        logger.debug(f"Found {len(sessions)} sessions")
        return sessions

    def cleanup_old_sessions(self, max_age_days: int = 30) -> int:
        """Delete session artifacts older than max_age_days.

        Returns:
            Number of sessions cleaned up
        """
        cutoff_time = time.time() - (max_age_days * 24 * 60 * 60)
        cleaned = set()

        for pattern in ("*.raw", "*.json"):
            for path in self.log_dir.glob(pattern):
                try:
                    if path.stat().st_mtime < cutoff_time:
                        path.unlink()
                        cleaned.add(path.stem)
                except OSError as e:
                    logger.error(f"Error removing {path}: {e}")

        logger.info(f"Cleaned up {len(cleaned)} old sessions")
        return len(cleaned)

    def get_storage_stats(self) -> Dict[str, Any]:
        """Get storage usage statistics."""
        total_size = 0
        raw_files = 0
        result_files = 0
        for path in self.log_dir.iterdir():
            if not path.is_file():
                continue
            if path.suffix == ".raw":
                raw_files += 1
            elif path.suffix == ".json":
                result_files += 1
            else:
                continue
            total_size += path.stat().st_size

        return {
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "raw_files": raw_files,
            "result_files": result_files,
            "log_directory": str(self.log_dir),
        }
