"""
Output Manager — Timestamped run folders and retention cleanup.

Each migration run gets a folder under the base output directory named
YYYYMMDD_HHMM_{run_name}, e.g. "20261018_1430_db_social08_near_to_social_near".
The orchestrator writes migration_results.json into it: configuration,
final state, counts, total balance, committed offsets and any error.

The folder holds a report for the operator only. It is never read back; a
re-run always fetches from the source again.

The retention policy deletes folders older than OUTPUT_RETENTION_DAYS at the
start of each run. Set retention_days=0 to keep all output indefinitely.
"""

import json
import os
import re
import shutil
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

_FOLDER_PATTERN = re.compile(r'^(\d{8})_(\d{4})_.*$')


def run_name_for(source_account_id: str, destination_account_id: str) -> str:
    return f"{source_account_id}_to_{destination_account_id}"


class OutputManager:
    """Manages run folders with timestamping and retention policies.

    Attributes:
        base_dir: Root output directory (default: ./output).
        run_name: Used in folder naming (sanitized to alphanumeric, '-' and '_').
        retention_days: Delete folders older than this many days (0 = keep forever).
        current_dir: Path to the current run's folder (None until created).
    """

    def __init__(self, base_dir: str, run_name: str, retention_days: int = 30):
        self.base_dir = base_dir
        self.run_name = run_name
        self.retention_days = retention_days
        self.current_dir: Optional[str] = None
        self._run_timestamp = datetime.now()

    def create_timestamped_dir(self) -> str:
        """Create the folder for the current run and return its path."""
        timestamp = self._run_timestamp.strftime("%Y%m%d_%H%M")
        safe_name = "".join(
            c if c.isalnum() or c in '-_' else '_'
            for c in self.run_name
        )
        self.current_dir = os.path.join(self.base_dir, f"{timestamp}_{safe_name}")
        os.makedirs(self.current_dir, exist_ok=True)
        return self.current_dir

    def cleanup_old_folders(self, debug: bool = False) -> int:
        """Remove run folders older than retention_days.

        Only folders matching the YYYYMMDD_HHMM_* pattern are considered.

        Returns:
            The number of folders deleted.
        """
        if self.retention_days <= 0 or not os.path.isdir(self.base_dir):
            return 0

        deleted_count = 0
        cutoff_date = datetime.now() - timedelta(days=self.retention_days)

        for folder_name in os.listdir(self.base_dir):
            folder_path = os.path.join(self.base_dir, folder_name)
            match = _FOLDER_PATTERN.match(folder_name)
            if not match or not os.path.isdir(folder_path):
                continue

            try:
                folder_datetime = datetime.strptime(
                    f"{match.group(1)}_{match.group(2)}", "%Y%m%d_%H%M"
                )
                if folder_datetime < cutoff_date:
                    shutil.rmtree(folder_path)
                    deleted_count += 1
                    if debug:
                        print(f"  Deleted old output folder: {folder_name}")
            except (ValueError, OSError) as e:
                if debug:
                    print(f"  Warning: Could not process folder {folder_name}: {e}")

        return deleted_count

    def get_output_path(self, filename: str) -> str:
        """Get the full path for a file in the current run folder.

        Raises:
            RuntimeError: If create_timestamped_dir() has not been called yet.
        """
        if not self.current_dir:
            raise RuntimeError("Output directory not created. Call create_timestamped_dir() first.")
        return os.path.join(self.current_dir, filename)

    def save_json(self, filename: str, data: Dict[str, Any]) -> str:
        """Write data as indented JSON into the current run folder, creating it if needed."""
        if not self.current_dir:
            self.create_timestamped_dir()
        path = self.get_output_path(filename)
        with open(path, "w") as f:
            json.dump(data, f, indent=2, default=str)
        return path
