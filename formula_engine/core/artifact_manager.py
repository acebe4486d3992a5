"""
Artifact management for build logs and run summaries.
"""

import json
import logging
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional, List


class ArtifactManager:
    """Stores per-run diagnostics: build logs, pipeline outcomes and run summaries."""

    def __init__(self, base_path: Path, run_id: Optional[str] = None):
        """
        Initialize artifact manager.

        Args:
            base_path: Base directory for storing artifacts
            run_id: Optional run ID, defaults to a UTC timestamp
        """
        self.logger = logging.getLogger(__name__)
        self.base_path = Path(base_path)
        self.run_id = run_id or datetime.utcnow().strftime("%Y%m%d_%H%M%S")
        self.run_base_path = self.base_path / "runs" / self.run_id
        self.run_base_path.mkdir(parents=True, exist_ok=True)

    def get_tool_directory(self, tool_name: str) -> Path:
        """Get directory path for a specific tool."""
        tool_dir = self.run_base_path / "tools" / tool_name
        tool_dir.mkdir(parents=True, exist_ok=True)
        return tool_dir

    def save_json(self, filename: str, data: Dict[str, Any],
                  subdirs: Optional[List[str]] = None) -> Path:
        """
        Save JSON data to file.

        Args:
            filename: JSON filename
            data: Data to save
            subdirs: Optional subdirectories under the run directory

        Returns:
            Path to saved file
        """
        target_dir = self.run_base_path
        for subdir in subdirs or []:
            target_dir = target_dir / subdir
        target_dir.mkdir(parents=True, exist_ok=True)

        json_path = target_dir / filename

        if 'timestamp' not in data:
            data['timestamp'] = datetime.utcnow().isoformat()

        with open(json_path, 'w') as f:
            json.dump(data, f, indent=2, default=str)

        self.logger.info(f"Saved JSON to {json_path}")
        return json_path

    def save_log(self, tool_name: str, log_content: str, log_type: str = "build") -> Path:
        """
        Save a log file for a tool.

        Args:
            tool_name: Name of the tool
            log_content: Log content
            log_type: Type of log (build, verify, ...)

        Returns:
            Path to saved log
        """
        tool_dir = self.get_tool_directory(tool_name)
        log_path = tool_dir / f"{log_type}.log"
        log_path.write_text(log_content)

        self.logger.info(f"Saved log to {log_path}")
        return log_path
