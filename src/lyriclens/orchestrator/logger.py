"""Structured JSON logger for studio observability.

This module writes JSON-formatted log entries to studio.log in the configured
log directory. Each log entry is a single JSON object on one line, making it
easy to parse and analyze.

Log Event Types:
- stage_start: A studio operation (draft, frames, diagram...) begins
- stage_complete: The operation finished
- stage_failure: The operation raised an agent error
- quota_warning: A remote collaborator reported rate limiting
- project_saved / project_loaded: Bundle persisted or restored
- session_error: Unexpected failure inside the studio itself
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


LOG_FILE_NAME = "studio.log"


class StructuredJSONLogger:
    """Structured JSON logger that writes to studio.log.

    Every entry has the shape::

        {
            "event": "stage_start|stage_complete|...",
            "timestamp": "ISO8601",
            ...additional fields based on event type...
        }

    The logger keeps both a file handle for JSON lines and a console handler
    for human-readable lines.
    """

    def __init__(self, log_directory: Optional[str] = None):
        """Initialize the structured JSON logger.

        Args:
            log_directory: Directory where studio.log will be written.
                           If None, only console logging is enabled.
        """
        self.log_directory = log_directory
        self.log_file_path: Optional[Path] = None
        self.json_file_handle = None

        if log_directory:
            self._setup_log_file(log_directory)

        self.logger = logging.getLogger(__name__)
        if not self.logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)
            self.logger.setLevel(logging.INFO)

    def _setup_log_file(self, log_directory: str) -> None:
        output_path = Path(log_directory)
        output_path.mkdir(parents=True, exist_ok=True)
        self.log_file_path = output_path / LOG_FILE_NAME
        self.json_file_handle = open(self.log_file_path, 'a', encoding='utf-8')

    def _write_json_log(self, event: str, **fields: Any) -> Dict[str, Any]:
        log_entry = {
            "event": event,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        log_entry.update(fields)
        if self.json_file_handle:
            self.json_file_handle.write(json.dumps(log_entry, ensure_ascii=False) + '\n')
            self.json_file_handle.flush()
        return log_entry

    def log_stage_start(self, stage: str, input_summary: str) -> None:
        """Log the start of a studio operation.

        Args:
            stage: Operation name, e.g. ``draft_storyboard``
            input_summary: Brief summary of the operation's input
        """
        self._write_json_log("stage_start", stage=stage, input_summary=input_summary)
        self.logger.info(f"Starting {stage}: {input_summary}")

    def log_stage_complete(
        self,
        stage: str,
        duration_ms: float,
        output_summary: str,
        status: str = "SUCCESS"
    ) -> None:
        """Log the completion of a studio operation.

        Args:
            stage: Operation name
            duration_ms: Execution duration in milliseconds
            output_summary: Brief summary of the result
            status: SUCCESS, PARTIAL_SUCCESS or CONFLICT
        """
        self._write_json_log(
            "stage_complete",
            stage=stage,
            duration_ms=round(duration_ms, 2),
            output_summary=output_summary,
            status=status,
        )
        self.logger.info(f"Completed {stage} in {duration_ms:.2f}ms: {output_summary}")

    def log_stage_failure(
        self,
        stage: str,
        error_message: str,
        error_code: str,
        input_context: str,
        duration_ms: Optional[float] = None
    ) -> None:
        """Log a studio operation that ended with an agent error."""
        fields: Dict[str, Any] = {
            "stage": stage,
            "error_message": error_message,
            "error_code": error_code,
            "input_context": input_context,
        }
        if duration_ms is not None:
            fields["duration_ms"] = round(duration_ms, 2)
        self._write_json_log("stage_failure", **fields)
        self.logger.error(f"Failed {stage} [{error_code}]: {error_message}")

    def log_quota_warning(self, stage: str, message: str) -> None:
        self._write_json_log("quota_warning", stage=stage, message=message)
        self.logger.warning(f"Quota warning during {stage}: {message}")

    def log_project_saved(self, path: str, segment_count: int, version: str) -> None:
        self._write_json_log(
            "project_saved", path=path, segment_count=segment_count, version=version
        )
        self.logger.info(f"Saved project with {segment_count} scenes to {path}")

    def log_project_loaded(self, path: str, segment_count: int, version: str) -> None:
        self._write_json_log(
            "project_loaded", path=path, segment_count=segment_count, version=version
        )
        self.logger.info(f"Loaded project v{version} with {segment_count} scenes from {path}")

    def log_session_error(
        self,
        error_type: str,
        error_message: str,
        stage: Optional[str] = None
    ) -> None:
        """Log an unexpected studio-level error.

        Args:
            error_type: Exception class name
            error_message: Error message
            stage: Optional operation where the error occurred
        """
        fields: Dict[str, Any] = {"error_type": error_type, "error_message": error_message}
        if stage:
            fields["stage"] = stage
        self._write_json_log("session_error", **fields)
        self.logger.error(f"Session error: {error_message}")

    def close(self) -> None:
        """Close the log file handle."""
        if self.json_file_handle:
            self.json_file_handle.close()
            self.json_file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
