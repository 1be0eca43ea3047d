"""Structured logging for extraction runs.

Wraps a stdlib logger with run-aware helpers:
- Run start/end with elapsed time and an optional per-run log file
- Phase headers for each operation batch
- State machine transitions (which batch completed, what was enqueued)
- key=value structured data on every message
"""

import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class PipelineLogger:
    """Structured logger for the extraction orchestrator."""

    def __init__(self, name: str = "tiered_extractor", verbose: bool = False, log_dir: str | Path | None = None):
        """Initialize the logger.

        Args:
            name: Logger name.
            verbose: If True, show DEBUG level logs on the console.
            log_dir: Directory for per-run log files. If None, no file logging.
        """
        self.logger = logging.getLogger(name)
        self.verbose = verbose
        self._phase: str = ""
        self._phase_start: float = 0
        self._run_start: float = 0
        self._run_id: str = ""
        self._log_file: Path | None = None
        self._log_dir = Path(log_dir) if log_dir else None

        if not self.logger.handlers:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(ConsoleFormatter())
            console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
            self.logger.addHandler(console_handler)

        self.logger.setLevel(logging.DEBUG)

    def set_verbose(self, verbose: bool):
        self.verbose = verbose
        for handler in self.logger.handlers:
            if isinstance(handler, logging.StreamHandler) and handler.stream == sys.stdout:
                handler.setLevel(logging.DEBUG if verbose else logging.INFO)

    def _ts(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _elapsed(self) -> str:
        if self._phase_start:
            return f"{time.time() - self._phase_start:.1f}s"
        return ""

    def _total_elapsed(self) -> str:
        if not self._run_start:
            return ""
        elapsed = time.time() - self._run_start
        mins = int(elapsed // 60)
        if mins > 0:
            return f"{mins}m {elapsed % 60:.0f}s"
        return f"{elapsed:.1f}s"

    def start_run(self, run_id: str):
        """Mark run start and open the run's log file if a log_dir is configured."""
        self._run_start = time.time()
        self._run_id = run_id

        if self._log_dir:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self._log_file = self._log_dir / f"run_{run_id}_{timestamp}.log"

            file_handler = logging.FileHandler(self._log_file, encoding="utf-8")
            file_handler.setFormatter(FileFormatter())
            file_handler.setLevel(logging.DEBUG)
            self.logger.addHandler(file_handler)

        self.logger.info(f"[{self._ts()}] Starting run: {run_id}")

    def end_run(self, success: bool = True, stats: dict | None = None):
        status = "COMPLETE" if success else "FAILED"

        self.logger.info("")
        if stats:
            self.summary(stats)

        self.logger.info(f"\n{'=' * 50}")
        self.logger.info(f"Run {self._run_id} {status} [{self._total_elapsed()}]")
        self.logger.info(f"{'=' * 50}")

        if self._log_file:
            self.logger.info(f"Log: {self._log_file}")

    def start_phase(self, phase: str, total: int = 0, model: str = ""):
        """Print a header for a batch of work units."""
        self._phase = phase
        self._phase_start = time.time()

        details = []
        if total > 0:
            details.append(f"{total} units")
        if model:
            details.append(model.split("/")[-1])

        header = phase.upper()
        if details:
            header += f" ({', '.join(details)})"

        self.logger.info("")
        self.logger.info(header)

    def end_phase(self):
        self._phase = ""

    def transition(self, level: int, completed: str, enqueued: str, units: int, **data):
        """Log a state machine decision: which batch completed and what comes next."""
        message = f"L{level}: {completed} -> {enqueued} ({units} units)"
        if data:
            message = f"{message} | {_format_data(data)}"
        self.logger.info(f"  => {message}")

    def debug(self, message: str, **data):
        if data:
            message = f"{message} | {_format_data(data)}"
        self.logger.debug(f"[{self._ts()}] {message}")

    def info(self, message: str, **data):
        if data:
            message = f"{message} | {_format_data(data)}"
        self.logger.info(f"  {message}")

    def warning(self, message: str, **data):
        if data:
            message = f"{message} | {_format_data(data)}"
        self.logger.warning(f"[{self._ts()}] WARN: {message}")

    def error(self, message: str, exc: Exception | None = None, **data):
        if data:
            message = f"{message} | {_format_data(data)}"
        if exc:
            message = f"{message} | {type(exc).__name__}: {exc}"
        self.logger.error(f"[{self._ts()}] ERROR: {message}")

    def milestone(self, message: str, **data):
        """Log a high-level run event (plan cached, level advanced, run complete)."""
        if data:
            message = f"{message} | {_format_data(data)}"
        self.logger.info(f"  -> {message}")

    def summary(self, stats: dict):
        lines = ["SUMMARY"]
        for key, value in stats.items():
            if isinstance(value, dict):
                lines.append(f"  {key}:")
                for k, v in value.items():
                    lines.append(f"    {k}: {v}")
            else:
                lines.append(f"  {key}: {value}")
        self.logger.info("\n".join(lines))

    def phase_result(self, phase: str, result: str, **metrics):
        """Log the outcome of a handler or pass with its key metrics."""
        parts = [f"{phase}: {result}"]
        if metrics:
            parts.append(", ".join(f"{k}={v}" for k, v in metrics.items()))
        elapsed = self._elapsed()
        if elapsed:
            parts.append(f"[{elapsed}]")
        self.logger.info(f"  Done: {' | '.join(parts)}")


class ConsoleFormatter(logging.Formatter):
    """Console formatter: the message already carries its own prefix."""

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


class FileFormatter(logging.Formatter):
    """File formatter with full timestamp and level."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        return f"{ts} [{record.levelname[:4]}] {record.getMessage()}"


def _format_data(data: dict[str, Any]) -> str:
    parts = []
    for k, v in data.items():
        if isinstance(v, str) and len(v) > 50:
            v = v[:47] + "..."
        elif isinstance(v, (list, set, tuple)) and len(v) > 5:
            v = f"[{len(v)} items]"
        parts.append(f"{k}={v}")
    return ", ".join(parts)


_logger: PipelineLogger | None = None


def get_logger(verbose: bool = False, log_dir: str | Path | None = None) -> PipelineLogger:
    """Get or create the global pipeline logger."""
    global _logger
    if _logger is None:
        _logger = PipelineLogger(verbose=verbose, log_dir=log_dir)
    else:
        if verbose and not _logger.verbose:
            _logger.set_verbose(True)
        if log_dir and not _logger._log_dir:
            _logger._log_dir = Path(log_dir)
    return _logger


def reset_logger():
    """Reset the global logger (for testing)."""
    global _logger
    if _logger:
        for handler in _logger.logger.handlers[:]:
            if isinstance(handler, logging.FileHandler):
                handler.close()
                _logger.logger.removeHandler(handler)
    _logger = None
