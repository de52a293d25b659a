"""
Minimal logging context for xseed.
Single place to control all output: screen + file, with flush.
"""
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console


class XseedLogger:
    """Minimal logger: print to screen + file, always flush"""

    def __init__(self, log_file: Optional[Path] = None, debug: bool = False):
        self.log_file = log_file
        self._file_handle = None
        self._start_time = datetime.now()
        self._console = Console(highlight=False)
        self.debug_mode = debug
        self._rate_limit_note_sites: set[str] = set()

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(log_file, 'w', buffering=1, encoding='utf-8')  # Line buffered, UTF-8

        from xseed.__version__ import __version__

        welcome = f"({self._start_time.strftime('%H:%M:%S')}  Started xseed {__version__})"
        self.log(welcome)

    def log(self, msg: str, prefix: str = ""):
        """Log to screen and file"""
        output = f"{prefix}{msg}" if prefix else msg

        self._console.print(output, markup=False, soft_wrap=True)

        if self._file_handle:
            self._file_handle.write(output + "\n")
            self._file_handle.flush()
            os.fsync(self._file_handle.fileno())

    def info(self, msg: str):
        """Info message"""
        self.log(msg)

    def warning(self, msg: str):
        """Warning message"""
        self.log(msg, "[WARNING] ")

    def error(self, msg: str):
        """Error message"""
        self.log(msg, "[ERROR] ")

    def debug(self, msg: str):
        """Debug message (only shown in debug mode)"""
        if self.debug_mode:
            timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
            self.log(msg, f"[{timestamp}] [DEBUG] ")

    def api_wait(self, site: str, seconds: float):
        """Log request pacing once per site"""
        _ = seconds
        site_key = site.upper()
        if site_key in self._rate_limit_note_sites:
            return
        self._rate_limit_note_sites.add(site_key)
        self.log(f"Request pacing active for {site_key}.", "[INFO] ")

    def api_wait_debug(self, site: str, seconds: float):
        """Log request pacing details (debug mode only)."""
        self.debug(f"Rate limiting detail: waiting {seconds:.3f}s before next {site} request")

    def api_retry(self, service: str, attempt: int, max_attempts: int, delay: int):
        """Log API retry"""
        self.log(f"{service} server timeout. Retrying in {delay}s... (attempt {attempt}/{max_attempts})", "[WARNING] ")

    def api_failed(self, service: str, max_attempts: int):
        """Log API failure"""
        self.log(f"{service} server not responding after {max_attempts} attempts. Aborting.", "[ERROR] ")

    def api_request(self, method: str, url: str, params: Optional[dict] = None):
        """Log API request (debug mode only)"""
        if self.debug_mode:
            timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
            self.log(f"API Request: {method} {url}", f"[{timestamp}] ")
            if params:
                self.log(f"  Params: {json.dumps(params, indent=2, default=str)}", f"[{timestamp}] ")

    def api_response(self, status: int, data: object, elapsed_ms: float):
        """Log API response (debug mode only)"""
        if self.debug_mode:
            timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
            self.log(f"API Response ({elapsed_ms:.0f}ms): Status {status}", f"[{timestamp}] ")
            if data:
                # Truncate large responses
                data_str = json.dumps(data, indent=2, default=str)
                if len(data_str) > 5000:
                    data_str = data_str[:5000] + "\n  ... (truncated)"
                self.log(f"  Data: {data_str}", f"[{timestamp}] ")

    def close(self):
        """Close file handle with goodbye message"""
        if self._file_handle:
            end_time = datetime.now()
            elapsed = end_time - self._start_time
            goodbye = f"({end_time.strftime('%H:%M:%S')}  Ended session, elapsed {elapsed.total_seconds():.1f}s)"
            self.log(goodbye)
            self._file_handle.close()
            self._file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


# Global instance (set by the CLI)
_logger: Optional[XseedLogger] = None


def set_logger(logger: XseedLogger):
    """Set global logger instance"""
    global _logger
    _logger = logger


def get_logger() -> XseedLogger:
    """Get global logger instance"""
    global _logger
    if _logger is None:
        # Fallback: create stdout-only logger
        _logger = XseedLogger()
    return _logger


# Convenience functions
def log(msg: str):
    get_logger().log(msg)


def info(msg: str):
    get_logger().info(msg)


def warning(msg: str):
    get_logger().warning(msg)


def error(msg: str):
    get_logger().error(msg)


def debug(msg: str):
    get_logger().debug(msg)
