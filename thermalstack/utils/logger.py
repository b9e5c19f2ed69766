"""
Thermal Stack FEA - Logging System
==================================
Console/file logging with performance tracking for mesh generation and
the solve loop.

The solver never prints; the stack illustration, progress lines and the
final report all go through this logger so a caller can silence or
redirect them with the usual ``logging`` machinery.

Version: 1.0.0
"""

import logging
import os
import sys
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

LOGGER_NAME = 'ThermalStackFEA'
DEFAULT_LOG_DIR = os.path.join(os.path.expanduser('~'), '.thermalstack', 'logs')


def _stream_is_terminal(stream) -> bool:
    isatty = getattr(stream, "isatty", None)
    if isatty is None:
        return False
    try:
        return bool(isatty())
    except (ValueError, OSError):
        # closed or detached stream
        return False


class ThermalStackFormatter(logging.Formatter):
    """One line per record: time, level, origin, message. Level tinted on a tty."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True, stream=None):
        super().__init__()
        self.use_colors = use_colors and _stream_is_terminal(stream or sys.stderr)

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        level = f"{record.levelname:<8s}"
        if self.use_colors and record.levelno in self.LEVEL_COLORS:
            level = f"{self.LEVEL_COLORS[record.levelno]}{level}{self.RESET}"

        text = f"{stamp} {level} {record.module}:{record.lineno}  {record.getMessage()}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


class PerformanceTracker:
    """Wall-clock durations collected per named operation."""

    def __init__(self):
        self._durations: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def record_timing(self, operation: str, duration_s: float):
        with self._lock:
            self._durations.setdefault(operation, []).append(duration_s)

    def get_stats(self, operation: str) -> Dict[str, float]:
        """count, total, mean, min and max for one operation (zeros if never seen)."""
        with self._lock:
            samples = list(self._durations.get(operation, ()))
        if not samples:
            return dict.fromkeys(('count', 'total', 'mean', 'min', 'max'), 0)
        total = sum(samples)
        return {
            'count': len(samples),
            'total': total,
            'mean': total / len(samples),
            'min': min(samples),
            'max': max(samples),
        }

    def get_all_stats(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            names = sorted(self._durations)
        return {name: self.get_stats(name) for name in names}

    def clear(self):
        with self._lock:
            self._durations.clear()


class ThermalStackLogger:
    """
    Process-wide logger for the thermal stack solver.

    Only one instance exists; constructing it again returns the same object.
    Use configure() (or initialize_logger()) to change handlers afterwards.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self, **settings):
        if self._initialized:
            return
        self._initialized = True
        self.configure(**settings)

    def configure(self,
                  log_dir: Optional[str] = None,
                  log_level: int = logging.DEBUG,
                  console_level: int = logging.INFO,
                  enable_file_logging: bool = False,
                  enable_performance_tracking: bool = True):
        """Drop any existing handlers and attach new console (and file) handlers."""
        self.log_dir = log_dir
        self.log_level = log_level
        self.console_level = console_level
        self.current_log_file: Optional[str] = None

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(log_level)
        while self.logger.handlers:
            old = self.logger.handlers[0]
            self.logger.removeHandler(old)
            old.close()

        console = logging.StreamHandler(sys.stderr)
        console.setLevel(console_level)
        console.setFormatter(ThermalStackFormatter(stream=sys.stderr))
        self.logger.addHandler(console)

        if enable_file_logging:
            self._add_file_handler()

        self.performance = PerformanceTracker() if enable_performance_tracking else None
        self.simulation_id: Optional[str] = None
        self._run_started: Optional[float] = None

    def _add_file_handler(self):
        log_dir = self.log_dir or DEFAULT_LOG_DIR
        os.makedirs(log_dir, exist_ok=True)
        self.log_dir = log_dir

        path = os.path.join(log_dir, datetime.now().strftime('thermalstack_%Y%m%d_%H%M%S.log'))
        handler = logging.FileHandler(path, encoding='utf-8')
        handler.setLevel(self.log_level)
        handler.setFormatter(ThermalStackFormatter(use_colors=False))
        self.logger.addHandler(handler)

        self.current_log_file = path
        self.logger.info(f"Logging to {path}")

    def set_console_level(self, level: int):
        """Change the console threshold without touching the log file."""
        for handler in self.logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(level)
        self.console_level = level

    def debug(self, message: str, *args, **kwargs):
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        self.logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        self.logger.error(message, *args, **kwargs)

    def exception(self, message: str, *args, **kwargs):
        self.logger.exception(message, *args, **kwargs)

    # -------------------------------------------------------------------------
    # Run bookkeeping
    # -------------------------------------------------------------------------

    def start_simulation(self, sim_id: str, params: Dict[str, Any]):
        """Banner plus the run parameters, one per line."""
        self.simulation_id = sim_id
        self._run_started = time.perf_counter()

        self.info("=" * 60)
        self.info(f"SIMULATION STARTED: {sim_id}")
        width = max((len(k) for k in params), default=0)
        for key, value in params.items():
            self.info(f"  {key:<{width}s} = {value}")
        self.info("-" * 60)

    def end_simulation(self, success: bool = True, message: str = ""):
        """Closing banner with elapsed time and the timings gathered during the run."""
        elapsed = time.perf_counter() - self._run_started if self._run_started else 0.0

        self.info("-" * 60)
        self.info(f"SIMULATION {'COMPLETED' if success else 'FAILED'}: {self.simulation_id} "
                  f"({elapsed:.2f} s)")
        if message:
            self.info(f"  {message}")

        if self.performance:
            for name, stats in self.performance.get_all_stats().items():
                self.info(f"  {name}: {stats['count']} x, {stats['total']:.3f} s total, "
                          f"{stats['mean']:.3f} s mean")
            self.performance.clear()

        self.info("=" * 60)
        self.simulation_id = None
        self._run_started = None

    def log_mesh_stats(self, active: int, total: int, nodes: int, nx: int, ny: int, nz: int):
        self.info(f"Mesh: {active}/{total} active elements, {nodes} nodes, arena {nx}x{ny}x{nz}")

    def log_sample(self, time_s: float, temp_c: float, rate_c_per_s: float):
        self.debug(f"t={time_s:.6f}s: T_avg={temp_c:.4f}°C, dT/dt={rate_c_per_s:.4f}°C/s")


_logger: Optional[ThermalStackLogger] = None


def get_logger() -> ThermalStackLogger:
    """The shared logger, created with default settings on first use."""
    global _logger
    if _logger is None:
        _logger = ThermalStackLogger()
    return _logger


def initialize_logger(log_dir: Optional[str] = None,
                      log_level: int = logging.DEBUG,
                      console_level: int = logging.INFO,
                      enable_file_logging: bool = False) -> ThermalStackLogger:
    """Reconfigure the shared logger and return it."""
    logger = get_logger()
    logger.configure(log_dir=log_dir, log_level=log_level,
                     console_level=console_level,
                     enable_file_logging=enable_file_logging)
    return logger


def timed_function(operation_name: Optional[str] = None):
    """Record the wrapped call's duration; log and re-raise failures."""
    def decorator(func: Callable):
        name = operation_name or func.__name__

        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger()
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{name} failed after {time.perf_counter() - start:.3f}s: {e}")
                raise
            finally:
                duration = time.perf_counter() - start
                if logger.performance:
                    logger.performance.record_timing(name, duration)
                logger.debug(f"{name} took {duration:.3f}s")
        return wrapper
    return decorator


@contextmanager
def log_section(section_name: str):
    """Bracket a block of work with start/finish lines."""
    logger = get_logger()
    logger.info(f"--- {section_name} ---")
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        logger.error(f"--- {section_name} failed after {time.perf_counter() - start:.3f}s: {e} ---")
        raise
    logger.info(f"--- {section_name} completed in {time.perf_counter() - start:.3f}s ---")


__all__ = [
    'LOGGER_NAME',
    'ThermalStackLogger',
    'ThermalStackFormatter',
    'PerformanceTracker',
    'get_logger',
    'initialize_logger',
    'timed_function',
    'log_section',
]
