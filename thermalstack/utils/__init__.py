"""
Thermal Stack FEA - Utilities Module
====================================
Logging and report generation.
"""

from .logger import (
    ThermalStackLogger,
    ThermalStackFormatter,
    PerformanceTracker,
    get_logger,
    initialize_logger,
    timed_function,
    log_section,
)

from .report_generator import (
    illustrate,
    format_convergence_report,
    ReportSettings,
    PDFReportGenerator,
    generate_report,
)

__all__ = [
    # Logger
    'ThermalStackLogger',
    'ThermalStackFormatter',
    'PerformanceTracker',
    'get_logger',
    'initialize_logger',
    'timed_function',
    'log_section',
    # Report
    'illustrate',
    'format_convergence_report',
    'ReportSettings',
    'PDFReportGenerator',
    'generate_report',
]
