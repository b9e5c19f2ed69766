"""
Thermal Stack FEA - Command Line Entry Point
============================================
Run a stack definition to convergence.

    python -m thermalstack                     # built-in semiconductor sandwich
    python -m thermalstack my_stack.json --pdf report.pdf
    python -m thermalstack --dump-example my_stack.json
"""

import argparse
import logging
import sys
from typing import List, Optional

from .core.config import ConfigManager, StackConfig
from .core.exceptions import ConvergenceError
from .utils.logger import initialize_logger
from .utils.report_generator import ReportSettings, generate_report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thermalstack",
        description="Explicit finite difference conduction solver for stacked material blocks.",
    )
    parser.add_argument("config", nargs="?", help="stack definition JSON (default: built-in example)")
    parser.add_argument("--pdf", metavar="PATH", help="write a PDF report after solving")
    parser.add_argument("--max-steps", type=int, help="override the solver step limit")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="console log level")
    parser.add_argument("--log-dir", help="also write a log file to this directory")
    parser.add_argument("--dump-example", metavar="PATH",
                        help="write the built-in example definition to PATH and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logger = initialize_logger(
        log_dir=args.log_dir,
        console_level=getattr(logging, args.log_level),
        enable_file_logging=bool(args.log_dir),
    )

    if args.dump_example:
        manager = ConfigManager()
        manager.config = StackConfig.default_example()
        manager.export(args.dump_example)
        logger.info(f"Example stack written to {args.dump_example}")
        return 0

    try:
        config = ConfigManager(args.config).get_config()
        if args.max_steps is not None:
            config.solver.max_steps = args.max_steps

        stack = config.build_stack()
        stack.mesh()
        stack.monitor_block(config.monitored_block)
    except (OSError, ValueError, KeyError, IndexError) as e:
        logger.error(f"Invalid stack definition {args.config or '(built-in example)'}: {e}")
        return 2

    logger.start_simulation(args.config or "built-in example", {
        'blocks': len(stack.blocks),
        'mesh_size_mm': config.solver.mesh_size_mm,
        'timestep_s': config.solver.timestep_s,
        'monitored_block': config.monitored_block,
    })

    try:
        result = stack.solve()
    except ConvergenceError as e:
        logger.end_simulation(success=False, message=str(e))
        return 1

    logger.end_simulation(success=True,
                          message=f"thermal impedance {result.thermal_impedance:.3f} K/W")

    if args.pdf:
        generate_report(args.pdf, stack, result, ReportSettings(project_name=args.config or ""))
        logger.info(f"PDF report written to {args.pdf}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
