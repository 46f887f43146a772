# CobberLearnSlope.py
# Launcher for the CobberSlope gradient descent lab.
#
# Usage:
#     python CobberLearnSlope.py
#     python CobberLearnSlope.py --loglevel DEBUG --log-file slope.log
#     python CobberLearnSlope.py --headless --initial-slope 0 --learning-rate 0.001

import argparse
import os
import sys

from labs.CobberLog import get_logger, setup_logging
from labs.CobberSlopeConfig import DEFAULT_INITIAL_SLOPE, DEFAULT_LEARNING_RATE, Hyperparameters
from labs.CobberSlopeRun import StepController

logger = get_logger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        description="CobberSlope - watch gradient descent fit the model y = a*x"
    )
    parser.add_argument(
        "-l", "--loglevel",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Logging level (default: WARNING)"
    )
    parser.add_argument("--log-file", default=None, help="Write log output to this file")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run gradient descent to completion without a window and print the history"
    )
    parser.add_argument("--initial-slope", default=str(DEFAULT_INITIAL_SLOPE), help="Starting slope a0")
    parser.add_argument("--learning-rate", default=str(DEFAULT_LEARNING_RATE), help="Learning rate eta")
    return parser


def run_headless(hyperparameters):
    controller = StepController(hyperparameters=hyperparameters)
    while controller.step() is not None:
        pass
    print(f"{'step':>4}  {'a':>12}  {'mse':>14}  {'gradient':>14}")
    for record in controller.history:
        print(f"{record.step:>4}  {record.a:>12.4f}  {record.mse:>14.4f}  {record.gradient:>14.4f}")
    print(f"next a = {controller.current_slope:.4f}")
    return controller


def run_gui(hyperparameters):
    from PyQt6.QtWidgets import QApplication
    from PyQt6.QtGui import QIcon
    from labs.CobberSlope import CobberSlopeApp
    from labs.CobberSlopeConfig import DEFAULT_MANUAL_SLOPE

    app = QApplication(sys.argv)
    try:
        # Robust path for icon
        if getattr(sys, 'frozen', False):
            base_dir = os.path.dirname(sys.executable)
        else:
            base_dir = os.path.dirname(os.path.abspath(__file__))
        icon_path = os.path.join(base_dir, "assets", "ProgramIcon.ico")
        if os.path.exists(icon_path): app.setWindowIcon(QIcon(icon_path))
    except OSError as e:
        logger.warning(f"Could not set window icon: {e}")

    controller = StepController(hyperparameters=hyperparameters)
    controller.set_slope(DEFAULT_MANUAL_SLOPE)
    window = CobberSlopeApp(controller)
    window.show()
    return app.exec()


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(level=args.loglevel, log_file=args.log_file, console=args.headless)
    hyperparameters = Hyperparameters.from_inputs(args.initial_slope, args.learning_rate)
    logger.info(f"Starting CobberSlope with {hyperparameters}")
    if args.headless:
        run_headless(hyperparameters)
        return 0
    return run_gui(hyperparameters)


if __name__ == "__main__":
    sys.exit(main())
