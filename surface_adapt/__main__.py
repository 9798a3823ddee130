"""
CLI entry point for surface mesh adaptation
"""

import argparse
import sys
import logging
import traceback

from .pipeline.config_manager import ConfigManager
from .pipeline.constants import DEFAULT_CONSTANTS
from .pipeline.orchestrator import JobOrchestrator
from .pipeline.services import Services
from .pipeline.status import Status
from .pipeline.timing import Chrono

logger = logging.getLogger('surface_adapt.cli')

# Verbosity at and above which debug messages and tracebacks are shown
DEBUG_VERBOSITY = 5


def setup_logging(verbosity=1, log_file=None):
    """Setup logging configuration"""
    if verbosity < 0:
        level = logging.WARNING
    elif verbosity >= DEBUG_VERBOSITY:
        level = logging.DEBUG
    else:
        level = logging.INFO
    format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=handlers
    )


def build_parser():
    parser = argparse.ArgumentParser(
        prog="surface-adapt",
        description="Surface mesh adaptation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog="""
Examples:
  # Adapt a mesh to its metric (input.sol is picked up when present)
  python -m surface_adapt input.mesh -hausd 0.001

  # Discretize the zero level of a level-set function
  python -m surface_adapt -in input.mesh -ls -sol input.sol -out output.mesh

  # Only write the default local parameters to input.mmgs
  python -m surface_adapt input.mesh -default -optim
        """
    )

    parser.add_argument('input', nargs='?', help='Input mesh (same as -in)')
    parser.add_argument('-in', dest='mesh_in', help='Input mesh (.mesh, .msh, .vtk, .vtu, .stl)')
    parser.add_argument('-out', dest='mesh_out', help='Output mesh (default: <input>.o.mesh)')
    parser.add_argument('-met', dest='metric_in', help='Input metric (default: <input>.sol)')
    parser.add_argument('-sol', dest='level_set_in', help='Input level-set solution')
    parser.add_argument('-ls', dest='iso', action='store_true', help='Level-set discretization mode')
    parser.add_argument('-default', dest='mark', action='store_true',
                        help='Save the default local parameters to <input>.mmgs instead of adapting')
    parser.add_argument('-optim', action='store_true', help='Derive the sizes from the input mesh')
    parser.add_argument('-hsiz', type=float, help='Constant target edge size')
    parser.add_argument('-hmin', type=float, help='Minimal edge size')
    parser.add_argument('-hmax', type=float, help='Maximal edge size')
    parser.add_argument('-hausd', type=float, help='Hausdorff distance')
    parser.add_argument('-hgrad', type=float, help='Gradation')
    parser.add_argument('-v', dest='verbosity', type=int, help='Verbosity level (-1 to 10)')
    parser.add_argument('--config', help='JSON configuration file')
    parser.add_argument('--remesher', help=f'Remesher command (default: {DEFAULT_CONSTANTS["remesher"].COMMAND})')
    parser.add_argument('--timeout', type=float, help='Remesher timeout in seconds')
    parser.add_argument('--log-file', help=f'Log file (default: {DEFAULT_CONSTANTS["files"].LOG_FILE})')
    parser.add_argument('--no-log-file', action='store_true', help='Do not write a log file')
    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.mesh_in and args.input and args.mesh_in != args.input:
        parser.error("input mesh given twice")
    args.mesh_in = args.mesh_in or args.input
    if not args.mesh_in:
        parser.error("an input mesh is required (-in <file>)")

    config_manager = ConfigManager(args.config)
    job = config_manager.build_job_config(args)

    log_file = None if args.no_log_file else (args.log_file or config_manager.get("LOGGING.log_file"))
    setup_logging(job.verbosity, log_file)

    chrono = Chrono()
    try:
        result = JobOrchestrator(job, Services(), chrono).run()
        status = result.status
    except Exception as e:
        logger.error(f"Error: {e}")
        if job.verbosity >= DEBUG_VERBOSITY:
            traceback.print_exc()
        status = Status.STRONG_FAILURE
    finally:
        chrono.stop()
        logger.info(f"\n   ELAPSED TIME  {chrono.format()}")

    return status.exit_code


if __name__ == "__main__":
    sys.exit(main())
