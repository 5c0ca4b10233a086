import argparse
import json
import logging
import sys
from pathlib import Path

from infraudit.core.config import settings
from infraudit.core.drift.detector import detect_drift
from infraudit.core.drift.errors import ConfigDecodeError
from infraudit.core.drift.types import ActualResource, DeclaredResource
from infraudit.core.logging_config import setup_logging
from infraudit.core.observability import setup_tracing
from infraudit.services.drift_service import DriftService, load_config_document, load_resources

logger = logging.getLogger(__name__)


def _read(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def detect_command(args: argparse.Namespace) -> int:
    """Compare a baseline and a current configuration file"""
    baseline = load_config_document(_read(args.baseline), args.baseline)
    current = load_config_document(_read(args.current), args.current)

    result = detect_drift(args.resource_type, baseline, current)

    print(json.dumps(result.to_dict(), indent=2))
    return 2 if result.has_drift and args.fail_on_drift else 0


def reconcile_command(args: argparse.Namespace) -> int:
    """Reconcile declared resources against deployed resources"""
    declared = load_resources(_read(args.declared), DeclaredResource, args.declared)
    actual = load_resources(_read(args.actual), ActualResource, args.actual)

    report = DriftService().reconcile(declared, actual)

    print(json.dumps(report.model_dump(mode="json"), indent=2))
    return 2 if report.summary.has_drift and args.fail_on_drift else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="infraudit", description=settings.PROJECT_NAME)
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level")
    parser.add_argument("--fail-on-drift", action="store_true", help="Exit with status 2 when drift is found")
    subparsers = parser.add_subparsers(dest="command", required=True)

    detect = subparsers.add_parser("detect", help="Detect drift between two configuration snapshots")
    detect.add_argument("resource_type", help="Resource type, e.g. s3-bucket")
    detect.add_argument("baseline", help="Path to the baseline JSON document")
    detect.add_argument("current", help="Path to the current JSON document")
    detect.set_defaults(handler=detect_command)

    reconcile = subparsers.add_parser("reconcile", help="Reconcile IaC resources against deployed resources")
    reconcile.add_argument("declared", help="Path to a JSON array of declared resources")
    reconcile.add_argument("actual", help="Path to a JSON array of deployed resources")
    reconcile.set_defaults(handler=reconcile_command)

    return parser


def main(argv=None) -> int:
    """Run the drift engine from the command line"""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    setup_tracing()

    logger.info(f"Starting {settings.PROJECT_NAME} {settings.VERSION}")
    try:
        return args.handler(args)
    except (ConfigDecodeError, OSError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
