from __future__ import annotations

import argparse
import json
import os
import sys
import traceback
from typing import Any, List, Optional


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(description='Paperboy - local news feed discovery')
    parser.add_argument('--config', type=str, help='Path to configuration file', default=None)
    parser.add_argument('--debug', action='store_true', help='Enable debug logging', default=False)

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    discover_parser = subparsers.add_parser('discover', help='Discover local feeds for a location')
    discover_parser.add_argument('query', type=str, help='City, e.g. "San Francisco, CA"')

    lookup_parser = subparsers.add_parser('lookup', help='Resolve a ZIP code to a city')
    lookup_parser.add_argument('zip', type=str, help='ZIP or ZIP+4 code')

    subparsers.add_parser('status', help='Print core status as JSON')

    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def run_discover(app: Any, app_core: Any, query: str) -> int:
    """Run one discovery and print its report."""
    from paperboy.ui.discovery_controller import DiscoveryController

    controller = DiscoveryController(app_core.get_manager('task_executor'), app_core.discovery_service())
    result = {'exit_code': 1}

    def on_finished(report: object) -> None:
        print(report.render())
        result['exit_code'] = 0 if report.ok else 1
        app.quit()

    controller.discovery_finished.connect(on_finished)
    controller.discover(query)
    app.exec()
    controller.close()
    return result['exit_code']


def run_lookup(app: Any, app_core: Any, code: str) -> int:
    """Resolve one ZIP code the way the location dialog does."""
    from paperboy.ui.location_session import LocationSession

    session = LocationSession.from_config(
        app_core.get_manager('config_manager'),
        app_core.get_manager('task_executor'),
        app_core.zip_lookup(),
    )
    session.hint_changed.connect(lambda hint: print(hint) if hint else None)
    session.busy_changed.connect(lambda busy: app.quit() if not busy else None)

    if session.search(code) is None:
        session.close()
        return 2

    app.exec()
    exit_code = 0 if session.detected_city else 1
    session.close()
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    if args.debug:
        os.environ['PAPERBOY_LOGGING_LEVEL'] = 'DEBUG'
        os.environ['PAPERBOY_LOGGING_CONSOLE_LEVEL'] = 'DEBUG'

    if args.command is None:
        build_parser().print_help()
        return 2

    try:
        from PySide6.QtCore import QCoreApplication
        from paperboy.core.app import ApplicationCore

        app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
        app_core = ApplicationCore(config_path=args.config)
        app_core.initialize()
    except Exception as e:
        print(f'Error during startup: {str(e)}', file=sys.stderr)
        traceback.print_exc()
        return 1

    try:
        if args.command == 'discover':
            return run_discover(app, app_core, args.query)
        if args.command == 'lookup':
            return run_lookup(app, app_core, args.zip)
        print(json.dumps(app_core.status(), indent=2, default=str))
        return 0
    finally:
        app_core.shutdown()


if __name__ == '__main__':
    sys.exit(main())
