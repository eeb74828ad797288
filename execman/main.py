"""
execman - Main Application Entry Point

Manage executables published as GitHub release assets.

Usage:
    execman install github.com/owner/project[@version] [--name NAME]
    execman check [NAME] [--json]
    execman update [NAME ...]
    execman list [--json]
    execman remove NAME
    execman config [KEY [VALUE]]
"""

import sys
import json
import logging
import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .core.config import ConfigManager
from .core.installer import Installer, PipelineStage
from .core.registry import Registry
from .exceptions import ExecmanError
from .utils.error_handling import setup_logging, handle_errors

logger = logging.getLogger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def _display_path(path: str) -> str:
    home = str(Path.home())
    if path.startswith(home):
        return "~" + path[len(home):]
    return path


def _report_error(error: ExecmanError) -> None:
    print(f"Error: {error}", file=sys.stderr)


def _print_stage(name: str, stage: PipelineStage) -> None:
    if stage not in (PipelineStage.IDLE, PipelineStage.DONE, PipelineStage.FAILED):
        print(f"  {name}: {stage.value.lower()}...", file=sys.stderr)


class Application:
    """
    Wires settings, registry and installer together for one CLI invocation.
    """

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.config = ConfigManager(args.config)
        self.registry = Registry.load(args.registry)

    def installer(self, include_prereleases: bool = False) -> Installer:
        kwargs: Dict[str, Any] = {}
        if include_prereleases:
            kwargs['include_prereleases'] = True
        if getattr(self.args, 'verbose', False) and not getattr(self.args, 'json', False):
            kwargs['status_callback'] = _print_stage
        return Installer.from_config(self.config, self.registry, **kwargs)

    def run_install(self) -> int:
        args = self.args
        result = self.installer().install(
            args.source,
            name=args.name,
            install_dir=Path(args.dir).expanduser() if args.dir else None,
            force=args.force,
        )
        if args.json:
            _print_json({
                "name": result.name,
                "version": result.version,
                "previous_version": result.previous_version,
                "path": result.path,
                "checksum": result.checksum,
                "verified": result.verified,
                "changed": result.changed,
            })
        elif not result.changed:
            print(f"{result.name} {result.version} is already installed.")
        else:
            note = "" if result.verified else " (checksum not verified)"
            print(f"Installed {result.name} {result.version} to {_display_path(result.path)}{note}")
        return 0

    def run_check(self) -> int:
        args = self.args
        names = [args.name] if args.name else None
        results = self.installer(args.include_prereleases).check(names)

        updates = [r for r in results if r.update_available]
        failures = [r for r in results if r.error is not None]

        if args.json:
            _print_json({
                "executables": [
                    {
                        "name": r.name,
                        "current_version": r.current_version,
                        "latest_version": r.latest_version,
                        "update_available": r.update_available,
                        **({"error": r.error.to_dict()} if r.error else {}),
                    }
                    for r in results
                ],
                "updates_available": len(updates),
            })
            return 1 if failures else 0

        if not results:
            print("No managed executables.")
            return 0

        print("Checking for updates...")
        print()
        for r in results:
            if r.error is not None:
                print(f"  {r.name:<15} error: {r.error}")
            elif r.update_available:
                print(f"  {r.name:<15} {r.current_version} -> {r.latest_version:<9} update available")
            elif args.no_skip:
                print(f"  {r.name:<15} {r.current_version:<9}          up to date")

        up_to_date = len(results) - len(updates) - len(failures)
        print()
        if not updates:
            print(f"{up_to_date} up to date, 0 updates available.")
        else:
            plural = "" if len(updates) == 1 else "s"
            print(f"{up_to_date} up to date, {len(updates)} update{plural} available. "
                  f"Run 'execman update' to install updates.")
        return 1 if failures else 0

    def run_update(self) -> int:
        args = self.args
        results = self.installer(args.include_prereleases).update(args.names or None, force=args.force)
        failures = [r for r in results if r.error is not None]

        if args.json:
            _print_json({
                "executables": [
                    {
                        "name": r.name,
                        "previous_version": r.previous_version,
                        "version": r.version,
                        "updated": r.updated,
                        **({"error": r.error.to_dict()} if r.error else {}),
                    }
                    for r in results
                ],
                "updated": sum(1 for r in results if r.updated),
            })
            return 1 if failures else 0

        if not results:
            print("No managed executables.")
            return 0

        for r in results:
            if r.error is not None:
                print(f"  {r.name:<15} error: {r.error}")
            elif r.updated:
                print(f"  {r.name:<15} {r.previous_version} -> {r.version}")
            else:
                print(f"  {r.name:<15} {r.previous_version:<9} up to date")
        return 1 if failures else 0

    def run_list(self) -> int:
        names = sorted(self.registry.list())
        records = [(name, self.registry.get(name)[0]) for name in names]

        if self.args.json:
            _print_json({
                "executables": [
                    {
                        "name": name,
                        "source": record.source,
                        "version": record.version,
                        "path": record.path,
                        "installed_at": record.to_dict()["installed_at"],
                    }
                    for name, record in records
                ]
            })
            return 0

        if not records:
            print("No managed executables.")
            return 0

        print("Managed executables:")
        print()
        for name, record in records:
            source = record.source.replace("https://", "", 1)
            print(f"  {name:<15} {record.version:<9} {_display_path(record.path)}")
            print(f"  {'':<15} {'':<9} {source}")
            print(f"  {'':<15} {'':<9} installed {record.installed_at:%Y-%m-%d}")
            print()

        count = len(records)
        print("1 executable managed" if count == 1 else f"{count} executables managed")
        return 0

    def run_remove(self) -> int:
        record = self.installer().remove(self.args.name, delete_file=not self.args.keep_file)
        if record is None:
            raise ExecmanError(f"Executable {self.args.name!r} is not managed by execman")
        print(f"Removed {self.args.name} {record.version}")
        return 0

    def run_config(self) -> int:
        args = self.args
        if args.key is None:
            for key, value in sorted(self.config.items().items()):
                if key == 'github_token' and value:
                    value = '********'
                print(f"{key} = {value}")
        elif args.value is None:
            print(self.config.get_config_value(args.key))
        else:
            self.config.set_config_value(args.key, args.value)
        return 0


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="execman",
        description="Manage executables published as GitHub release assets.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--registry", type=Path, default=None, help="Registry file to use")
    parser.add_argument("--config", type=Path, default=None, help="Configuration file to use")
    parser.add_argument("--log-file", type=Path, default=None, help="Write a detailed log here")

    subparsers = parser.add_subparsers(dest="command", required=True)

    install = subparsers.add_parser("install", help="Install an executable from a GitHub release")
    install.add_argument("source", help="github.com/owner/project[@version]")
    install.add_argument("--name", help="Local name (defaults to the project name)")
    install.add_argument("--dir", help="Installation directory")
    install.add_argument("--force", action="store_true", help="Reinstall even if up to date")
    install.add_argument("--json", action="store_true", help="Output as JSON")

    check = subparsers.add_parser("check", help="Check for available updates")
    check.add_argument("name", nargs="?", help="Check only this executable")
    check.add_argument("--json", action="store_true", help="Output as JSON")
    check.add_argument("--include-prereleases", action="store_true",
                       help="Include prerelease versions in check")
    check.add_argument("--no-skip", action="store_true",
                       help="Show all executables, including up-to-date ones")

    update = subparsers.add_parser("update", help="Install available updates")
    update.add_argument("names", nargs="*", help="Update only these executables")
    update.add_argument("--json", action="store_true", help="Output as JSON")
    update.add_argument("--include-prereleases", action="store_true",
                        help="Include prerelease versions")
    update.add_argument("--force", action="store_true", help="Reinstall even if up to date")

    list_cmd = subparsers.add_parser("list", help="List all managed executables")
    list_cmd.add_argument("--json", action="store_true", help="Output as JSON")

    remove = subparsers.add_parser("remove", help="Stop managing an executable")
    remove.add_argument("name")
    remove.add_argument("--keep-file", action="store_true", help="Leave the executable on disk")

    config = subparsers.add_parser("config", help="Show or change settings")
    config.add_argument("key", nargs="?")
    config.add_argument("value", nargs="?")

    subparsers.add_parser("version", help="Show the execman version")

    return parser


@handle_errors(default_return=1, reporter=_report_error)
def run(args: argparse.Namespace) -> int:
    if args.command == "version":
        print(f"execman v{__version__}")
        return 0

    app = Application(args)
    handler = getattr(app, f"run_{args.command}")
    return handler()


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, log_file=args.log_file)
    logger.debug(f"execman {__version__} running {args.command}")
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
