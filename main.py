#!/usr/bin/env python3
"""Mods Manager - Entry Point"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path

from launcher_paths import LauncherPaths
from mod_errors import ModsManagerError
from mod_manager import ModManager
from mod_registry import Failed, Installed
from mod_source import DownloadUrl


def setup_logging(log_dir: Path, verbose: bool = False) -> logging.Logger:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "modsmanager.log"

    handler = RotatingFileHandler(
        log_file,
        maxBytes=1 * 1024 * 1024,  # 1 MB
        backupCount=2,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(message)s"))

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("%(message)s"))
    console.setLevel(logging.DEBUG if verbose else logging.INFO)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    root.addHandler(console)
    return logging.getLogger("modsmanager")


def install_crash_handler(logger: logging.Logger):
    def handle_exception(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.critical(
            "Unhandled exception:\n%s",
            "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
        )

    sys.excepthook = handle_exception


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mods Manager")
    parser.add_argument("--config-dir")
    parser.add_argument("--game-dir")
    parser.add_argument("-v", "--verbose", action="store_true")

    commands = parser.add_subparsers(dest="command", required=True)
    add = commands.add_parser("add", help="Track the mods offered by a download URL")
    add.add_argument("url")
    commands.add_parser("list", help="List tracked mods")
    for name, help_text in (
        ("install", "Install a tracked mod"),
        ("uninstall", "Uninstall a tracked mod"),
        ("remove", "Stop tracking a mod and delete its files"),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("name")
    commands.add_parser("scan", help="Pick up mods already in the mods directory")
    return parser.parse_args(argv)


def describe(manager: ModManager) -> list[str]:
    lines = []
    for info in manager.registry.iter():
        if isinstance(info.install, Installed):
            state = f"installed {info.install.when:%Y-%m-%d %H:%M} at {info.install.entry.path}"
        elif isinstance(info.install, Failed):
            state = f"failed: {info.install.error}"
        else:
            state = "not installed"
        lines.append(f"{info.name}  ({state})")
    return lines


async def run(args: argparse.Namespace, manager: ModManager) -> int:
    if args.command == "add":
        await manager.add_mods(DownloadUrl(url=args.url))
    elif args.command == "list":
        for line in describe(manager):
            print(line)
    elif args.command == "install":
        result = await manager.install_mod(args.name)
        return 0 if isinstance(result, Installed) else 1
    elif args.command == "uninstall":
        await manager.uninstall_mod(args.name)
    elif args.command == "remove":
        if await manager.remove_mod(args.name) is None:
            print(f"Mod '{args.name}' is not tracked")
            return 1
    elif args.command == "scan":
        manager.reconcile_installed()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    paths = LauncherPaths.from_environment(args.config_dir, args.game_dir)

    logger = setup_logging(paths.log_directory, args.verbose)
    install_crash_handler(logger)

    if paths.mods_directory is None:
        logger.error("Game directory unknown: pass --game-dir or set MODS_MANAGER_GAME_DIR")
        return 2

    manager = ModManager(paths.registry_file, paths.mods_directory, log_callback=logger.info)
    try:
        manager.load()
        return asyncio.run(run(args, manager))
    except (ModsManagerError, OSError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
