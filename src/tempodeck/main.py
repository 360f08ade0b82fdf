"""CLI entrypoint for managing stored metronome profiles."""

from __future__ import annotations

import argparse
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from . import __version__
from .config import configure_logging
from .manager import ProfileManager
from .models import METER_SLOTS, Content, Header
from .storage import ProfileNotFoundError

PrintFn = Callable[[str], None]


def _manager(path: Path | None) -> ProfileManager:
    """Open the profile manager over the given or configured file."""
    return ProfileManager.open(path)


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(prog="tempodeck", description="Manage stored metronome profiles")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--file", type=Path, default=None, help="profiles file (default: user data dir)")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="list profiles in order")

    new = commands.add_parser("new", help="create a profile")
    new.add_argument("title")
    new.add_argument("--description", default="")
    new.add_argument("--tempo", type=int, default=None)

    show = commands.add_parser("show", help="show one profile")
    show.add_argument("id")

    rename = commands.add_parser("rename", help="change a profile's title")
    rename.add_argument("id")
    rename.add_argument("title")

    tempo = commands.add_parser("tempo", help="change a profile's tempo")
    tempo.add_argument("id")
    tempo.add_argument("bpm", type=int)

    delete = commands.add_parser("delete", help="delete a profile")
    delete.add_argument("id")

    reorder = commands.add_parser("reorder", help="move profiles into the given order")
    reorder.add_argument("ids", nargs="+")
    return parser


def run(argv: list[str] | None = None, print_fn: PrintFn = print) -> int:
    """Run one CLI command and return the exit code."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    manager = _manager(args.file)
    try:
        return _dispatch(manager, args, print_fn)
    except ProfileNotFoundError as exc:
        print_fn(f"Error: {exc}")
        return 1
    finally:
        manager.close()


def _dispatch(manager: ProfileManager, args: argparse.Namespace, print_fn: PrintFn) -> int:
    if args.command == "list":
        primers = manager.profile_list()
        if not primers:
            print_fn("No profiles yet.")
        for index, primer in enumerate(primers, start=1):
            print_fn(f"{index}) {primer.header.title}  [{primer.id}]")
    elif args.command == "new":
        content = Content() if args.tempo is None else Content(tempo=args.tempo)
        primer = manager.new_profile(Header(title=args.title, description=args.description), content)
        print_fn(primer.id)
    elif args.command == "show":
        _show_profile(manager, args.id, print_fn)
    elif args.command == "rename":
        header = manager.get_profile_header(args.id)
        manager.set_profile_header(args.id, replace(header, title=args.title))
    elif args.command == "tempo":
        content = manager.get_profile_content(args.id)
        manager.set_profile_content(args.id, replace(content, tempo=args.bpm))
    elif args.command == "delete":
        if not manager.delete_profile(args.id):
            raise ProfileNotFoundError(args.id)
    elif args.command == "reorder":
        if not manager.reorder_profiles(args.ids):
            print_fn("Reorder rejected: identifiers must not repeat.")
            return 1
    return 0


def _show_profile(manager: ProfileManager, profile_id: str, print_fn: PrintFn) -> None:
    """Print the header and main settings of one profile."""
    profile = manager.get_profile(profile_id)
    content = profile.content
    print_fn(f"Title: {profile.header.title}")
    if profile.header.description:
        print_fn(f"Description: {profile.header.description}")
    print_fn(f"Tempo: {content.tempo} bpm")
    meter = content.meter(content.meter_select) if content.meter_select in METER_SLOTS else None
    state = "on" if content.meter_enabled else "off"
    if meter is None:
        print_fn(f"Meter: {state} ({content.meter_select})")
    else:
        accents = " ".join(str(int(accent)) for accent in meter.accents)
        print_fn(f"Meter: {state} ({content.meter_select}: {meter.beats}/{meter.division}, accents {accents})")
    state = "on" if content.trainer_enabled else "off"
    print_fn(
        f"Trainer: {state} ({content.trainer_start} -> {content.trainer_target} bpm, accel {content.trainer_accel})"
    )


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
