"""CLI interface for afcsync."""

import logging
import random
from pathlib import Path
from typing import Any, Optional

import click

from .allocator import UnusedNameAllocator
from .channel import DISK_USAGE_DOMAIN, LocalDirectoryChannel
from .classifier import classify, file_size, list_directory
from .cli_progress import RichProgressSink
from .config import config
from .exceptions import AfcSyncError
from .models import CopyDirection, EntryKind, ListingFilter, SessionResult
from .output import OutputFormatter
from .session import TransferSession
from .utils import DEFAULT_MUSIC_ROOT, format_size

logger = logging.getLogger(__name__)

DEVICE_PROPERTIES = (
    ("Device name", "DeviceName", None),
    ("Product type", "ProductType", None),
    ("Software version", "ProductVersion", None),
    ("Unique device ID", "UniqueDeviceID", None),
    ("Total capacity", "TotalDiskCapacity", DISK_USAGE_DOMAIN),
    ("Available", "AmountDataAvailable", DISK_USAGE_DOMAIN),
)

KIND_CHOICES = {
    "file": EntryKind.FILE,
    "directory": EntryKind.DIRECTORY,
    "symlink": EntryKind.SYMLINK,
}


def _open_channel(device_root: Optional[Path]) -> LocalDirectoryChannel:
    """Build the device channel from the option or the saved configuration."""
    if device_root is None and not config.is_configured():
        raise click.UsageError(
            "No device root given. Use --device-root or run 'afcsync init'."
        )
    channel = LocalDirectoryChannel(device_root or config.get_device_root())
    channel.check_connection()
    return channel


def _device_id(channel: LocalDirectoryChannel, device_id: Optional[str]) -> str:
    if device_id:
        return device_id
    udid = channel.read_property("UniqueDeviceID")
    return str(udid or config.get_device_id() or channel.root.name)


device_root_option = click.option(
    "--device-root",
    "-D",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory where the device filesystem is mounted",
)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option()
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """afcsync - Mirror a music library to and from a portable device."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("afcsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--device-root",
    "-D",
    prompt="Directory where the device is mounted",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory where the device filesystem is mounted",
)
@click.option(
    "--local-root",
    "-L",
    type=click.Path(file_okay=False, path_type=Path),
    help="Local directory that mirrors the device",
)
@click.option("--device-id", help="Identifier of the device")
@click.option(
    "--directory",
    "-d",
    "directories",
    multiple=True,
    help="Top-level device directory to mirror (repeatable)",
)
@click.pass_context
def init(
    ctx: Any,
    device_root: Path,
    local_root: Optional[Path],
    device_id: Optional[str],
    directories: tuple[str, ...],
) -> None:
    """Save the device and local roots to the configuration file."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        config.save_device_root(device_root)
        if local_root:
            config.save_local_root(local_root)
        if device_id:
            config.save_device_id(device_id)
        if directories:
            config.save_important_directories(list(directories))
    except (AfcSyncError, OSError) as e:
        out.error(f"Could not save configuration: {e}")
        ctx.exit(1)

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(config.get_config_path())),
            ("Device root", str(device_root)),
        ],
    )


def _run_transfer(
    ctx: Any,
    direction: CopyDirection,
    device_root: Optional[Path],
    local_root: Optional[Path],
    directories: tuple[str, ...],
    device_id: Optional[str],
    chunk_size: Optional[int],
    max_attempts: Optional[int],
    seed: Optional[int],
) -> None:
    out: OutputFormatter = ctx.obj["out"]

    try:
        channel = _open_channel(device_root)
        local = local_root or config.get_local_root()
        if local is None:
            raise click.UsageError(
                "No local root given. Use --local-root or run 'afcsync init'."
            )
        allocator = UnusedNameAllocator(
            rng=random.Random(seed) if seed is not None else None,
            max_attempts=max_attempts or config.get_max_attempts(),
        )
        progress = RichProgressSink(disable=out.quiet or out.json_output)
        session = TransferSession(
            device_id=_device_id(channel, device_id),
            local_root=local,
            top_level_directories=directories or config.get_important_directories(),
            direction=direction,
            allocator=allocator,
            chunk_size=chunk_size or config.get_chunk_size(),
            on_file_copied=progress.on_file_copied,
        )

        if direction == CopyDirection.FROM_DEVICE:
            out.info(f"Copying from {session.device_id} to {session.local_root}")
        else:
            out.info(f"Copying from {session.local_root} to {session.device_id}")

        with progress:
            result = session.run(channel, progress=progress)
    except AfcSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    _display_result(out, result)
    if not result.success:
        ctx.exit(1)


def _display_result(out: OutputFormatter, result: SessionResult) -> None:
    if out.json_output:
        out.output_json(result.to_dict())
        return

    for mirror_result in result.results.values():
        for failure in mirror_result.failed:
            out.warning(f"{failure.path}: {failure.reason}")

    items = [
        ("Session", result.session_id),
        (
            "Copied",
            f"{result.files_copied} file(s), {format_size(result.bytes_copied)}",
        ),
    ]
    if result.files_failed:
        items.append(("Failed", f"{result.files_failed} entry(ies)"))
    title = "Transfer Complete" if result.success else "Transfer Completed With Errors"
    out.print_summary(title, items)


def transfer_options(func: Any) -> Any:
    """Options shared by the from-device and to-device commands."""
    options = [
        device_root_option,
        click.option(
            "--local-root",
            "-L",
            type=click.Path(file_okay=False, path_type=Path),
            help="Local directory that mirrors the device",
        ),
        click.option(
            "--directory",
            "-d",
            "directories",
            multiple=True,
            help="Top-level device directory to mirror (repeatable)",
        ),
        click.option("--device-id", help="Identifier of the device"),
        click.option(
            "--chunk-size",
            type=click.IntRange(min=1),
            help="Bytes read per copy iteration",
        ),
        click.option(
            "--max-attempts",
            type=click.IntRange(min=1),
            help="Maximum filename candidates per allocated device file",
        ),
        click.option(
            "--seed",
            type=int,
            help="Seed for device filename generation (reproducible names)",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@main.command("from-device")
@transfer_options
@click.pass_context
def from_device(ctx: Any, **kwargs: Any) -> None:
    """Copy the library directories from the device to the local root."""
    _run_transfer(ctx, CopyDirection.FROM_DEVICE, **kwargs)


@main.command("to-device")
@transfer_options
@click.pass_context
def to_device(ctx: Any, **kwargs: Any) -> None:
    """Copy the local library directories onto the device.

    Files are stored in the device's music buckets under generated names.
    """
    _run_transfer(ctx, CopyDirection.TO_DEVICE, **kwargs)


@main.command()
@click.argument("path", default="/")
@device_root_option
@click.option(
    "--all", "-a", "show_hidden", is_flag=True, help="Include hidden entries"
)
@click.option("--dot", is_flag=True, help="Include the . and .. entries")
@click.option(
    "--type",
    "-t",
    "kinds",
    multiple=True,
    type=click.Choice(sorted(KIND_CHOICES)),
    help="Only list entries of this type (repeatable)",
)
@click.pass_context
def ls(
    ctx: Any,
    path: str,
    device_root: Optional[Path],
    show_hidden: bool,
    dot: bool,
    kinds: tuple[str, ...],
) -> None:
    """List a directory on the device."""
    out: OutputFormatter = ctx.obj["out"]

    kind_mask = (
        frozenset(KIND_CHOICES[k] for k in kinds)
        if kinds
        else frozenset(KIND_CHOICES.values())
    )
    listing_filter = ListingFilter(
        include_hidden=show_hidden, include_dot_entries=dot, kind_mask=kind_mask
    )

    try:
        channel = _open_channel(device_root)
        entries = list_directory(channel, path, listing_filter)
    except AfcSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    rows = []
    for entry in entries:
        # The unfiltered listing skips metadata queries
        kind = entry.kind
        if kind == EntryKind.UNKNOWN and entry.name not in (".", ".."):
            kind = classify(channel, entry.path)
        size = None
        if kind == EntryKind.FILE:
            try:
                size = file_size(channel, entry.path)
            except AfcSyncError as e:
                logger.debug(f"No size for {entry.path}: {e}")
        rows.append(
            {
                "name": entry.name + ("/" if kind == EntryKind.DIRECTORY else ""),
                "type": kind.value,
                "size": format_size(size) if size is not None else "",
            }
        )

    out.output_table(
        rows, ["name", "type", "size"], {"name": "Name", "type": "Type", "size": "Size"}
    )


@main.command()
@device_root_option
@click.option(
    "--music-root",
    default=DEFAULT_MUSIC_ROOT,
    show_default=True,
    help="Directory holding the F.. bucket directories",
)
@click.pass_context
def info(ctx: Any, device_root: Optional[Path], music_root: str) -> None:
    """Show device properties and storage buckets."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        channel = _open_channel(device_root)
        values: dict[str, Any] = {}
        for label, key, domain in DEVICE_PROPERTIES:
            values[label] = channel.read_property(key, domain)
        buckets = UnusedNameAllocator(music_root=music_root).count_buckets(channel)
    except AfcSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    values["Music buckets"] = buckets
    if out.json_output:
        out.output_json(values)
        return

    rows = []
    for label, value in values.items():
        if value is None:
            display = "(unknown)"
        elif label in ("Total capacity", "Available"):
            display = format_size(int(value))
        else:
            display = str(value)
        rows.append({"field": label, "value": display})
    out.output_table(rows, ["field", "value"], {"field": "Field", "value": "Value"})


@main.command()
@device_root_option
@click.option("--ext", "extension", default="", help="File extension (default mp3)")
@click.option(
    "--music-root",
    default=DEFAULT_MUSIC_ROOT,
    show_default=True,
    help="Directory holding the F.. bucket directories",
)
@click.option("--seed", type=int, help="Seed for reproducible names")
@click.pass_context
def allocate(
    ctx: Any,
    device_root: Optional[Path],
    extension: str,
    music_root: str,
    seed: Optional[int],
) -> None:
    """Print an unused filename in one of the device's music buckets."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        channel = _open_channel(device_root)
        allocator = UnusedNameAllocator(
            rng=random.Random(seed) if seed is not None else None,
            music_root=music_root,
            max_attempts=config.get_max_attempts(),
        )
        path = allocator.allocate(channel, extension)
    except AfcSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json({"path": path})
    else:
        click.echo(path)


if __name__ == "__main__":
    main()
