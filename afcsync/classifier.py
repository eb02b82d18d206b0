"""Classify device directory entries from their raw metadata.

Devices do not expose POSIX directory semantics. Each entry's kind is
reconstructed from its ``st_ifmt`` metadata value, one query per entry.
"""

import logging
from typing import Optional

from .channel import DeviceFileChannel
from .exceptions import ChannelError, MetadataError
from .models import Entry, EntryKind, ListingFilter
from .utils import join_device_path

logger = logging.getLogger(__name__)

FILE_TYPE_KEY = "st_ifmt"
FILE_SIZE_KEY = "st_size"
DOT_ENTRIES = (".", "..")


def query_metadata(channel: DeviceFileChannel, path: str, key: str) -> Optional[str]:
    """Read one metadata value, raising MetadataError if the query fails."""
    try:
        return channel.get_file_info(path, key)
    except ChannelError as e:
        raise MetadataError(
            f"Metadata query {key} failed for {path}: {e}", path=path
        ) from e


def classify(channel: DeviceFileChannel, path: str) -> EntryKind:
    """Determine the kind of ``path`` with a single metadata query.

    Missing metadata or a failed query yields ``EntryKind.UNKNOWN``;
    this function does not raise for either.

    Args:
        channel: Channel to query
        path: Absolute device-style path

    Returns:
        Kind of the entry
    """
    try:
        token = query_metadata(channel, path, FILE_TYPE_KEY)
    except MetadataError as e:
        logger.debug(str(e))
        return EntryKind.UNKNOWN

    kind = EntryKind.from_ifmt(token)
    if kind == EntryKind.UNKNOWN:
        logger.debug(f"Unclassified entry {path} ({FILE_TYPE_KEY}={token!r})")
    return kind


def list_directory(
    channel: DeviceFileChannel,
    path: str,
    listing_filter: Optional[ListingFilter] = None,
) -> list[Entry]:
    """List a device directory, applying a listing filter.

    Without a filter (or with an unfiltered one) the raw names are returned
    as ``UNKNOWN`` entries and no metadata is queried. Otherwise the filter is
    applied in order: dot entries, hidden names, then the kind mask, which
    costs one metadata round trip per remaining entry.

    Args:
        channel: Channel to list through
        path: Directory to list
        listing_filter: Optional filter

    Returns:
        Entries in the order the device returned them

    Raises:
        ChannelError: If the directory itself cannot be read
    """
    names = channel.read_directory(path)

    if listing_filter is None or listing_filter.is_unfiltered:
        return [Entry(join_device_path(path, n), EntryKind.UNKNOWN) for n in names]

    entries: list[Entry] = []
    for name in names:
        if name in DOT_ENTRIES and not listing_filter.include_dot_entries:
            continue
        # Dot entries count as hidden too
        if name.startswith(".") and not listing_filter.include_hidden:
            continue

        entry_path = join_device_path(path, name)
        kind = classify(channel, entry_path)
        if kind in listing_filter.kind_mask:
            entries.append(Entry(entry_path, kind))

    return entries


def count_children(channel: DeviceFileChannel, path: str) -> int:
    """Count entries in a directory without querying their metadata."""
    return sum(1 for e in list_directory(channel, path) if e.name not in DOT_ENTRIES)


def file_size(channel: DeviceFileChannel, path: str) -> Optional[int]:
    """Return the size of a file in bytes, ``None`` if the device does not say.

    Raises:
        MetadataError: If the query fails or the value is not a number
    """
    value = query_metadata(channel, path, FILE_SIZE_KEY)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as e:
        raise MetadataError(
            f"Invalid {FILE_SIZE_KEY} {value!r} for {path}", path=path
        ) from e
