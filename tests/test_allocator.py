"""Tests for the device filename allocator."""

import random

import pytest

from afcsync.allocator import UnusedNameAllocator, extension_for
from afcsync.exceptions import (
    AllocationError,
    BucketVanishedError,
    ExhaustedAttemptsError,
    NoBucketsError,
)

MUSIC = "/iTunes_Control/Music"


def make_buckets(channel, count):
    for i in range(count):
        channel.mkdir(f"{MUSIC}/F{i:02d}")


class TestExtensionFor:
    """Tests for extension_for()."""

    def test_lowercases_extension(self):
        assert extension_for("Track 01.MP3") == "mp3"

    def test_uses_last_suffix(self):
        assert extension_for("/music/album.tar.m4a") == "m4a"

    def test_no_extension(self):
        assert extension_for("README") == ""

    def test_dot_in_directory_only(self):
        """Test that dots in directory names are ignored."""
        assert extension_for("/some.dir/file") == ""


class TestCountBuckets:
    """Tests for UnusedNameAllocator.count_buckets()."""

    def test_counts_consecutive_buckets(self, channel):
        make_buckets(channel, 3)
        assert UnusedNameAllocator().count_buckets(channel) == 3

    def test_stops_at_first_gap(self, channel):
        """Test that probing stops at the first missing bucket."""
        make_buckets(channel, 2)
        channel.mkdir(f"{MUSIC}/F05")
        assert UnusedNameAllocator().count_buckets(channel) == 2

    def test_custom_music_root(self, channel):
        channel.mkdir("/Other/F00")
        allocator = UnusedNameAllocator(music_root="/Other/")
        assert allocator.count_buckets(channel) == 1
        assert allocator.bucket_path(0) == "/Other/F00"


class TestAllocate:
    """Tests for UnusedNameAllocator.allocate()."""

    def test_allocates_in_chosen_bucket(self, channel, sequence_random):
        """Test exact bucket and name choices with a deterministic source."""
        make_buckets(channel, 4)
        rng = sequence_random([2, 123])
        allocator = UnusedNameAllocator(rng=rng)

        path = allocator.allocate(channel, "m4a")

        assert path == f"{MUSIC}/F02/libgpod000123.m4a"
        assert rng.calls == [4, 999999]

    def test_default_extension(self, channel, sequence_random):
        """Test that an empty hint falls back to mp3."""
        make_buckets(channel, 1)
        allocator = UnusedNameAllocator(rng=sequence_random([0, 42]))

        assert allocator.allocate(channel) == f"{MUSIC}/F00/libgpod000042.mp3"

    def test_extension_hint_is_normalized(self, channel, sequence_random):
        make_buckets(channel, 1)
        allocator = UnusedNameAllocator(rng=sequence_random([0, 7]))

        path = allocator.allocate(channel, ".FLAC")
        assert path == f"{MUSIC}/F00/libgpod000007.flac"

    def test_skips_taken_names(self, channel, sequence_random):
        """Test that existing candidates are retried."""
        make_buckets(channel, 1)
        channel.add_file(f"{MUSIC}/F00/libgpod000001.mp3")
        channel.add_file(f"{MUSIC}/F00/libgpod000002.mp3")
        allocator = UnusedNameAllocator(rng=sequence_random([0, 1, 2, 3]))

        path = allocator.allocate(channel, "mp3")

        assert path == f"{MUSIC}/F00/libgpod000003.mp3"
        assert not channel.exists(path)

    def test_no_buckets(self, channel, sequence_random):
        """Test that no filename is generated when there are no buckets."""
        rng = sequence_random([])
        allocator = UnusedNameAllocator(rng=rng)

        with pytest.raises(NoBucketsError):
            allocator.allocate(channel, "mp3")

        assert rng.calls == []
        assert channel.exists_calls == [f"{MUSIC}/F00"]

    def test_bucket_vanished(self, channel):
        """Test that a bucket removed after counting is reported."""
        make_buckets(channel, 2)

        class VanishingRandom:
            def randrange(self, stop):
                channel.remove(f"{MUSIC}/F01")
                return 1

        allocator = UnusedNameAllocator(rng=VanishingRandom())

        with pytest.raises(BucketVanishedError) as exc_info:
            allocator.allocate(channel, "mp3")
        assert exc_info.value.path == f"{MUSIC}/F01"

    def test_exhausted_attempts(self, channel, sequence_random):
        """Test that the retry loop is bounded."""
        make_buckets(channel, 1)
        channel.add_file(f"{MUSIC}/F00/libgpod000005.mp3")
        allocator = UnusedNameAllocator(
            rng=sequence_random([0, 5, 5, 5]), max_attempts=3
        )

        with pytest.raises(ExhaustedAttemptsError) as exc_info:
            allocator.allocate(channel, "mp3")
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value, AllocationError)

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            UnusedNameAllocator(max_attempts=0)

    def test_never_returns_existing_path(self, channel):
        """Test many allocations against a crowded bucket."""
        make_buckets(channel, 3)
        allocator = UnusedNameAllocator(rng=random.Random(1234))

        for _ in range(200):
            path = allocator.allocate(channel, "mp3")
            assert not channel.exists(path)
            channel.add_file(path, b"")

    def test_seeded_random_is_reproducible(self, channel):
        make_buckets(channel, 5)
        first = UnusedNameAllocator(rng=random.Random(7)).allocate(channel, "mp3")
        second = UnusedNameAllocator(rng=random.Random(7)).allocate(channel, "mp3")
        assert first == second
