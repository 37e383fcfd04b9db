"""Tests for pack discovery and selection."""

from __future__ import annotations

import random
from pathlib import Path

import pytest
from PIL import Image

from leftysay.models import DEFAULT_MESSAGE
from leftysay.packs import (
    PackError,
    find_pack,
    image_dimensions,
    read_pack_meta,
    resolve_image,
    resolve_message,
    scan_packs,
)


def make_pack(
    base: Path,
    name: str,
    images: list[str] = ("a.png", "b.png", "c.gif"),
    messages: str | None = "hi there\n\nhowdy\n",
    directory: str | None = None,
) -> Path:
    """Create a pack directory with empty image files."""
    root = base / (directory or name)
    (root / "images").mkdir(parents=True)
    (root / "pack.toml").write_text(
        f'name = "{name}"\n'
        'version = "1.0.0"\n'
        'license = "CC-BY-4.0"\n'
        'description = "test pack"\n'
        'images_dir = "images"\n'
    )
    for image in images:
        (root / "images" / image).write_bytes(b"")
    if messages is not None:
        (root / "messages.txt").write_text(messages)
    return root


class TestReadPackMeta:
    """Tests for pack.toml parsing."""

    def test_valid(self, tmp_path: Path) -> None:
        """Test that every field is read."""
        root = make_pack(tmp_path, "lefty")
        meta = read_pack_meta(root / "pack.toml")
        assert meta.name == "lefty"
        assert meta.images_dir == "images"

    def test_missing_field(self, tmp_path: Path) -> None:
        """Test that an incomplete pack.toml is a PackError."""
        path = tmp_path / "pack.toml"
        path.write_text('name = "x"\n')
        with pytest.raises(PackError, match="missing"):
            read_pack_meta(path)

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Test that unparsable TOML is a PackError."""
        path = tmp_path / "pack.toml"
        path.write_text("name = \n")
        with pytest.raises(PackError):
            read_pack_meta(path)


class TestScanPacks:
    """Tests for scan_packs."""

    def test_finds_packs(self, tmp_path: Path) -> None:
        """Test that images and messages are collected."""
        make_pack(tmp_path, "lefty")
        packs = scan_packs([tmp_path])
        assert [pack.name for pack in packs] == ["lefty"]
        assert [p.name for p in packs[0].images] == ["a.png", "b.png", "c.gif"]
        assert packs[0].messages == ["hi there", "howdy"]

    def test_ignores_unsupported_files(self, tmp_path: Path) -> None:
        """Test that only image extensions are picked up."""
        make_pack(tmp_path, "lefty", images=["a.png", "notes.txt", "B.JPG"])
        images = scan_packs([tmp_path])[0].images
        assert sorted(p.name for p in images) == ["B.JPG", "a.png"]

    def test_skips_pack_without_images(self, tmp_path: Path) -> None:
        """Test that empty packs aren't offered."""
        make_pack(tmp_path, "empty", images=[])
        assert scan_packs([tmp_path]) == []

    def test_skips_broken_meta(self, tmp_path: Path) -> None:
        """Test that a broken pack.toml doesn't hide other packs."""
        broken = tmp_path / "broken"
        broken.mkdir()
        (broken / "pack.toml").write_text("oops = \n")
        make_pack(tmp_path, "lefty")
        assert [pack.name for pack in scan_packs([tmp_path])] == ["lefty"]

    def test_first_search_path_wins(self, tmp_path: Path) -> None:
        """Test that a duplicate name in a later path is ignored."""
        user, system = tmp_path / "user", tmp_path / "system"
        make_pack(user, "lefty", images=["mine.png"])
        make_pack(system, "lefty", images=["theirs.png"])
        packs = scan_packs([user, system])
        assert len(packs) == 1
        assert packs[0].images[0].name == "mine.png"

    def test_missing_search_path(self, tmp_path: Path) -> None:
        """Test that nonexistent directories are skipped."""
        assert scan_packs([tmp_path / "nope"]) == []

    def test_depth_limit(self, tmp_path: Path) -> None:
        """Test that deeply nested packs aren't scanned."""
        make_pack(tmp_path, "shallow", directory="a/shallow")
        make_pack(tmp_path, "deep", directory="a/b/c/deep")
        assert [pack.name for pack in scan_packs([tmp_path])] == ["shallow"]

    def test_find_pack(self, tmp_path: Path) -> None:
        """Test lookup by name."""
        make_pack(tmp_path, "lefty")
        packs = scan_packs([tmp_path])
        assert find_pack(packs, "lefty") is packs[0]
        assert find_pack(packs, "righty") is None


class TestSelection:
    """Tests for message and image selection."""

    def test_explicit_text_wins(self, tmp_path: Path) -> None:
        """Test that --text overrides pack messages."""
        pack = scan_packs([make_pack(tmp_path, "lefty").parent])[0]
        assert resolve_message("mine", pack, random.Random(0)) == "mine"

    def test_empty_text_is_explicit(self) -> None:
        """Test that an empty string is still the user's choice."""
        assert resolve_message("", None, random.Random(0)) == ""

    def test_pack_message(self, tmp_path: Path) -> None:
        """Test that a pack message is chosen when no text is given."""
        pack = scan_packs([make_pack(tmp_path, "lefty").parent])[0]
        assert resolve_message(None, pack, random.Random(0)) in pack.messages

    def test_default_message(self, tmp_path: Path) -> None:
        """Test the fallback when the pack has no messages."""
        pack = scan_packs([make_pack(tmp_path, "lefty", messages=None).parent])[0]
        assert resolve_message(None, pack, random.Random(0)) == DEFAULT_MESSAGE

    def test_seeded_selection_is_reproducible(self, tmp_path: Path) -> None:
        """Test that the same seed picks the same image."""
        pack = scan_packs([make_pack(tmp_path, "lefty").parent])[0]
        first = [resolve_image(None, pack, random.Random(42)) for _ in range(3)]
        assert len(set(first)) == 1
        assert first[0] in pack.images

    def test_explicit_image_wins(self, tmp_path: Path) -> None:
        """Test that --image overrides the pack."""
        pack = scan_packs([make_pack(tmp_path, "lefty").parent])[0]
        mine = tmp_path / "mine.png"
        assert resolve_image(mine, pack, random.Random(0)) == mine

    def test_no_pack_no_image(self) -> None:
        """Test that no pack means no image."""
        assert resolve_image(None, None, random.Random(0)) is None


class TestImageDimensions:
    """Tests for image_dimensions."""

    def test_real_image(self, tmp_path: Path) -> None:
        """Test that Pillow reports the pixel size."""
        path = tmp_path / "real.png"
        Image.new("RGB", (12, 7), color="red").save(path)
        assert image_dimensions(path) == (12, 7)

    def test_not_an_image(self, tmp_path: Path) -> None:
        """Test that garbage gives None."""
        path = tmp_path / "fake.png"
        path.write_bytes(b"not an image")
        assert image_dimensions(path) is None
