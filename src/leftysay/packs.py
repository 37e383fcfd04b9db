"""Discovery and selection of image packs.

A pack is a directory with a ``pack.toml`` describing it, an images
directory, and an optional ``messages.txt`` with one message per line.
"""

from __future__ import annotations

import logging
import os
import random
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from leftysay.config import data_dir
from leftysay.errors import LeftysayError
from leftysay.models import DEFAULT_MESSAGE

logger = logging.getLogger(__name__)

PACK_META_FILENAME = "pack.toml"
MESSAGES_FILENAME = "messages.txt"
IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif"})
# pack.toml may sit at most this many levels below a search root
MAX_SCAN_DEPTH = 3


class PackError(LeftysayError):
    """A pack is missing or cannot be used."""


@dataclass
class PackMeta:
    """Contents of pack.toml."""

    name: str
    version: str
    license: str
    description: str
    images_dir: str


@dataclass
class Pack:
    """A discovered pack."""

    meta: PackMeta
    root: Path
    images: list[Path] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.meta.name


def pack_search_paths() -> list[Path]:
    """Directories scanned for packs, highest priority first."""
    paths = []

    extra = os.environ.get("LEFTYSAY_PACKS_DIR")
    if extra:
        paths.append(Path(extra))

    paths.append(data_dir() / "packs")

    if sys.platform == "darwin":
        prefixes = [os.environ.get("HOMEBREW_PREFIX"), "/opt/homebrew", "/usr/local"]
        for prefix in prefixes:
            if not prefix:
                continue
            candidate = Path(prefix) / "share" / "leftysay" / "packs"
            if candidate.exists() and candidate not in paths:
                paths.append(candidate)
    elif sys.platform.startswith("linux"):
        paths.append(Path("/usr/share/leftysay/packs"))

    if Path("packs").exists():
        paths.append(Path("packs"))

    return paths


def read_pack_meta(path: Path) -> PackMeta:
    """Parse a pack.toml file.

    Raises:
        PackError: The file is unreadable or incomplete
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise PackError(f"cannot read pack meta {path}: {e}") from e

    try:
        return PackMeta(
            name=str(data["name"]),
            version=str(data["version"]),
            license=str(data["license"]),
            description=str(data["description"]),
            images_dir=str(data["images_dir"]),
        )
    except KeyError as e:
        raise PackError(f"pack meta {path} is missing {e.args[0]!r}") from e


def is_supported_image(path: Path) -> bool:
    return path.suffix.lower() in IMAGE_EXTENSIONS


def collect_images(pack_root: Path, images_dir: str) -> list[Path]:
    """All supported images below the pack's images directory, sorted."""
    directory = pack_root / images_dir
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.rglob("*") if p.is_file() and is_supported_image(p))


def read_messages(pack_root: Path) -> list[str]:
    """Non-blank lines of messages.txt, or nothing if it's missing."""
    path = pack_root / MESSAGES_FILENAME
    try:
        contents = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Cannot read %s: %s", path, e)
        return []
    return [line.strip() for line in contents.splitlines() if line.strip()]


def _find_meta_files(base: Path) -> list[Path]:
    found = []
    for dirpath, dirnames, filenames in os.walk(base):
        depth = len(Path(dirpath).relative_to(base).parts)
        if PACK_META_FILENAME in filenames:
            found.append(Path(dirpath) / PACK_META_FILENAME)
        if depth >= MAX_SCAN_DEPTH - 1:
            dirnames.clear()
        dirnames.sort()
    return found


def scan_packs(search_paths: list[Path] | None = None) -> list[Pack]:
    """Find every usable pack.

    Packs without images are skipped. When two packs share a name, the one
    found first (in search path order) wins. Broken pack.toml files are
    logged and skipped.
    """
    packs: list[Pack] = []
    seen: set[str] = set()

    for base in pack_search_paths() if search_paths is None else search_paths:
        if not base.is_dir():
            continue
        for meta_path in _find_meta_files(base):
            try:
                meta = read_pack_meta(meta_path)
            except PackError as e:
                logger.warning("Skipping pack: %s", e)
                continue
            if meta.name in seen:
                continue
            pack_root = meta_path.parent
            images = collect_images(pack_root, meta.images_dir)
            if not images:
                logger.debug("Skipping pack %s: no images", meta.name)
                continue
            packs.append(
                Pack(meta=meta, root=pack_root, images=images, messages=read_messages(pack_root))
            )
            seen.add(meta.name)

    return packs


def find_pack(packs: list[Pack], name: str) -> Pack | None:
    for pack in packs:
        if pack.name == name:
            return pack
    return None


def resolve_message(
    text: str | None, pack: Pack | None, rng: random.Random
) -> str:
    """Explicit text wins, then a random pack message, then the default."""
    if text is not None:
        return text
    if pack is not None and pack.messages:
        return rng.choice(pack.messages)
    return DEFAULT_MESSAGE


def resolve_image(image: Path | None, pack: Pack | None, rng: random.Random) -> Path | None:
    """Explicit image wins, otherwise a random image from the pack, if any."""
    if image is not None:
        return image
    if pack is None:
        return None
    return rng.choice(pack.images)


def image_dimensions(path: Path) -> tuple[int, int] | None:
    """Pixel size of an image, or None if Pillow can't read it."""
    try:
        with Image.open(path) as img:
            return img.size
    except (OSError, UnidentifiedImageError):
        return None
