"""Command-line entry point for leftysay."""

from __future__ import annotations

import logging
import random
from pathlib import Path

import click
from pydantic import ValidationError

from leftysay import __version__, setup_logging
from leftysay.bubble import STYLES
from leftysay.cache import RenderCache
from leftysay.config import cache_dir, config_file, data_dir, get_config, update_config
from leftysay.errors import CacheUnavailable, NoContent, RenderError
from leftysay.models import (
    COLOR_ALIASES,
    FORMAT_ALIASES,
    ColorMode,
    LayoutMode,
    RenderRequest,
    RequestedFormat,
    normalize_colors,
    normalize_format,
)
from leftysay.packs import (
    Pack,
    find_pack,
    image_dimensions,
    pack_search_paths,
    resolve_image,
    resolve_message,
    scan_packs,
)
from leftysay.pipeline import Greeter, plan_render
from leftysay.renderer import ChafaRenderer, find_chafa, install_hint
from leftysay.terminal_graphics import (
    EnvSignals,
    TerminalCapabilities,
    detect_terminal_capabilities,
    resolve_colors,
    resolve_format,
)

logger = logging.getLogger(__name__)

FORMAT_CHOICES = [f.value for f in RequestedFormat] + sorted(FORMAT_ALIASES)
COLOR_CHOICES = [c.value for c in ColorMode] + sorted(COLOR_ALIASES)
LAYOUT_CHOICES = [m.value for m in LayoutMode]
BYTES_PER_MB = 1024 * 1024


def print_pack_list(packs: list[Pack]) -> None:
    """Print every pack with its images."""
    if not packs:
        click.echo("No packs found.")
        return
    for pack in packs:
        meta = pack.meta
        click.echo(f"{meta.name} (v{meta.version}, {meta.license}): {meta.description}")
        for image in pack.images:
            size = image_dimensions(image)
            suffix = f" ({size[0]}x{size[1]})" if size else ""
            click.echo(f"  - {image.name}{suffix}")


def print_doctor(
    signals: EnvSignals,
    caps: TerminalCapabilities,
    config: dict,
    cache: RenderCache,
) -> None:
    """Print diagnostics about the environment and configuration."""
    click.echo("leftysay doctor")
    chafa = find_chafa()
    click.echo(f"chafa: {chafa}" if chafa else f"chafa: not found. {install_hint()}")
    click.echo(f"terminal: {caps.columns} cols x {caps.rows} rows")
    click.echo(f"terminal.multiplexer: {caps.multiplexer or 'none'}")
    click.echo(
        "terminal.protocols: "
        f"kitty={caps.supports_kitty} iterm={caps.supports_iterm} sixel={caps.supports_sixel}"
    )
    try:
        requested_format = RequestedFormat(normalize_format(config["format"]))
        click.echo(f"resolved.format: {resolve_format(requested_format, caps).value}")
    except ValueError:
        click.echo(f"resolved.format: invalid config value {config['format']!r}")
    try:
        requested_colors = ColorMode(normalize_colors(config["colors"]))
        click.echo(f"resolved.colors: {resolve_colors(requested_colors, signals).value}")
    except ValueError:
        click.echo(f"resolved.colors: invalid config value {config['colors']!r}")
    for key in sorted(config):
        click.echo(f"config.{key}: {config[key]}")
    click.echo(f"config file: {config_file()}")
    click.echo(f"data dir: {data_dir()}")
    click.echo(f"cache dir: {cache.directory}")
    try:
        entries = cache.entries()
        total = sum(entry.size_bytes for entry in entries)
        click.echo(f"cache usage: {len(entries)} entries, {total} of {cache.max_bytes} bytes")
    except CacheUnavailable as e:
        click.echo(f"cache usage: unavailable ({e})")
    click.echo("pack search paths:")
    for path in pack_search_paths():
        click.echo(f"  - {path}")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--text", help="Override the message")
@click.option(
    "--image",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Render a specific image",
)
@click.option("--pack", "pack_name", help="Choose a pack")
@click.option("--list", "list_packs", is_flag=True, help="List packs and images")
@click.option("--doctor", is_flag=True, help="Print diagnostics")
@click.option("--no-bubble", is_flag=True, help="Render the image only")
@click.option("--seed", type=int, help="Seed for deterministic pack selection")
@click.option(
    "--format",
    "image_format",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    help="Force the image format",
)
@click.option(
    "--colors",
    type=click.Choice(COLOR_CHOICES, case_sensitive=False),
    help="Force the color depth",
)
@click.option(
    "--max-height-ratio",
    type=click.FloatRange(0.0, 1.0, min_open=True),
    help="Maximum image height as a fraction of the terminal (0.0-1.0]",
)
@click.option("--layout", type=click.Choice(LAYOUT_CHOICES), help="Bubble placement")
@click.option("--style", type=click.Choice(sorted(STYLES)), help="Bubble border style")
@click.option("--animate", is_flag=True, help="Play animated images")
@click.option("--clear-cache", is_flag=True, help="Remove cached renders and exit")
@click.option(
    "--save",
    is_flag=True,
    help="Save format/colors/layout/style/pack to config for future runs",
)
@click.option("--debug", is_flag=True, help="Enable debug logging on stderr")
@click.version_option(__version__, prog_name="leftysay")
def main(
    text: str | None,
    image: Path | None,
    pack_name: str | None,
    list_packs: bool,
    doctor: bool,
    no_bubble: bool,
    seed: int | None,
    image_format: str | None,
    colors: str | None,
    max_height_ratio: float | None,
    layout: str | None,
    style: str | None,
    animate: bool,
    clear_cache: bool,
    save: bool,
    debug: bool,
) -> None:
    """A terminal greeter that renders a speech bubble and an image via chafa."""
    config = get_config()
    setup_logging(str(config.get("log_level", "WARNING")), debug=debug)

    if not config["enabled"] and not (doctor or list_packs or clear_cache):
        logger.debug("Disabled in config")
        return

    cache = RenderCache(
        cache_dir(),
        max_bytes=int(config["cache_max_mb"]) * BYTES_PER_MB,
        enabled=bool(config["cache"]),
    )
    if clear_cache:
        try:
            removed = cache.clear()
        except CacheUnavailable as e:
            raise click.ClickException(str(e)) from e
        click.echo(f"Removed {removed} cached renders from {cache.directory}")
        return

    signals = EnvSignals.from_environ()
    caps = detect_terminal_capabilities(signals)

    if doctor:
        print_doctor(signals, caps, config, cache)
        return

    packs = scan_packs()
    if list_packs:
        print_pack_list(packs)
        return

    name = pack_name or str(config["default_pack"])
    pack = find_pack(packs, name)
    if pack is None and image is None:
        if pack_name is not None:
            raise click.ClickException(f"pack not found: {pack_name}")
        logger.info("Default pack %r not found, showing the message only", name)

    rng = random.Random(seed)
    message = resolve_message(text, pack, rng)
    image_path = resolve_image(image, pack, rng)

    try:
        request = RenderRequest(
            message=message,
            image_path=image_path,
            bubble_enabled=not no_bubble,
            bubble_style=style or str(config["bubble_style"]),
            format=image_format or config["format"],
            colors=colors or config["colors"],
            layout_mode=layout or config["layout"],
            max_height_ratio=max_height_ratio or config["max_height_ratio"],
            animate=animate or bool(config["animate"]),
            cache_enabled=bool(config["cache"]),
            cache_max_bytes=int(config["cache_max_mb"]) * BYTES_PER_MB,
            render_timeout=config["render_timeout"],
        )
    except ValidationError as e:
        raise click.ClickException(f"invalid settings: {e}") from e

    if save:
        updates = {
            "format": image_format,
            "colors": colors,
            "layout": layout,
            "bubble_style": style,
            "default_pack": pack_name,
        }
        update_config({k: v for k, v in updates.items() if v is not None})
        click.echo(f"Saved settings to {config_file()}", err=True)

    renderer = ChafaRenderer(timeout=request.render_timeout, passthrough=caps.multiplexer)
    resolved_colors = resolve_colors(request.colors, signals)
    greeter = Greeter(renderer, cache)

    if request.animate and request.image_path is not None:
        _animate(greeter, renderer, request, caps, resolved_colors)
        return

    try:
        result = greeter.run(request, caps, resolved_colors)
    except (RenderError, NoContent) as e:
        raise click.ClickException(str(e)) from e

    click.echo("\n".join(result.lines), color=True)
    if result.image_error is not None:
        click.echo(f"leftysay: image not shown: {result.image_error}", err=True)


def _animate(
    greeter: Greeter,
    renderer: ChafaRenderer,
    request: RenderRequest,
    caps: TerminalCapabilities,
    colors: ColorMode,
) -> None:
    """Print the bubble, then let chafa play the image in the terminal."""
    # Animation always plays below the bubble
    request = request.model_copy(update={"layout_mode": LayoutMode.VERTICAL})
    if request.bubble_enabled:
        still = request.model_copy(update={"image_path": None})
        click.echo("\n".join(greeter.run(still, caps, colors).lines), color=True)

    plan = plan_render(request, caps, colors)
    try:
        renderer.play(request.image_path, plan.resolved_format, plan.colors, plan.image_cells)
    except RenderError as e:
        if not request.bubble_enabled:
            raise click.ClickException(str(e)) from e
        click.echo(f"leftysay: image not shown: {e}", err=True)
