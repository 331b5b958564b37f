"""
POD Remix — command line entry point

Usage:
  python -m podremix.main remix    --source art.png --strategies strategies.json
  python -m podremix.main export   --variant v.png --preset vibrant --out print.png
  python -m podremix.main invert   --image v.png --out v_dark.png
  python -m podremix.main classify --image v.png
  python -m podremix.main presets
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rich.console import Console
from rich.table import Table

from .background import classify
from .bundle import create_variant_bundle
from .codec import decode_image, encode_png
from .config import load_config
from .errors import PodRemixError
from .export import ExportRequest, download_filename, export_variant
from .filters import IDENTITY, PRESETS, get_preset, parse_filter, presets_for
from .models import SourceImage, VariantBatch, VariationStrategy
from .pipeline import run_variants
from .pixels import invert_lightness, sample_average_luminance

console = Console()

OUTPUTS_ROOT = Path("outputs")


# ── Argument helpers ──────────────────────────────────────────────────────────

def _size(text: str) -> Tuple[int, int]:
    try:
        w, h = text.lower().split("x")
        return int(w), int(h)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {text!r}") from None


def _offset(text: str) -> Tuple[int, int]:
    try:
        x, y = text.split(",")
        return int(x), int(y)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected X,Y, got {text!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="podremix",
        description="POD Remix — print-ready design variants from one source image",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    remix = sub.add_parser("remix", help="Generate variants from a source image")
    remix.add_argument("--source", required=True, type=Path, help="Source image (PNG/JPEG/WEBP)")
    remix.add_argument("--strategies", required=True, type=Path,
                       help="JSON list of {id, label, instructions}")
    remix.add_argument("--family", default=None, help="Product family (tshirt, hoodie, ...)")
    remix.add_argument("--name", default="Design", help="Design name used in file names")
    remix.add_argument("--output", default=None, type=Path,
                       help="Output directory (default: outputs/<timestamp>)")

    export = sub.add_parser("export", help="Render an edited variant onto a print canvas")
    export.add_argument("--variant", required=True, type=Path)
    style = export.add_mutually_exclusive_group()
    style.add_argument("--filter", default=None, help='e.g. "brightness(1.1) contrast(1.2)"')
    style.add_argument("--preset", default=None, choices=sorted(PRESETS))
    export.add_argument("--canvas", type=_size, default=(4500, 5400), help="WIDTHxHEIGHT")
    export.add_argument("--scale", type=float, default=1.0)
    export.add_argument("--offset", type=_offset, default=(0, 0), help="X,Y in canvas pixels")
    export.add_argument("--dpi", type=int, default=None)
    export.add_argument("--out", required=True, type=Path)

    invert = sub.add_parser("invert", help="Invert lightness for dark products")
    invert.add_argument("--image", required=True, type=Path)
    invert.add_argument("--out", required=True, type=Path)

    cls = sub.add_parser("classify", help="Recommend a light or dark product background")
    cls.add_argument("--image", required=True, type=Path)

    sub.add_parser("presets", help="List style presets")
    return parser


# ── Commands ──────────────────────────────────────────────────────────────────

def load_strategies(path: Path) -> List[VariationStrategy]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("strategies", [])
    return [VariationStrategy.model_validate(item) for item in raw]


def _results_table(batch: VariantBatch) -> Table:
    table = Table(title="Variants")
    table.add_column("ID", justify="right")
    table.add_column("Label")
    table.add_column("Tier")
    table.add_column("Background")
    table.add_column("Status")
    for v in batch.variants:
        status = "[green]ready[/green]" if v.normalized else "[yellow]ready (native size)[/yellow]"
        table.add_row(str(v.strategy_id), v.label, v.tier.label, v.recommendation.label, status)
    for f in batch.failures:
        table.add_row(str(f.strategy_id), "", "", "", f"[red]{f.stage} failed: {f.error}[/red]")
    return table


def cmd_remix(args: argparse.Namespace) -> int:
    config = load_config()
    if args.family:
        config = config.with_family(args.family)

    source = SourceImage.from_bytes(args.source.read_bytes(), upload_id=args.source.name)
    strategies = load_strategies(args.strategies)
    if not strategies:
        console.print("[red]No strategies given[/red]")
        return 1

    console.print(
        f"[bold]Canvas:[/bold] {config.canvas.family} "
        f"{config.canvas.width}x{config.canvas.height} @ {config.canvas.dpi} DPI"
    )
    batch = run_variants(source, strategies, config)

    output_dir = args.output or OUTPUTS_ROOT / datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir.mkdir(parents=True, exist_ok=True)
    for v in batch.variants:
        path = output_dir / download_filename(v.label, args.name, 1, v.strategy_id)
        path.write_bytes(v.final_image)

    zip_path = create_variant_bundle(batch, output_dir, design_name=args.name)
    console.print(_results_table(batch))
    if zip_path:
        console.print(f"[dim]Bundle: {zip_path}[/dim]")

    return 0 if batch.variants else 1


def cmd_export(args: argparse.Namespace) -> int:
    descriptor, invert = IDENTITY, False
    if args.preset:
        preset = get_preset(args.preset)
        descriptor, invert = preset.descriptor, preset.invert_lightness
    elif args.filter:
        descriptor = parse_filter(args.filter)

    width, height = args.canvas
    png = export_variant(ExportRequest(
        source_variant=args.variant.read_bytes(),
        filter=descriptor,
        canvas_width=width,
        canvas_height=height,
        scale=args.scale,
        offset=args.offset,
        invert=invert,
        dpi=args.dpi,
    ))
    args.out.write_bytes(png)
    console.print(f"[green]✓[/green] Exported {width}x{height} → {args.out}")
    return 0


def cmd_invert(args: argparse.Namespace) -> int:
    image = decode_image(args.image.read_bytes())
    args.out.write_bytes(encode_png(invert_lightness(image)))
    console.print(f"[green]✓[/green] Inverted → {args.out}")
    return 0


def cmd_classify(args: argparse.Namespace) -> int:
    image = decode_image(args.image.read_bytes())
    luminance = sample_average_luminance(image)
    rec = classify(image)
    console.print(f"[bold]{rec.label}[/bold]  (polarity={rec.polarity.value}, luminance={luminance:.1f})")
    names = ", ".join(p.id for p in presets_for(rec.polarity))
    console.print(f"[dim]Suggested presets: {names}[/dim]")
    return 0


def cmd_presets(args: argparse.Namespace) -> int:
    table = Table(title="Style presets")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Best for")
    table.add_column("Filter")
    table.add_column("Description")
    for p in PRESETS.values():
        filter_text = "invert lightness" if p.invert_lightness else p.filter_text
        table.add_row(p.id, p.name, p.best_for, filter_text, p.description)
    console.print(table)
    return 0


COMMANDS = {
    "remix":    cmd_remix,
    "export":   cmd_export,
    "invert":   cmd_invert,
    "classify": cmd_classify,
    "presets":  cmd_presets,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(
        format="%(asctime)s — %(levelname)s — %(name)s — %(message)s",
        level=os.environ.get("PODREMIX_LOG_LEVEL", "WARNING").upper(),
    )
    args = build_parser().parse_args(argv)
    try:
        return COMMANDS[args.command](args)
    except (PodRemixError, OSError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
