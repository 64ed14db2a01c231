from __future__ import annotations

import argparse
import hashlib
import json
import logging
import mimetypes
import os
import sys
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse, unquote

import requests
from PIL import Image, ImageOps

import detector
import filters
from dna import DnaConfiguration, apply_overrides, default_configuration, neutral_configuration
from presets import CATALOG, all_presets, get_preset, load_catalog
from processor import Processor, decode_image
from stages import STAGES

GENERATOR = "Master DNA Processor"
MAX_EXPORT_SIDE = 7680

# =============== Logging ===============
log = logging.getLogger("masterdna")


def setup_logging(verbosity: int = 0) -> None:
    level = [logging.WARNING, logging.INFO, logging.DEBUG][min(verbosity, 2)]
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )


# =============== Core: Fetcher & Loader ===============
class FileFetcher:
    """Fetch bytes from http(s) / file:// / local path with a tiny, safe cache."""

    def __init__(self, cache_dir: Optional[Path] = None, timeout: float = 20.0) -> None:
        self.timeout = timeout
        self.cache_dir = cache_dir or Path(tempfile.gettempdir()) / "masterdna_cache"
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": "masterdna/7.0 (+https://local)"})

    def fetch(self, src: str) -> Tuple[bytes, Optional[str]]:
        parsed = urlparse(src)
        scheme = (parsed.scheme or "").lower()
        if scheme in ("http", "https"):
            return self._fetch_http_cached(src)
        if scheme == "file":
            local_path = unquote(parsed.path)
            if os.name == "nt" and local_path.startswith("/"):
                local_path = local_path[1:]
            return self._fetch_local(local_path)
        # bare paths, including Windows drive letters that urlparse reads as a scheme
        if scheme == "" or (len(scheme) == 1 and os.name == "nt"):
            return self._fetch_local(src)
        raise ValueError(f"Unsupported URL scheme: {scheme}")

    def _cache_key(self, url: str) -> Path:
        h = hashlib.sha256(url.encode("utf-8")).hexdigest()[:32]
        return self.cache_dir / f"{h}.bin"

    def _fetch_http_cached(self, url: str) -> Tuple[bytes, Optional[str]]:
        key = self._cache_key(url)
        if key.exists():
            try:
                raw = key.read_bytes()
            except OSError as e:
                log.warning("Cache read failed (%s), refetching", e)
            else:
                log.info("Cache hit: %s", key.name)
                return raw, mimetypes.guess_type(url)[0]
        log.info("Fetching: %s", url)
        r = self._session.get(url, timeout=self.timeout)
        r.raise_for_status()
        raw = r.content
        try:
            key.write_bytes(raw)
        except OSError as e:
            log.warning("Cache write failed: %s", e)
        return raw, r.headers.get("Content-Type")

    def _fetch_local(self, path_str: str) -> Tuple[bytes, Optional[str]]:
        p = Path(path_str)
        if not p.exists() or not p.is_file():
            raise FileNotFoundError(f"Input file not found: {p}")
        return p.read_bytes(), mimetypes.guess_type(p.name)[0]


class ImageLoader:
    """Decode bytes → RGBA Pillow image. Optional max-size for speed/RAM."""

    def load(self, raw: bytes, content_type: Optional[str], *, max_size: Optional[int] = None) -> Image.Image:
        log.debug("Decoding %d bytes (%s)", len(raw), content_type or "unknown type")
        img = decode_image(raw)
        img = ImageOps.exif_transpose(img)
        img = img.convert("RGBA")
        if max_size:
            img.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
        return img


# =============== Small CLI helpers ===============
def _coerce(v: str) -> Any:
    if v.isdigit():
        return int(v)
    try:
        return float(v)
    except ValueError:
        low = v.lower()
        if low in ("true", "false"):
            return low == "true"
    return v


def _parse_kv_pairs(pairs: Optional[List[str]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if not pairs:
        return out
    for p in pairs:
        if "=" in p:
            k, v = p.split("=", 1)
            out[k.strip()] = _coerce(v.strip())
        else:
            log.warning("Ignoring malformed --extra item %r (expected key=value)", p)
    return out


def _infer_format_from_path(p: Path) -> str:
    ext = p.suffix.lower()
    if ext in (".jpg", ".jpeg"):
        return "JPEG"
    if ext == ".png":
        return "PNG"
    if ext == ".webp":
        return "WEBP"
    return "PNG"


def _export_scale(width: int, height: int, scale: int) -> int:
    """Largest factor <= scale that keeps the longest side within MAX_EXPORT_SIDE."""
    scale = max(1, int(scale))
    longest = max(width, height)
    while scale > 1 and longest * scale > MAX_EXPORT_SIDE:
        scale -= 1
    return scale


def _resolve_configuration(args: argparse.Namespace) -> DnaConfiguration:
    if args.config and args.preset:
        raise ValueError("Use either --config or --preset, not both")
    if args.config:
        config = DnaConfiguration.load(args.config)
    elif args.preset:
        config = get_preset(args.preset, _catalog(args)).configuration
    elif getattr(args, "neutral", False):
        config = neutral_configuration()
    else:
        config = default_configuration()
    overrides = _parse_kv_pairs(args.extra)
    if overrides:
        log.info("DNA overrides: %s", {k: overrides[k] for k in sorted(overrides)})
        config = apply_overrides(config, overrides)
    return config


def _catalog(args: argparse.Namespace):
    path = getattr(args, "catalog", None)
    return load_catalog(path) if path else CATALOG


def _load_processor(src: str, max_size: Optional[int] = None) -> Processor:
    raw, ctype = FileFetcher().fetch(src)
    img = ImageLoader().load(raw, ctype, max_size=max_size)
    proc = Processor()
    proc.load(img)
    return proc


def _save(img: Image.Image, out: Path) -> str:
    out.parent.mkdir(parents=True, exist_ok=True)
    fmt = _infer_format_from_path(out)
    if fmt == "JPEG":
        img = img.convert("RGB")
        img.save(out, format=fmt, quality=95, optimize=True)
    else:
        img.save(out, format=fmt, optimize=True)
    return fmt


def export_metadata(config: DnaConfiguration, master: Optional[str], size: Tuple[int, int],
                    fmt: str, scale: int) -> Dict[str, Any]:
    w, h = size
    return {
        "generator": GENERATOR,
        "version": config.meta.version,
        "codename": config.meta.codename,
        "master": master or config.meta.artist or "custom",
        "export": {
            "width": w,
            "height": h,
            "scale": scale,
            "format": fmt.lower(),
            "exportDate": datetime.now(timezone.utc).isoformat(),
        },
        "dimensions": config.to_dict()["dimensions"],
    }


# =============== CLI ===============
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Master-painter DNA image stylizer")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v, -vv).")

    sub = p.add_subparsers(dest="cmd", required=True)

    lp = sub.add_parser("list", help="List filter primitives and pipeline stages.")
    lp.set_defaults(func=cmd_list)

    pp = sub.add_parser("presets", help="List painter style presets.")
    pp.add_argument("--catalog", type=Path, help="JSON catalog to list instead of the built-in one.")
    pp.add_argument("--show", help="Print one preset's DNA configuration as JSON.")
    pp.set_defaults(func=cmd_presets)

    rp = sub.add_parser("run", help="Stylize an image with a DNA configuration.")
    rp.add_argument("--url", required=True, help="HTTP(S) URL, file:// URL, or local path.")
    rp.add_argument("--out", type=Path, required=True, help="Output image file (png/jpg/webp).")
    rp.add_argument("--config", type=Path, help="DNA configuration JSON file.")
    rp.add_argument("--preset", help="Style preset id (e.g. vermeer, caravaggio).")
    rp.add_argument("--catalog", type=Path, help="JSON catalog to resolve --preset against.")
    rp.add_argument("--neutral", action="store_true", help="Start from the all-zero configuration.")
    rp.add_argument("--seed", type=int, default=None, help="RNG seed for film grain (optional).")
    rp.add_argument("--max-size", type=int, default=None, help="Downscale input longest side before processing.")
    rp.add_argument("--scale", type=int, default=1,
                    help=f"Final upscale factor via Lanczos (1=off, longest side capped at {MAX_EXPORT_SIDE}).")
    rp.add_argument("--raw", action="store_true", help="Skip the fixed finishing vignette.")
    rp.add_argument("--metadata", type=Path, help="Write a JSON sidecar describing the export.")
    rp.add_argument(
        "--extra",
        nargs="*",
        help="DNA overrides as group.param=value (e.g. finition.master=50 historicalConstraints.period=BAROQUE).",
    )
    rp.set_defaults(func=cmd_run)

    ap = sub.add_parser("analyze", help="Print image statistics as JSON.")
    ap.add_argument("--url", required=True)
    ap.add_argument("--histogram", action="store_true", help="Include 256-bin channel histograms.")
    ap.set_defaults(func=cmd_analyze)

    dp = sub.add_parser("detect", help="Suggest the painter style that best matches an image.")
    dp.add_argument("--url", required=True)
    dp.add_argument("--catalog", type=Path, help="JSON catalog of styles to score.")
    dp.add_argument("--json", action="store_true", help="Print the result as JSON.")
    dp.add_argument("--apply", action="store_true", help="Also stylize with the suggested preset (needs --out).")
    dp.add_argument("--out", type=Path, help="Output image for --apply.")
    dp.add_argument("--seed", type=int, default=None)
    dp.set_defaults(func=cmd_detect)

    bp = sub.add_parser("bench", help="Micro-benchmark the pipeline.")
    bp.add_argument("--url", required=True)
    bp.add_argument("--preset", help="Style preset id (default configuration if omitted).")
    bp.add_argument("--runs", type=int, default=3)
    bp.add_argument("--max-size", type=int, default=None)
    bp.add_argument("--extra", nargs="*")
    bp.set_defaults(func=cmd_bench, config=None)

    return p


# =============== Commands ===============
def cmd_list(_args: argparse.Namespace) -> int:
    print("Available filters:", ", ".join(filters.REGISTRY.names()) or "(none)")
    print("Pipeline stages:", " -> ".join(s.name for s in STAGES))
    return 0


def cmd_presets(args: argparse.Namespace) -> int:
    try:
        catalog = _catalog(args)
        if args.show:
            print(get_preset(args.show, catalog).configuration.to_json())
            return 0
        for style_id, preset in all_presets(catalog):
            print(f"{style_id:<12} {preset.display_name:<28} {preset.period}")
        return 0
    except Exception as e:
        log.exception("Failed: %s", e)
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    try:
        config = _resolve_configuration(args)
        proc = _load_processor(args.url, args.max_size)

        t0 = time.perf_counter()
        out = proc.process(config, seed=args.seed, finish=not args.raw)
        log.info("Processed %dx%d in %.1f ms", out.width, out.height, (time.perf_counter() - t0) * 1000)

        img = out.to_image()
        scale = _export_scale(out.width, out.height, args.scale)
        if scale != max(1, args.scale):
            log.warning("Scale %d exceeds %dpx limit, using %d", args.scale, MAX_EXPORT_SIDE, scale)
        if scale > 1:
            img = img.resize((out.width * scale, out.height * scale), Image.Resampling.LANCZOS)

        fmt = _save(img, args.out)
        log.info("Saved %s (%dx%d)", args.out, *img.size)

        if args.metadata:
            meta = export_metadata(config, args.preset, img.size, fmt, scale)
            args.metadata.parent.mkdir(parents=True, exist_ok=True)
            args.metadata.write_text(json.dumps(meta, indent=2), encoding="utf-8")
            log.info("Saved metadata %s", args.metadata)
        return 0

    except MemoryError:
        log.error("MemoryError: try a smaller --max-size or a lower --scale.")
        return 1
    except Exception as e:
        log.exception("Failed: %s", e)
        return 1


def cmd_analyze(args: argparse.Namespace) -> int:
    try:
        proc = _load_processor(args.url)
        w, h = proc.dimensions
        report: Dict[str, Any] = {"width": w, "height": h, **proc.analyze().to_dict()}
        if args.histogram:
            hist = detector.histogram(proc.original)
            report["histogram"] = {
                "r": hist.r.tolist(),
                "g": hist.g.tolist(),
                "b": hist.b.tolist(),
                "luminance": hist.lum.tolist(),
                "maxValue": hist.max_value,
            }
        print(json.dumps(report, indent=2))
        return 0
    except Exception as e:
        log.exception("Failed: %s", e)
        return 1


def cmd_detect(args: argparse.Namespace) -> int:
    try:
        if args.apply and not args.out:
            raise ValueError("--apply needs --out")
        catalog = _catalog(args)
        proc = _load_processor(args.url)
        result = proc.detect(catalog)

        if args.json:
            print(json.dumps(result.to_dict(), indent=2))
        else:
            preset = catalog.get(result.suggested_master)
            name = preset.display_name if preset else result.suggested_master
            print(f"Suggested: {name} ({result.confidence}%)")
            print(f"Reasoning: {result.reasoning}")
            if result.alternatives:
                alts = ", ".join(f"{a.master} ({a.confidence}%)" for a in result.alternatives)
                print(f"Alternatives: {alts}")

        if args.apply:
            config = get_preset(result.suggested_master, catalog).configuration
            out = proc.process(config, seed=args.seed)
            _save(out.to_image(), args.out)
            log.info("Applied %s -> %s", result.suggested_master, args.out)
        return 0
    except Exception as e:
        log.exception("Failed: %s", e)
        return 1


def cmd_bench(args: argparse.Namespace) -> int:
    try:
        config = _resolve_configuration(args)
        proc = _load_processor(args.url, args.max_size)

        times = []
        for _ in range(max(1, args.runs)):
            t0 = time.perf_counter()
            proc.process(config)
            times.append(time.perf_counter() - t0)
        avg = sum(times) / len(times)
        w, h = proc.dimensions
        print(
            f"{args.preset or 'default'} @ {w}x{h}: {len(times)} run(s), avg {avg*1000:.2f} ms, "
            f"min {min(times)*1000:.2f} ms, max {max(times)*1000:.2f} ms"
        )
        return 0
    except Exception as e:
        log.exception("Bench failed: %s", e)
        return 1


# =============== Entry ===============
def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
