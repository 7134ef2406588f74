#!/usr/bin/env python3

# -------------------------------------------------------
# Script: convert_tiles.py
#
# Description:
# Prepares a directory of geotagged JPEG photos for the tile map. For every
# photo with GPS metadata a resized thumbnail and a pin-shaped map marker
# are created, and a JSON manifest with the coordinates and asset paths is
# written. Photos without GPS data are skipped with a warning.
#
# Usage:
#   convert-tiles [options] [directory]
#   python -m tilemap.convert_tiles [options] [directory]
#
# Arguments:
#   - [directory]: Directory with the source photos (default: tiles).
#
# Options:
#   -t, --thumb-dir DIR        Output directory for thumbnails (default: tiles_small).
#   -m, --marker-dir DIR       Output directory for markers (default: tiles_markers).
#   -o, --output FILE          Manifest file to write (default: tiles.json).
#   -W, --width PX             Thumbnail width in pixels (default: 800).
#   -MW, --marker-width PX     Marker width in pixels (default: 80).
#   -MH, --marker-height PX    Marker height in pixels (default: 128).
#   -R, --rotate DEGREES       Extra clockwise rotation: 0, 90, 180 or 270 (default: 0).
#   -q, --quality QUALITY      JPEG quality for thumbnails (default: 85).
#   -r, --recursive            Process directories recursively.
#   -n, --dry-run              Show what would be done without writing files.
#   -v, --verbose              Enable verbose logging (INFO level).
#   -vv, --debug               Enable debug logging (DEBUG level).
#
# Template: ubuntu24.04
#
# Requirements:
#   - Pillow (install via: pip install Pillow==11.1.0)
#   - piexif (install via: pip install piexif==1.1.3)
#
# -------------------------------------------------------
# © 2025 Hendrik Buchwald. All rights reserved.
# -------------------------------------------------------

import argparse
import logging
import math
import os
import sys
from typing import List, Optional, Sequence, Set, Tuple

from PIL import Image, ImageDraw, ImageOps
import piexif

from tilemap.manifest import Point, write_manifest

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg")

# Pin mask is drawn this many times larger and scaled down for smooth edges
MASK_SUPERSAMPLING = 4


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments.
    """
    p = argparse.ArgumentParser(
        description="Create thumbnails, map markers and a manifest from geotagged photos."
    )
    p.add_argument(
        "directory",
        nargs="?",
        default="tiles",
        help="Directory with source photos (default: tiles)",
    )
    p.add_argument(
        "-t",
        "--thumb-dir",
        default="tiles_small",
        metavar="DIR",
        help="Output directory for thumbnails (default: tiles_small)",
    )
    p.add_argument(
        "-m",
        "--marker-dir",
        default="tiles_markers",
        metavar="DIR",
        help="Output directory for markers (default: tiles_markers)",
    )
    p.add_argument(
        "-o",
        "--output",
        default="tiles.json",
        metavar="FILE",
        help="Manifest file to write (default: tiles.json)",
    )
    p.add_argument(
        "-W",
        "--width",
        type=int,
        default=800,
        metavar="PX",
        help="Thumbnail width in pixels (default: 800)",
    )
    p.add_argument(
        "-MW",
        "--marker-width",
        type=int,
        default=80,
        metavar="PX",
        help="Marker width in pixels (default: 80)",
    )
    p.add_argument(
        "-MH",
        "--marker-height",
        type=int,
        default=128,
        metavar="PX",
        help="Marker height in pixels (default: 128)",
    )
    p.add_argument(
        "-R",
        "--rotate",
        type=int,
        default=0,
        choices=(0, 90, 180, 270),
        metavar="DEGREES",
        help="Extra clockwise rotation after EXIF orientation (default: 0)",
    )
    p.add_argument(
        "-q",
        "--quality",
        type=int,
        default=85,
        metavar="QUALITY",
        help="JPEG quality for thumbnails (0-100, default 85)",
    )
    p.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Process directories recursively",
    )
    p.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Show what would be done without writing files",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="INFO logging",
    )
    p.add_argument(
        "-vv",
        "--debug",
        action="store_true",
        help="DEBUG logging",
    )
    return p.parse_args(argv)


def setup_logging(verbose: bool, debug: bool) -> None:
    """
    Sets up logging based on verbosity level.
    """
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _convert_to_degrees(
    value: Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]],
) -> float:
    """
    Converts GPS coordinates from EXIF format to decimal degrees.
    """
    d = value[0][0] / value[0][1] if value[0][1] else 0
    m = value[1][0] / value[1][1] if value[1][1] else 0
    s = value[2][0] / value[2][1] if value[2][1] else 0
    return d + m / 60.0 + s / 3600.0


def extract_gps(exif: dict) -> Optional[Tuple[float, float]]:
    """
    Returns (lat, lng) in signed decimal degrees from piexif data, or None
    when the GPS block is missing or incomplete.
    """
    gps = exif.get("GPS") or {}

    lat_val = gps.get(piexif.GPSIFD.GPSLatitude)
    lon_val = gps.get(piexif.GPSIFD.GPSLongitude)
    lat_ref = gps.get(piexif.GPSIFD.GPSLatitudeRef)
    lon_ref = gps.get(piexif.GPSIFD.GPSLongitudeRef)

    if not (lat_val and lon_val and lat_ref and lon_ref):
        return None

    lat = _convert_to_degrees(lat_val)
    lon = _convert_to_degrees(lon_val)
    if lat_ref in [b"S", "S"]:
        lat = -lat
    if lon_ref in [b"W", "W"]:
        lon = -lon
    return lat, lon


def read_gps(img: Image.Image) -> Optional[Tuple[float, float]]:
    exif_bytes = img.info.get("exif")
    if not exif_bytes:
        return None
    return extract_gps(piexif.load(exif_bytes))


def find_image_files(directory: str, recursive: bool) -> List[str]:
    """
    Returns the sorted list of JPEG files in directory.
    """
    files: List[str] = []

    if recursive:
        for root, _, names in os.walk(directory):
            for name in names:
                if name.lower().endswith(SUPPORTED_EXTENSIONS):
                    files.append(os.path.join(root, name))
    else:
        for entry in os.scandir(directory):
            if entry.is_file() and entry.name.lower().endswith(SUPPORTED_EXTENSIONS):
                files.append(entry.path)

    return sorted(files)


def make_thumbnail(img: Image.Image, width: int, rotate: int) -> Image.Image:
    """
    Orients the image, applies the extra clockwise rotation and scales it to
    the given width.
    """
    thumb = ImageOps.exif_transpose(img).convert("RGB")
    if rotate:
        # PIL rotates counter-clockwise
        thumb = thumb.rotate(-rotate, expand=True)

    w, h = thumb.size
    height = max(1, round(h * width / w))
    return thumb.resize((width, height), Image.Resampling.LANCZOS)


def make_pin_mask(size: Tuple[int, int]) -> Image.Image:
    """
    Draws the alpha mask of a map pin: a circle on top that narrows into a
    point at the bottom centre.
    """
    width, height = size
    sw, sh = width * MASK_SUPERSAMPLING, height * MASK_SUPERSAMPLING
    radius = min(sw, sh) / 2
    cx, cy = sw / 2, radius
    tip = (cx, sh - 1)

    mask = Image.new("L", (sw, sh), 0)
    draw = ImageDraw.Draw(mask)
    draw.ellipse((cx - radius, cy - radius, cx + radius, cy + radius), fill=255)

    # Tangent points from the tip to the circle
    distance = tip[1] - cy
    if distance > radius:
        alpha = math.acos(radius / distance)
        dx = radius * math.sin(alpha)
        dy = radius * math.cos(alpha)
        draw.polygon([(cx - dx, cy + dy), (cx + dx, cy + dy), tip], fill=255)

    return mask.resize(size, Image.Resampling.LANCZOS)


def make_marker(thumbnail: Image.Image, size: Tuple[int, int]) -> Image.Image:
    """
    Crops the thumbnail to the marker size and cuts it into a pin shape.
    """
    marker = ImageOps.fit(thumbnail, size, method=Image.Resampling.LANCZOS)
    marker = marker.convert("RGBA")
    marker.putalpha(make_pin_mask(size))
    return marker


def _relative(path: str, start: str) -> str:
    return os.path.relpath(path, start).replace(os.sep, "/")


def process_image(
    path: str,
    name: str,
    thumb_dir: str,
    marker_dir: str,
    manifest_dir: str,
    width: int,
    marker_size: Tuple[int, int],
    rotate: int,
    quality: int,
    dry_run: bool,
) -> Optional[Point]:
    """
    Creates the thumbnail and marker for a single photo. name is the photo's
    path relative to the source directory; subdirectories in it are mirrored
    below thumb_dir and marker_dir. Returns None if the photo has no GPS
    position.
    """
    stem, _ = os.path.splitext(name)
    thumb_path = os.path.join(thumb_dir, *name.split("/"))
    marker_path = os.path.join(marker_dir, *f"{stem}.png".split("/"))

    with Image.open(path) as img:
        position = read_gps(img)
        if position is None:
            logging.warning("No GPS data for %s", name)
            return None

        if dry_run:
            logging.info("Would create '%s' and '%s'", thumb_path, marker_path)
        else:
            os.makedirs(os.path.dirname(thumb_path), exist_ok=True)
            os.makedirs(os.path.dirname(marker_path), exist_ok=True)
            thumb = make_thumbnail(img, width, rotate)
            thumb.save(thumb_path, format="JPEG", quality=quality)
            make_marker(thumb, marker_size).save(marker_path, format="PNG")
            logging.debug("Created '%s' and '%s'", thumb_path, marker_path)

    lat, lng = position
    return Point(
        id=name,
        lat=lat,
        lng=lng,
        thumbnail=_relative(thumb_path, manifest_dir),
        marker=_relative(marker_path, manifest_dir),
    )


def _tile_name(path: str, source_dir: Optional[str]) -> str:
    if source_dir is None:
        return os.path.basename(path)
    return _relative(path, source_dir)


def convert_tiles(
    files: List[str],
    thumb_dir: str,
    marker_dir: str,
    manifest_path: str,
    width: int = 800,
    marker_size: Tuple[int, int] = (80, 128),
    rotate: int = 0,
    quality: int = 85,
    dry_run: bool = False,
    source_dir: Optional[str] = None,
) -> Tuple[List[Point], int]:
    """
    Processes all files and writes the manifest. Returns the created points
    and the number of skipped files.

    Tile names are the paths relative to source_dir, or the bare file names
    when it is not given. A file whose name or marker would clash with an
    earlier one (e.g. "IMG.jpg" and "IMG.JPG") is skipped with a warning.
    """
    manifest_dir = os.path.dirname(os.path.abspath(manifest_path))
    if not dry_run:
        os.makedirs(thumb_dir, exist_ok=True)
        os.makedirs(marker_dir, exist_ok=True)

    points: List[Point] = []
    taken: Set[str] = set()
    skipped = 0
    for path in files:
        name = _tile_name(path, source_dir)
        stem, _ = os.path.splitext(name)
        keys = {os.path.normcase(name).lower(), os.path.normcase(stem).lower() + ".png"}
        if keys & taken:
            logging.warning("Skipping '%s': output name already used by another photo", path)
            skipped += 1
            continue

        try:
            point = process_image(
                path,
                name,
                thumb_dir,
                marker_dir,
                manifest_dir,
                width,
                marker_size,
                rotate,
                quality,
                dry_run,
            )
        except Exception as exc:  # noqa: BLE001
            logging.warning("Error processing '%s': %s", name, exc)
            point = None

        if point is None:
            skipped += 1
            continue
        taken |= keys
        points.append(point)

    if dry_run:
        logging.info("Would write %d entries to '%s'", len(points), manifest_path)
    else:
        write_manifest(manifest_path, points)

    return points, skipped


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main entry point.
    """
    args = parse_arguments(argv)
    setup_logging(args.verbose, args.debug)

    if not os.path.isdir(args.directory):
        logging.error("'%s' is not a directory", args.directory)
        sys.exit(1)

    files = find_image_files(args.directory, args.recursive)
    logging.info("Found %d images in '%s'.", len(files), args.directory)

    points, skipped = convert_tiles(
        files,
        thumb_dir=args.thumb_dir,
        marker_dir=args.marker_dir,
        manifest_path=args.output,
        width=args.width,
        marker_size=(args.marker_width, args.marker_height),
        rotate=args.rotate,
        quality=args.quality,
        dry_run=args.dry_run,
        source_dir=args.directory,
    )
    logging.info(
        "Processing complete! %d tile(s) written, %d file(s) skipped.",
        len(points),
        skipped,
    )


if __name__ == "__main__":
    main()
