#!/usr/bin/env python3

# -------------------------------------------------------
# Script: map_tiles.py
#
# Description:
# Starts a small Flask web application that shows a Leaflet map with every
# photo from a tiles manifest rendered as a pin-shaped marker. Clicking a
# marker shows its thumbnail; the arrow keys jump to the nearest photo in
# that direction. The initial view is fitted to the majority of the photos
# so that single outliers do not zoom the map out too far.
#
# Usage:
#   map-tiles [options] [manifest]
#   python -m tilemap.map_tiles [options] [manifest]
#
# Arguments:
#   - [manifest]: Manifest written by convert-tiles (default: tiles.json).
#
# Options:
#   -p, --port PORT           Port to run the server on (default: 5000).
#   -H, --host HOST           Host to run the server on (default: 127.0.0.1).
#   -t, --title TITLE         Page title (default: Tile Map).
#   -P, --preset NAME         Bounds preset: majority (10/90) or core (30/70)
#                             (default: majority).
#   -l, --lower-trim FRAC     Fraction of lowest ranked points to ignore.
#   -u, --upper-trim FRAC     Rank fraction up to which points are kept.
#   -d, --padding PX          Padding around the fitted bounds (default: 50).
#   -v, --verbose             Enable verbose logging (INFO level).
#   -vv, --debug              Enable debug logging (DEBUG level).
#
# Template: ubuntu24.04
#
# Requirements:
#   - Flask (install via: pip install flask==3.1.0)
#
# -------------------------------------------------------
# © 2025 Hendrik Buchwald. All rights reserved.
# -------------------------------------------------------

import argparse
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Sequence, Tuple

from flask import (
    Flask,
    Response,
    jsonify,
    render_template_string,
    request,
    send_from_directory,
    url_for,
)

from tilemap.geometry import (
    BOUNDS_PRESETS,
    Direction,
    estimate_bounds,
    find_nearest_in_direction,
)
from tilemap.manifest import Point, load_manifest, point_to_entry

TEMPLATE = r"""
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <title>{{ page_title }}</title>

  <link
    rel="stylesheet"
    href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css"
    integrity="sha384-sHL9NAb7lN7rfvG5lfHpm643Xkcjzp4jFvuavGOndn6pjVqS6ny56CAt3nsEVT4H"
    crossorigin="anonymous"
  />

  <style>
    html, body { height:100%; margin:0; }
    #map       { height:100vh; width:100%; position:relative; }

    /* Selected photo */
    #preview {
      display:none;
      position:absolute;
      top:10px; right:10px;
      z-index:1000;
      background:rgba(255,255,255,.8);
      padding:10px;
      border-radius:8px;
      font:14px sans-serif;
    }
    #preview img { display:block; width:150px; border-radius:8px; }
    #preview p   { margin:6px 0 0; }
  </style>
</head>
<body>
  <div id="map"></div>
  <div id="preview">
    <img id="preview-img" src="" alt="" />
    <p id="preview-name"></p>
  </div>

  <script
    src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"
    integrity="sha384-cxOPjt7s7Iz04uaHJceBmS+qpjv2JkIHNVcuOrM+YHwZOmJGBXI00mdUXEq65HTH"
    crossorigin="anonymous">
  </script>

  <script>
    const tiles = {{ tiles|tojson }};
    const bounds = {{ bounds|tojson }};
    const padding = {{ padding|tojson }};
    const navigateUrl = {{ navigate_url|tojson }};
    let currentIndex = null;

    const map = L.map('map', { zoomControl: false });
    L.tileLayer('https://{s}.basemaps.cartocdn.com/rastertiles/voyager/{z}/{x}/{y}{r}.png', {
      maxZoom: 20,
      attribution: '© OpenStreetMap © CARTO'
    }).addTo(map);

    function select(index) {
      currentIndex = index;
      const tile = tiles[index];
      const preview = document.getElementById('preview');
      document.getElementById('preview-img').src = tile.thumbnail || '';
      document.getElementById('preview-img').style.display = tile.thumbnail ? 'block' : 'none';
      document.getElementById('preview-img').alt = tile.name;
      document.getElementById('preview-name').textContent = tile.name;
      preview.style.display = 'block';
    }

    tiles.forEach((tile, index) => {
      // Default Leaflet pin when the marker image cannot be served
      const options = tile.marker ? {
        icon: L.icon({
          iconUrl: tile.marker,
          iconSize: [40, 50],
          iconAnchor: [20, 50]
        })
      } : {};
      const marker = L.marker([tile.lat, tile.lng], options).addTo(map);
      marker.on('click', () => select(index));
    });

    if (bounds) {
      map.fitBounds(bounds, { padding: [padding, padding] });
    } else {
      map.setView([20, 0], 2);  // fallback: world view
    }

    const KEYS = ['ArrowRight', 'ArrowLeft', 'ArrowUp', 'ArrowDown'];
    let navigating = false;

    window.addEventListener('keydown', async (event) => {
      if (!KEYS.includes(event.key) || currentIndex === null) return;
      event.preventDefault();
      // One request at a time, later presses would start from a stale index
      if (navigating) return;
      navigating = true;

      let index = currentIndex;
      try {
        const params = new URLSearchParams({ index: currentIndex, direction: event.key });
        const res = await fetch(`${navigateUrl}?${params}`);
        if (res.ok) {
          ({ index } = await res.json());
        }
      } finally {
        navigating = false;
      }

      if (index !== currentIndex) {
        select(index);
        map.flyTo([tiles[index].lat, tiles[index].lng], map.getZoom(), {
          animate: true,
          duration: 0.5
        });
      }
    });
  </script>
</body>
</html>
"""


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments.
    """
    p = argparse.ArgumentParser(
        description="Show processed photo tiles on an interactive map."
    )
    p.add_argument(
        "manifest",
        nargs="?",
        default="tiles.json",
        help="Manifest written by convert-tiles (default: tiles.json)",
    )
    p.add_argument(
        "-p",
        "--port",
        type=int,
        default=5000,
        help="Port (default 5000)",
    )
    p.add_argument(
        "-H",
        "--host",
        default="127.0.0.1",
        help="Host (default 127.0.0.1)",
    )
    p.add_argument(
        "-t",
        "--title",
        default="Tile Map",
        help="Page title (default: Tile Map)",
    )
    p.add_argument(
        "-P",
        "--preset",
        choices=sorted(BOUNDS_PRESETS),
        default="majority",
        help="Bounds preset (default: majority)",
    )
    p.add_argument(
        "-l",
        "--lower-trim",
        type=float,
        metavar="FRAC",
        help="Fraction of lowest ranked points to ignore (overrides preset)",
    )
    p.add_argument(
        "-u",
        "--upper-trim",
        type=float,
        metavar="FRAC",
        help="Rank fraction up to which points are kept (overrides preset)",
    )
    p.add_argument(
        "-d",
        "--padding",
        type=int,
        default=50,
        metavar="PX",
        help="Padding around the fitted bounds in pixels (default: 50)",
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


def resolve_trim(
    preset: str, lower_trim: Optional[float], upper_trim: Optional[float]
) -> Tuple[float, float]:
    """
    Returns the trim fractions of the preset with explicit values taking
    precedence.
    """
    lower, upper = BOUNDS_PRESETS[preset]
    if lower_trim is not None:
        lower = lower_trim
    if upper_trim is not None:
        upper = upper_trim
    return lower, upper


def _is_url(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


def _asset_path(ref: str, asset_root: str) -> Optional[str]:
    """
    Returns ref as a "/"-separated path below asset_root, or None if it
    points outside of it.
    """
    full = os.path.normpath(os.path.join(asset_root, ref))
    if os.path.commonpath([full, asset_root]) != asset_root:
        return None
    return os.path.relpath(full, asset_root).replace(os.sep, "/")


def create_app(
    points: List[Point],
    asset_root: str,
    title: str = "Tile Map",
    trim: Tuple[float, float] = BOUNDS_PRESETS["majority"],
    padding: int = 50,
) -> Flask:
    """
    Creates a Flask web application to display the points on a map.
    """
    app = Flask(__name__)
    asset_root = os.path.abspath(asset_root)

    # Fails early on invalid trim fractions
    bounds = estimate_bounds(points, *trim)
    corners = bounds.corners() if bounds else None
    if bounds is None:
        logging.warning("No points to show, the map starts with a world view.")

    # Local references resolved once, None for files outside asset_root
    local_assets: Dict[str, Optional[str]] = {}
    for point in points:
        for ref in (point.thumbnail, point.marker):
            if _is_url(ref) or ref in local_assets:
                continue
            local_assets[ref] = _asset_path(ref, asset_root)
            if local_assets[ref] is None:
                logging.warning(
                    "Asset '%s' of '%s' is outside of '%s' and cannot be served",
                    ref,
                    point.id,
                    asset_root,
                )

    def asset_url(ref: str) -> Optional[str]:
        if _is_url(ref):
            return ref
        path = local_assets.get(ref)
        return url_for("serve_asset", filename=path) if path else None

    def error(message: str, status: int):
        return jsonify({"error": message}), status

    @app.route("/")
    def index():
        tiles: List[Dict[str, Any]] = [
            {
                "name": point.id,
                "lat": point.lat,
                "lng": point.lng,
                "thumbnail": asset_url(point.thumbnail),
                "marker": asset_url(point.marker),
            }
            for point in points
        ]
        return render_template_string(
            TEMPLATE,
            page_title=title,
            tiles=tiles,
            bounds=corners,
            padding=padding,
            navigate_url=url_for("navigate"),
        )

    @app.route("/tiles.json")
    def manifest() -> Response:
        return jsonify([point_to_entry(point) for point in points])

    @app.route("/api/bounds")
    def api_bounds() -> Response:
        return jsonify({"bounds": corners, "padding": padding})

    @app.route("/api/navigate")
    def navigate():
        if not points:
            return error("No points loaded", 404)

        current = request.args.get("index", type=int)
        if current is None:
            return error("Parameter 'index' must be an integer", 400)
        if not 0 <= current < len(points):
            return error(f"Index {current} out of range", 400)

        try:
            direction = Direction.from_key(request.args.get("direction", ""))
        except ValueError as exc:
            return error(str(exc), 400)

        new_index = find_nearest_in_direction(points, current, direction)
        logging.debug("Navigate %s from %d to %d", direction.value, current, new_index)
        return jsonify({"index": new_index})

    @app.route("/assets/<path:filename>")
    def serve_asset(filename: str):
        return send_from_directory(asset_root, filename)

    return app


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main entry point.
    """
    args = parse_arguments(argv)
    setup_logging(args.verbose, args.debug)

    try:
        points = load_manifest(args.manifest)
    except (OSError, ValueError) as exc:
        logging.error("Cannot load manifest '%s': %s", args.manifest, exc)
        sys.exit(1)
    logging.info("Loaded %d tiles from '%s'.", len(points), args.manifest)

    trim = resolve_trim(args.preset, args.lower_trim, args.upper_trim)
    try:
        app = create_app(
            points,
            asset_root=os.path.dirname(os.path.abspath(args.manifest)),
            title=args.title,
            trim=trim,
            padding=args.padding,
        )
    except ValueError as exc:
        logging.error("%s", exc)
        sys.exit(1)

    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
