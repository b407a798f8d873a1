"""Render the flow canvas to SVG, PNG or JSON and write it as a download file."""

from __future__ import annotations

import html
import io
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from .config import Settings
from .models import Graph, Node, NodeKind
from .util import slugify_filename, utc_now_iso

logger = logging.getLogger(__name__)

FORMATS = ("png", "svg", "json")

KIND_COLORS = {
    NodeKind.CONTROLLER: "#8ecae6",
    NodeKind.DATA_SUBJECT: "#f9d65c",
    NodeKind.DATA_STORE: "#90be6d",
    NodeKind.THIRD_PARTY: "#f4a261",
    NodeKind.PROCESS: "#e6e6e6",
}

BG = "#ffffff"
EDGE_COLOR = "#5dee92"
BORDER = "#828282"
TEXT_COLOR = "#111827"
TITLE_HEIGHT = 36
LEGEND_HEIGHT = 28
LEGEND_ITEM_WIDTH = 120


@dataclass
class Canvas:
    """Drawing area covering every node, plus the offset that maps graph to canvas coordinates."""

    width: float
    height: float
    dx: float
    dy: float
    node_w: float
    node_h: float

    def box(self, node: Node) -> tuple[float, float, float, float]:
        x = node.position.x + self.dx
        y = node.position.y + self.dy
        return x, y, x + self.node_w, y + self.node_h

    def center(self, node: Node) -> tuple[float, float]:
        x0, y0, x1, y1 = self.box(node)
        return (x0 + x1) / 2, (y0 + y1) / 2


def measure_canvas(graph: Graph, settings: Settings) -> Canvas:
    """Canvas covering every node, never narrower than the legend."""
    m = settings.export_margin
    w, h = settings.node_width, settings.node_height
    min_width = 2 * m + len(NodeKind) * LEGEND_ITEM_WIDTH
    nodes = list(graph.nodes.values())
    if not nodes:
        return Canvas(
            width=max(2 * m + w, min_width),
            height=2 * m + h + TITLE_HEIGHT + LEGEND_HEIGHT,
            dx=m,
            dy=m + TITLE_HEIGHT,
            node_w=w,
            node_h=h,
        )

    min_x = min(n.position.x for n in nodes)
    min_y = min(n.position.y for n in nodes)
    max_x = max(n.position.x for n in nodes) + w
    max_y = max(n.position.y for n in nodes) + h
    return Canvas(
        width=max((max_x - min_x) + 2 * m, min_width),
        height=(max_y - min_y) + 2 * m + TITLE_HEIGHT + LEGEND_HEIGHT,
        dx=m - min_x,
        dy=m + TITLE_HEIGHT - min_y,
        node_w=w,
        node_h=h,
    )


def _clip(cx: float, cy: float, tx: float, ty: float, hw: float, hh: float) -> tuple[float, float]:
    """Point where the segment from a box centre towards (tx, ty) leaves the box."""
    dx, dy = tx - cx, ty - cy
    if dx == 0 and dy == 0:
        return cx, cy
    scale = min(hw / abs(dx) if dx else float("inf"), hh / abs(dy) if dy else float("inf"))
    return cx + dx * scale, cy + dy * scale


def _edge_segments(graph: Graph, canvas: Canvas) -> list[tuple[float, float, float, float]]:
    segments = []
    hw, hh = canvas.node_w / 2, canvas.node_h / 2
    for edge in graph.edges.values():
        src = graph.nodes.get(edge.source)
        dst = graph.nodes.get(edge.target)
        if src is None or dst is None or src.id == dst.id:
            continue
        sx, sy = canvas.center(src)
        tx, ty = canvas.center(dst)
        x1, y1 = _clip(sx, sy, tx, ty, hw, hh)
        x2, y2 = _clip(tx, ty, sx, sy, hw, hh)
        segments.append((x1, y1, x2, y2))
    return segments


def render_svg(graph: Graph, *, title: str = "", settings: Settings | None = None) -> str:
    """Render an SVG document of the canvas at its current positions."""
    settings = settings or Settings()
    canvas = measure_canvas(graph, settings)
    m = settings.export_margin

    def esc(s: str) -> str:
        return html.escape(s, quote=True)

    def bezier(x1: float, y1: float, x2: float, y2: float) -> str:
        # Bend along whichever axis the edge mostly travels
        if abs(x2 - x1) >= abs(y2 - y1):
            c = (x2 - x1) * 0.35
            return f"M {x1:.1f},{y1:.1f} C {x1 + c:.1f},{y1:.1f} {x2 - c:.1f},{y2:.1f} {x2:.1f},{y2:.1f}"
        c = (y2 - y1) * 0.35
        return f"M {x1:.1f},{y1:.1f} C {x1:.1f},{y1 + c:.1f} {x2:.1f},{y2 - c:.1f} {x2:.1f},{y2:.1f}"

    parts: list[str] = []
    parts.append(
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{canvas.width:.0f}" height="{canvas.height:.0f}" '
        f'viewBox="0 0 {canvas.width:.0f} {canvas.height:.0f}" style="background:{BG}">'
    )
    parts.append(
        "<defs>"
        '<marker id="arrow" viewBox="0 0 10 10" refX="10" refY="5" markerWidth="8" markerHeight="8" orient="auto-start-reverse">'
        f'<path d="M 0 0 L 10 5 L 0 10 z" fill="{EDGE_COLOR}"/>'
        "</marker>"
        "</defs>"
    )
    if title:
        parts.append(
            f'<text x="{m}" y="{m + TITLE_HEIGHT / 2:.1f}" fill="{TEXT_COLOR}" font-family="Helvetica" font-size="16" '
            f'dominant-baseline="middle">{esc(title)}</text>'
        )

    # Edges first (under nodes)
    parts.append('<g id="edges" fill="none" stroke-linecap="round">')
    for x1, y1, x2, y2 in _edge_segments(graph, canvas):
        parts.append(
            f'<path d="{bezier(x1, y1, x2, y2)}" stroke="{EDGE_COLOR}" stroke-width="2" marker-end="url(#arrow)"/>'
        )
    parts.append("</g>")

    parts.append('<g id="nodes">')
    for node in graph.nodes.values():
        x0, y0, x1, y1 = canvas.box(node)
        cx, cy = canvas.center(node)
        fill = KIND_COLORS[node.kind]
        parts.append(
            f'<rect data-id="{esc(node.id)}" x="{x0:.1f}" y="{y0:.1f}" width="{x1 - x0:.1f}" height="{y1 - y0:.1f}" '
            f'rx="12" ry="12" fill="{fill}" stroke="{BORDER}" stroke-width="2"/>'
        )
        parts.append(
            f'<text x="{cx:.1f}" y="{cy:.1f}" fill="{TEXT_COLOR}" font-family="Helvetica" font-size="14" '
            f'text-anchor="middle" dominant-baseline="middle">{esc(node.label)}</text>'
        )
    parts.append("</g>")

    # Legend
    ly = canvas.height - LEGEND_HEIGHT / 2
    parts.append('<g id="legend">')
    for i, kind in enumerate(NodeKind):
        x = m + i * LEGEND_ITEM_WIDTH
        parts.append(f'<rect x="{x}" y="{ly - 10:.1f}" width="10" height="10" fill="{KIND_COLORS[kind]}" stroke="{BORDER}"/>')
        parts.append(
            f'<text x="{x + 14}" y="{ly:.1f}" fill="{TEXT_COLOR}" font-family="Helvetica" font-size="11">{esc(kind.default_label)}</text>'
        )
    parts.append("</g>")

    parts.append("</svg>")
    return "\n".join(parts) + "\n"


def _arrow_head(x1: float, y1: float, x2: float, y2: float, size: float = 9.0) -> list[tuple[float, float]]:
    dx, dy = x2 - x1, y2 - y1
    length = (dx * dx + dy * dy) ** 0.5 or 1.0
    ux, uy = dx / length, dy / length
    bx, by = x2 - ux * size, y2 - uy * size
    px, py = -uy * size / 2, ux * size / 2
    return [(x2, y2), (bx + px, by + py), (bx - px, by - py)]


def render_png(graph: Graph, *, title: str = "", settings: Settings | None = None) -> bytes:
    """Rasterize the canvas to PNG bytes."""
    settings = settings or Settings()
    canvas = measure_canvas(graph, settings)
    m = settings.export_margin

    image = Image.new("RGB", (int(round(canvas.width)), int(round(canvas.height))), BG)
    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default()

    if title:
        # Centred in the band between the top margin and the first node row
        _, top, _, bottom = draw.textbbox((0, 0), title, font=font)
        draw.text((m, m + (TITLE_HEIGHT - (bottom - top)) / 2 - top), title, fill=TEXT_COLOR, font=font)

    for x1, y1, x2, y2 in _edge_segments(graph, canvas):
        draw.line([(x1, y1), (x2, y2)], fill=EDGE_COLOR, width=2)
        draw.polygon(_arrow_head(x1, y1, x2, y2), fill=EDGE_COLOR)

    for node in graph.nodes.values():
        box = canvas.box(node)
        draw.rounded_rectangle(box, radius=12, fill=KIND_COLORS[node.kind], outline=BORDER, width=2)
        cx, cy = canvas.center(node)
        left, top, right, bottom = draw.textbbox((0, 0), node.label, font=font)
        draw.text((cx - (right - left) / 2, cy - (bottom - top) / 2), node.label, fill=TEXT_COLOR, font=font)

    ly = canvas.height - LEGEND_HEIGHT / 2
    for i, kind in enumerate(NodeKind):
        x = m + i * LEGEND_ITEM_WIDTH
        draw.rectangle((x, ly - 10, x + 10, ly), fill=KIND_COLORS[kind], outline=BORDER)
        draw.text((x + 14, ly - 11), kind.default_label, fill=TEXT_COLOR, font=font)

    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def render_json(graph: Graph) -> str:
    payload = graph.to_dict()
    payload["exportedAt"] = utc_now_iso()
    return json.dumps(payload, indent=2) + "\n"


def export_filename(flow_name: str | None, fmt: str) -> str:
    return f"{slugify_filename(flow_name)}.{fmt}"


@dataclass
class ExportRequest:
    graph: Graph
    flow_name: str
    fmt: str
    out_dir: Path


class Exporter:
    """Writes canvas renderings to disk, one export at a time.

    A request made while another export is running takes the single pending
    slot (replacing any earlier pending request) and runs once the current
    one finishes.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self._lock = threading.Lock()
        self._busy = False
        self._pending: ExportRequest | None = None

    def render(self, graph: Graph, fmt: str, title: str = "") -> bytes:
        if fmt == "svg":
            return render_svg(graph, title=title, settings=self.settings).encode("utf-8")
        if fmt == "png":
            return render_png(graph, title=title, settings=self.settings)
        if fmt == "json":
            return render_json(graph).encode("utf-8")
        raise ValueError(f"Unknown export format {fmt!r} (expected one of {', '.join(FORMATS)})")

    def export(self, graph: Graph, flow_name: str, fmt: str = "png", out_dir: Path = Path(".")) -> Path | None:
        """Render ``graph`` and write ``<flow-name-slug>.<fmt>`` into ``out_dir``.

        Returns the written path, or None if the export failed or was queued
        behind one already in progress.
        """
        fmt = fmt.lower()
        if fmt not in FORMATS:
            raise ValueError(f"Unknown export format {fmt!r} (expected one of {', '.join(FORMATS)})")

        request = ExportRequest(graph=graph.copy(), flow_name=flow_name, fmt=fmt, out_dir=out_dir)
        with self._lock:
            if self._busy:
                self._pending = request
                logger.info("Export in progress; queued %s export of %r", fmt, flow_name)
                return None
            self._busy = True

        try:
            result = self._run(request)
            while True:
                with self._lock:
                    request, self._pending = self._pending, None
                    if request is None:
                        self._busy = False
                        break
                self._run(request)
        except BaseException:
            with self._lock:
                self._busy = False
                self._pending = None
            raise
        return result

    def _run(self, request: ExportRequest) -> Path | None:
        target = request.out_dir / export_filename(request.flow_name, request.fmt)
        try:
            data = self.render(request.graph, request.fmt, title=request.flow_name)
            request.out_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except Exception:
            logger.exception("Export to %s failed", target)
            return None
        logger.info("Exported %s (%d bytes)", target, len(data))
        return target
