"""HTML report generator — one page with a gallery card per diffed route."""

from __future__ import annotations

import base64
import html
import logging
import os
from pathlib import Path

from sitediff.models.diff_result import DiffResult, HeatmapCell, PerRouteResult

logger = logging.getLogger(__name__)


def _embed_image(path: str) -> str:
    """Read an image file and return a base64 data URI, or empty string on failure."""
    try:
        p = Path(path)
        if not p.exists() or p.stat().st_size == 0:
            return ""
        with open(p, "rb") as f:
            data = base64.b64encode(f.read()).decode()
        return f"data:image/png;base64,{data}"
    except OSError:
        return ""


def _relative(path: str, root: Path) -> str:
    return Path(os.path.relpath(path, root)).as_posix()


def _image_src(path: str, root: Path, embed: bool) -> str:
    if embed:
        data_uri = _embed_image(path)
        if data_uri:
            return data_uri
    return html.escape(_relative(path, root))


def _chip(passed: bool) -> str:
    if passed:
        return '<span class="chip pass">PASS</span>'
    return '<span class="chip fail">FAIL</span>'


def _build_heatmap_grid(heatmap: list[HeatmapCell], cols: int = 4) -> str:
    """Render the heatmap as a grid of cells shaded by change ratio."""
    cells = ""
    for cell in heatmap:
        alpha = min(1.0, cell.ratio * 4) if cell.ratio else 0.0
        cells += (f'<div class="hm-cell" title="{html.escape(cell.cell)}: {cell.ratio:.2%}" '
                  f'style="background: rgba(239, 68, 68, {alpha:.2f});">{cell.ratio:.0%}</div>')
    return f'<div class="heatmap" style="grid-template-columns: repeat({cols}, 1fr);">{cells}</div>'


def _build_route_card(r: PerRouteResult, threshold: float, root: Path, embed: bool = False) -> str:
    """Build the HTML card for a single route."""
    passed = r.diff_ratio <= threshold
    border_color = "#22c55e" if passed else "#ef4444"

    card = f'''
    <div class="route-card" id="route-{html.escape(Path(r.summary_path).parent.name)}">
      <div class="route-header" style="border-left: 4px solid {border_color};">
        {_chip(passed)}
        {'<span class="chip degraded">RENDER FALLBACK</span>' if r.degraded else ''}
        <strong>{html.escape(r.route)}</strong>
        <span class="route-meta">{r.diff_ratio:.2%} changed</span>
        <a class="route-link" href="{html.escape(_relative(str(Path(r.summary_path).parent / "metrics.json"), root))}">metrics.json</a>
        <a class="route-link" href="{html.escape(_relative(r.summary_path, root))}">summary.json</a>
      </div>
    '''

    if r.degraded:
        card += ('<div class="degraded-banner"><strong>Render failed:</strong> '
                 'the staged page could not be captured, so the baseline was reused as the actual '
                 'image. The ratio shown is not a real comparison.</div>')

    card += '<div class="gallery">'
    for label, path in (("Baseline", r.artifacts.baseline),
                        ("Actual", r.artifacts.actual),
                        ("Diff", r.artifacts.diff)):
        card += f'''
        <figure class="gallery-item">
          <img src="{_image_src(path, root, embed)}" alt="{label}" loading="lazy" onclick="this.classList.toggle('zoomed')"/>
          <figcaption>{label}</figcaption>
        </figure>'''
    card += '</div>'

    card += '<div class="attribution">'
    if r.heatmap:
        card += f'<div class="section"><h4>Heatmap</h4>{_build_heatmap_grid(r.heatmap)}</div>'
    if r.dom_zones:
        rows = ""
        for z in r.dom_zones:
            rows += (f"<tr><td><code>{html.escape(z.selector)}</code></td>"
                     f"<td>{html.escape(z.label)}</td><td>{z.diff_ratio:.2%}</td></tr>")
        card += ('<div class="section"><h4>Top DOM zones</h4><table class="zones">'
                 f'<tr><th>Selector</th><th>Label</th><th>Changed</th></tr>{rows}</table></div>')
    card += '</div>'

    card += '</div>'
    return card


def generate_html_report(
    result: DiffResult,
    threshold: float,
    output_path: Path,
    embed_images: bool = False,
) -> None:
    """Write the aggregate report for a diff run next to its route folders."""
    root = output_path.parent
    cards = "".join(_build_route_card(r, threshold, root, embed_images) for r in result.per_route)
    if not cards:
        cards = '<p class="empty">No routes had a readable baseline.</p>'
    s = result.summary

    report_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Visual Diff &mdash; {html.escape(result.diff_id)}</title>
<style>
  :root {{ --pass: #22c55e; --fail: #ef4444; --warn: #eab308; --bg: #f8fafc; --card: white; --border: #e2e8f0; --text: #1e293b; --muted: #64748b; }}
  * {{ margin: 0; padding: 0; box-sizing: border-box; }}
  body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--text); line-height: 1.6; padding: 1.5rem; }}
  .container {{ max-width: 1400px; margin: 0 auto; }}
  h1 {{ font-size: 1.8rem; margin-bottom: 0.3rem; }}
  .meta {{ color: var(--muted); margin-bottom: 1.5rem; font-size: 0.9rem; }}
  .summary {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(130px, 1fr)); gap: 0.8rem; margin-bottom: 1.5rem; }}
  .stat {{ background: var(--card); border-radius: 8px; padding: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); text-align: center; }}
  .stat .value {{ font-size: 1.8rem; font-weight: 700; }}
  .stat .label {{ font-size: 0.8rem; color: var(--muted); }}
  .stat.pass .value {{ color: var(--pass); }}
  .stat.fail .value {{ color: var(--fail); }}
  .chip {{ display: inline-block; padding: 0.15rem 0.55rem; border-radius: 9999px; font-size: 0.7rem; font-weight: 600; white-space: nowrap; }}
  .chip.pass {{ background: #dcfce7; color: #166534; }}
  .chip.fail {{ background: #fecaca; color: #991b1b; }}
  .chip.degraded {{ background: #fef3c7; color: #92400e; border: 1px dashed #f59e0b; }}
  .route-card {{ background: var(--card); border-radius: 8px; margin-bottom: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); overflow: hidden; padding-bottom: 0.8rem; }}
  .route-header {{ display: flex; align-items: center; gap: 0.6rem; flex-wrap: wrap; padding: 0.7rem 1rem; }}
  .route-meta {{ font-size: 0.8rem; color: var(--muted); }}
  .route-link {{ font-size: 0.8rem; color: #6366f1; }}
  .degraded-banner {{ background: #fefce8; border: 1px solid #fde68a; color: #92400e; border-radius: 6px; padding: 0.6rem 0.8rem; margin: 0 1rem 0.8rem; font-size: 0.88rem; }}
  .gallery {{ display: grid; grid-template-columns: repeat(3, 1fr); gap: 0.6rem; padding: 0 1rem; }}
  .gallery-item {{ text-align: center; }}
  .gallery-item img {{ width: 100%; max-height: 480px; object-fit: cover; object-position: top; border-radius: 6px; border: 1px solid var(--border); cursor: pointer; }}
  .gallery-item img.zoomed {{ position: fixed; top: 5%; left: 5%; width: 90%; height: 90%; max-height: none; object-fit: contain; z-index: 1000; background: rgba(0,0,0,0.85); border: none; border-radius: 8px; padding: 1rem; }}
  figcaption {{ font-size: 0.75rem; color: var(--muted); margin-top: 0.2rem; }}
  .attribution {{ display: grid; grid-template-columns: 240px 1fr; gap: 1rem; padding: 0.8rem 1rem 0; }}
  .section h4 {{ font-size: 0.85rem; color: var(--muted); text-transform: uppercase; letter-spacing: 0.05em; margin-bottom: 0.4rem; padding-bottom: 0.25rem; border-bottom: 1px solid var(--border); }}
  .heatmap {{ display: grid; gap: 2px; }}
  .hm-cell {{ aspect-ratio: 1; display: flex; align-items: center; justify-content: center; font-size: 0.7rem; border: 1px solid var(--border); border-radius: 3px; }}
  table.zones {{ width: 100%; border-collapse: collapse; font-size: 0.82rem; }}
  table.zones th, table.zones td {{ text-align: left; padding: 0.25rem 0.4rem; border-bottom: 1px solid #f1f5f9; }}
  table.zones code {{ background: #f1f5f9; padding: 0.1rem 0.3rem; border-radius: 3px; font-size: 0.78rem; }}
  .empty {{ color: var(--muted); }}
</style>
</head>
<body>
<div class="container">
  <h1>Visual Diff Report</h1>
  <p class="meta">Diff: {html.escape(result.diff_id)} &middot; Job: {html.escape(result.job_id)} &middot; Threshold: {threshold:.2%}</p>

  <div class="summary">
    <div class="stat"><div class="value">{len(result.per_route)}</div><div class="label">Routes</div></div>
    <div class="stat pass"><div class="value">{s.passed}</div><div class="label">Passed</div></div>
    <div class="stat fail"><div class="value">{s.failed}</div><div class="label">Failed</div></div>
    <div class="stat"><div class="value">{s.avg:.2%}</div><div class="label">Average Diff</div></div>
  </div>

  <div id="route-list">
    {cards}
  </div>
</div>
</body>
</html>'''

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_html)
    logger.debug("Wrote HTML report to %s", output_path)
