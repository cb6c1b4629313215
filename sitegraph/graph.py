"""
Graph Builder
=============
Turns the final result set into a node/edge graph and a standalone
vis-network visualization page.

Rules:
- one node per result; the first occurrence of a URL wins
- edge a→b for every link of a that equals the URL of another result b
- self links, links outside the result set and duplicate edges are dropped
"""

from __future__ import annotations

import html
import json
import logging
from typing import Dict, Iterable, Sequence, Set, Tuple

from .classifier import color_for
from .models import NetworkEdge, NetworkGraph, NetworkNode, PageResult
from .utils import truncate

logger = logging.getLogger(__name__)

LABEL_MAX_CHARS = 40


def build_graph(results: Iterable[PageResult]) -> NetworkGraph:
    graph = NetworkGraph()
    by_url: Dict[str, PageResult] = {}
    for result in results:
        if result.url in by_url:
            continue
        by_url[result.url] = result
        graph.nodes.append(NetworkNode(
            id=result.id,
            label=truncate(result.title or result.url, LABEL_MAX_CHARS),
            color=color_for(result.page_type),
            type=result.page_type.value,
            url=result.url,
            title=result.title,
            screenshot=result.screenshot_ref,
        ))

    seen: Set[Tuple[str, str]] = set()
    for source in by_url.values():
        for link in source.links:
            target = by_url.get(link)
            if target is None or target.id == source.id:
                continue
            key = (source.id, target.id)
            if key in seen:
                continue
            seen.add(key)
            graph.edges.append(NetworkEdge(from_id=source.id, to_id=target.id))

    logger.debug(f"[GRAPH] {len(graph.nodes)} nodes, {len(graph.edges)} edges")
    return graph


def _embed_json(payload) -> str:
    # Keep "</script>" inside titles from closing the script block
    return json.dumps(payload, ensure_ascii=False).replace("</", "<\\/")


def render_visualization_html(graph: NetworkGraph, results: Sequence[PageResult],
                              site_title: str = "Website Structure Analysis") -> str:
    """Self-contained HTML page rendering ``graph`` with vis-network."""
    total_links = sum(len(r.links) for r in results)
    total_images = sum(len(r.images) for r in results)
    page_rows = "\n".join(
        f'        <div class="page-info"><strong>{html.escape(r.title)}</strong>'
        f' <span class="type">{r.page_type.value}</span><br>'
        f'<a href="{html.escape(r.url, quote=True)}">{html.escape(r.url)}</a></div>'
        for r in results
    )
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{html.escape(site_title)}</title>
    <script src="https://unpkg.com/vis-network/standalone/umd/vis-network.min.js"></script>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 0; padding: 20px; }}
        #network {{ height: 600px; border: 1px solid #ccc; }}
        .info-panel {{ margin-top: 20px; padding: 15px; background: #f5f5f5; border-radius: 8px; }}
        .page-info {{ margin: 10px 0; padding: 10px; background: white; border-radius: 4px; }}
        .type {{ color: #6b7280; font-size: 12px; }}
    </style>
</head>
<body>
    <h1>{html.escape(site_title)}</h1>
    <div id="network"></div>
    <div class="info-panel">
        <h3>Analysis Summary</h3>
        <p><strong>Total Pages:</strong> {len(results)}</p>
        <p><strong>Total Links:</strong> {total_links}</p>
        <p><strong>Total Images:</strong> {total_images}</p>
    </div>
    <div class="info-panel">
{page_rows}
    </div>
    <script>
        const nodes = new vis.DataSet({_embed_json([n.to_dict() for n in graph.nodes])});
        const edges = new vis.DataSet({_embed_json([e.to_dict() for e in graph.edges])});
        const container = document.getElementById('network');
        const options = {{
            nodes: {{ shape: 'dot', size: 20, font: {{ size: 12 }} }},
            edges: {{ arrows: 'to', smooth: {{ type: 'continuous' }} }},
            physics: {{ stabilization: {{ iterations: 150 }} }}
        }};
        const network = new vis.Network(container, {{ nodes: nodes, edges: edges }}, options);
        network.on('doubleClick', (params) => {{
            if (params.nodes.length) {{
                const node = nodes.get(params.nodes[0]);
                if (node && node.url) window.open(node.url, '_blank');
            }}
        }});
    </script>
</body>
</html>
"""
