"""
Mind Map Layout Engine
Asks the LLM for a node/edge graph of the analyses and lays it out left to right
"""

import json
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional

import networkx as nx

from clarity.config.settings import LLM_CONFIG
from clarity.errors import MindMapGenerationFailed
from clarity.llm.generate import generate_chatbot_response
from clarity.llm.prompts import MINDMAP_PROMPT, build_mindmap_prompt
from clarity.models import AnalysisResult, MindMapData, MindMapEdge, MindMapNode, Position
from clarity.tools.utils import Logger

NODE_TYPES = ('central', 'main', 'sub', 'action', 'insight')

# (width, height) per node type
NODE_SIZES = {
    'central': (280, 100),
    'main': (220, 80),
    'action': (200, 70),
    'insight': (200, 70),
    'sub': (180, 60),
}

RANK_SEP = 120
NODE_SEP = 50
JITTER = 20

GraphGenerator = Callable[[List[AnalysisResult], str], Awaitable[Any]]


# ============================================================================
# Graph description
# ============================================================================

def parse_json_response(content: str) -> Any:
    """
    Parse a JSON object out of an LLM answer

    Code fences and text around the outermost braces are ignored.
    """
    content = content.strip()
    if '```' in content:
        parts = content.split('```')
        if len(parts) >= 2:
            content = parts[1]
            if content.startswith('json'):
                content = content[4:]
            content = content.strip()

    start = content.find('{')
    end = content.rfind('}')
    if start != -1 and end > start:
        content = content[start:end + 1]

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise MindMapGenerationFailed(f"Invalid mind map data received: {e}")


def parse_mind_map(raw: Any) -> MindMapData:
    """
    Normalise a graph description into MindMapData

    Unknown node types become "sub", repeated node ids keep their first
    occurrence, edges to unknown nodes are dropped and edge ids are generated
    where missing or repeated.
    """
    if not isinstance(raw, dict):
        raise MindMapGenerationFailed("Invalid mind map data received")

    nodes: List[MindMapNode] = []
    node_ids = set()
    for item in raw.get('nodes') or []:
        if not isinstance(item, dict) or item.get('id') in (None, ''):
            continue
        node_id = str(item['id'])
        if node_id in node_ids:
            continue
        # Some answers nest display fields under "data"
        data = item.get('data') if isinstance(item.get('data'), dict) else {}
        node_type = item.get('type') if item.get('type') in NODE_TYPES else 'sub'
        nodes.append(MindMapNode(
            id=node_id,
            label=str(item.get('label') or data.get('label') or node_id),
            description=item.get('description') or data.get('description'),
            icon=item.get('icon') or data.get('icon'),
            color=item.get('color') or data.get('color'),
            type=node_type,
        ))
        node_ids.add(node_id)

    if not nodes:
        raise MindMapGenerationFailed("The mind map contained no nodes")

    edges: List[MindMapEdge] = []
    edge_ids = set()
    for item in raw.get('edges') or []:
        if not isinstance(item, dict):
            continue
        source, target = str(item.get('source')), str(item.get('target'))
        if source not in node_ids or target not in node_ids:
            continue
        edge_id = str(item.get('id') or f"e-{source}-{target}")
        suffix = 1
        base_id = edge_id
        while edge_id in edge_ids:
            suffix += 1
            edge_id = f"{base_id}-{suffix}"
        edges.append(MindMapEdge(
            id=edge_id,
            source=source,
            target=target,
            label=item.get('label'),
            animated=bool(item.get('animated', False)),
        ))
        edge_ids.add(edge_id)

    return MindMapData(nodes=nodes, edges=edges)


async def generate_mind_map_graph(results: List[AnalysisResult], title: str) -> Any:
    """Ask the LLM for a graph description of the analyses"""
    content = await generate_chatbot_response(
        system_prompt=MINDMAP_PROMPT,
        user_message=build_mindmap_prompt(results, title),
        temperature=LLM_CONFIG['mindmap_temperature'],
        max_tokens=LLM_CONFIG['mindmap_max_tokens'],
    )
    return parse_json_response(content)


# ============================================================================
# Layout
# ============================================================================

def break_cycles(graph: nx.DiGraph) -> nx.DiGraph:
    """Copy of graph with the closing edge of every cycle removed"""
    acyclic = graph.copy()
    while not nx.is_directed_acyclic_graph(acyclic):
        cycle = nx.find_cycle(acyclic)
        acyclic.remove_edge(*cycle[-1][:2])
    return acyclic


def assign_ranks(graph: nx.DiGraph) -> Dict[str, int]:
    """Rank nodes from left to right by longest path from a root"""
    generations = nx.topological_generations(break_cycles(graph))
    return {node: rank for rank, generation in enumerate(generations) for node in generation}


def grid_step(grid: Dict[str, Any], layers: Dict[int, List[str]]) -> float:
    """Distance between neighbouring slots after networkx rescales the grid"""
    first = layers[0]
    if len(layers) > 1:
        return abs(grid[layers[1][0]][0] - grid[first[0]][0])
    if len(first) > 1:
        return abs(grid[first[1]][1] - grid[first[0]][1])
    return 1.0


class MindMapLayoutEngine:
    """
    Builds a positioned mind map from analysis results

    Args:
        generator: Coroutine returning the raw graph description
        jitter: Bound of the random vertical offset applied to each node
        seed: Seed for the jitter; None gives a different layout each run
    """

    def __init__(
        self,
        generator: Optional[GraphGenerator] = None,
        jitter: float = JITTER,
        seed: Optional[int] = None,
    ):
        if jitter * 2 >= NODE_SEP:
            raise ValueError("jitter must stay below half the node gap")
        self.generator = generator or generate_mind_map_graph
        self.jitter = jitter
        self.rng = random.Random(seed)

    async def generate(self, results: List[AnalysisResult], title: str) -> MindMapData:
        """Generate and lay out a fresh mind map"""
        if not results:
            raise MindMapGenerationFailed("No analysis results to build a mind map from")

        Logger.info(f"Generating mind map for \"{title}\" from {len(results)} analyses...")
        raw = await self.generator(results, title)
        data = parse_mind_map(raw)
        laid_out = self.layout(data)
        Logger.success(f"Mind map ready: {len(laid_out.nodes)} nodes, {len(laid_out.edges)} edges")
        return laid_out

    def build_graph(self, data: MindMapData) -> nx.DiGraph:
        graph = nx.DiGraph()
        for node in data.nodes:
            width, height = NODE_SIZES.get(node.type, NODE_SIZES['sub'])
            graph.add_node(node.id, width=width, height=height)
        for edge in data.edges:
            if edge.source != edge.target:
                graph.add_edge(edge.source, edge.target)
        return graph

    def layout(self, data: MindMapData) -> MindMapData:
        """
        Assign non-overlapping positions

        Returns a new MindMapData; node and edge identities are unchanged.
        Positions are the top-left corner of each node.
        """
        graph = self.build_graph(data)
        ranks = assign_ranks(graph)

        # Depth-first order keeps siblings next to each other within a rank
        layers: Dict[int, List[str]] = {}
        for node_id in nx.dfs_preorder_nodes(graph):
            layers.setdefault(ranks[node_id], []).append(node_id)
        layers = dict(sorted(layers.items()))

        grid = nx.multipartite_layout(graph, subset_key=layers, align='vertical')
        step = grid_step(grid, layers)
        column = max(w for _, w in graph.nodes(data='width')) + RANK_SEP
        row = max(h for _, h in graph.nodes(data='height')) + NODE_SEP

        nodes = []
        for node in data.nodes:
            width = graph.nodes[node.id]['width']
            height = graph.nodes[node.id]['height']
            grid_x, grid_y = grid[node.id]
            offset = self.rng.uniform(-self.jitter, self.jitter)
            position = Position(
                x=float(grid_x / step * column - width / 2),
                y=float(grid_y / step * row - height / 2 + offset),
            )
            nodes.append(node.model_copy(update={'position': position}))

        edges = [edge.model_copy() for edge in data.edges]
        return MindMapData(nodes=nodes, edges=edges)
