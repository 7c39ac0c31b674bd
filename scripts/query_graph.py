#!/usr/bin/env python3
"""Print a campaign's entity graph (or a neighbourhood of one entity).

Usage:
    python scripts/query_graph.py --campaign c1
    python scripts/query_graph.py --campaign c1 --center <entity-id> --depth 1
    python scripts/query_graph.py --campaign c1 --type npc --players
    python scripts/query_graph.py --campaign c1 --source legacy-notes --json
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from rich.console import Console
from rich.table import Table

from lorekeeper.retrieval import GraphQuery, GraphQueryService, GraphResponse, get_type_color
from lorekeeper.storage.neo4j_manager import Neo4jGraphStore
from lorekeeper.utils.config import load_config
from lorekeeper.utils.logging_setup import configure_logging

console = Console()


def print_graph(response: GraphResponse) -> None:
    names = {node.id: node.name for node in response.graph_data.nodes}

    nodes = Table(title=f"Nodes ({response.stats.total_nodes})")
    nodes.add_column("Name", style="bold")
    nodes.add_column("Type")
    for node in response.graph_data.nodes:
        nodes.add_row(node.name, f"[{get_type_color(node.type)}]{node.type}[/]")
    console.print(nodes)

    links = Table(title=f"Links ({response.stats.total_links})")
    links.add_column("Source")
    links.add_column("Label")
    links.add_column("Target")
    for link in response.graph_data.links:
        source = names.get(link.source, link.source)
        links.add_row(source, link.label, names.get(link.target, link.target))
    console.print(links)


def main() -> int:
    parser = argparse.ArgumentParser(description="Query a campaign knowledge graph")
    parser.add_argument("--campaign", required=True, help="Campaign id")
    parser.add_argument("--source", choices=["entities", "legacy-notes"], default="entities")
    parser.add_argument("--center", default=None, help="Entity id to center on")
    parser.add_argument("--depth", type=int, default=None, help="Hops from the center")
    parser.add_argument("--type", default=None, help="Only include this entity type")
    parser.add_argument("--players", action="store_true", help="Hide DM-only entities")
    parser.add_argument("--json", action="store_true", help="Print the raw JSON payload")
    parser.add_argument("--config", "-c", default="config/config.yaml", help="Config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    config = load_config(args.config, validate=False)
    configure_logging(config.logging, verbose=args.verbose)

    store = Neo4jGraphStore(config.database)
    try:
        store.connect()
        service = GraphQueryService(store, max_nodes=config.graph.max_nodes)
        query = GraphQuery(
            source=args.source,
            center=args.center,
            depth=args.depth if args.depth is not None else config.graph.default_depth,
            type=args.type,
        )
        response = service.query(args.campaign, query, include_private=not args.players)
    except Exception as e:
        logger.error(f"Graph query failed: {e}")
        return 1
    finally:
        store.close()

    if args.json or not isinstance(response, GraphResponse):
        console.print_json(response.model_dump_json(by_alias=True))
    else:
        print_graph(response)
    return 0


if __name__ == "__main__":
    sys.exit(main())
