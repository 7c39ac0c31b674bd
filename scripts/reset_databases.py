#!/usr/bin/env python3
"""Delete one campaign's graph and search-index data.

Removes every Neo4j node of the campaign (entities, documents, notes and their
edges) and every Qdrant chunk tagged with the campaign id. Asks for
confirmation unless --force is given.

Usage:
    python scripts/reset_databases.py --campaign my-campaign [--force]
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from rich.prompt import Confirm

from lorekeeper.storage.neo4j_manager import Neo4jGraphStore
from lorekeeper.storage.qdrant_manager import QdrantIndex
from lorekeeper.utils.config import Config, load_config
from lorekeeper.utils.logging_setup import configure_logging


def reset_neo4j(config: Config, campaign_id: str) -> bool:
    logger.info("Clearing campaign {} from Neo4j...", campaign_id)
    store = Neo4jGraphStore(config.database)
    try:
        store.connect()
        store.clear_campaign(campaign_id)
        return True
    except Exception as e:
        logger.error(f"Neo4j reset failed: {e}")
        return False
    finally:
        store.close()


def reset_qdrant(config: Config, campaign_id: str) -> bool:
    logger.info("Clearing campaign {} from Qdrant...", campaign_id)
    try:
        with QdrantIndex(config.database, collection=config.indexing.collection_name) as index:
            if index.collection_exists():
                index.delete_campaign(campaign_id)
        return True
    except Exception as e:
        logger.error(f"Qdrant reset failed: {e}")
        return False


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Delete ALL data of one campaign from Neo4j and Qdrant.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--campaign", required=True, help="Campaign id to clear")
    parser.add_argument("--force", action="store_true", help="Skip confirmation prompt.")
    parser.add_argument("--config", "-c", default="config/config.yaml", help="Config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    try:
        config = load_config(args.config, validate=False)
    except Exception as e:
        logger.error(f"Could not load configuration: {e}")
        return 1
    configure_logging(config.logging, verbose=args.verbose)

    if not args.force:
        print(f"\nThis will DELETE ALL DATA of campaign '{args.campaign}'. It cannot be undone.\n")
        if not Confirm.ask("Are you sure you want to continue?"):
            logger.info("Reset aborted by user.")
            return 0

    neo4j_ok = reset_neo4j(config, args.campaign)
    qdrant_ok = reset_qdrant(config, args.campaign)
    if neo4j_ok and qdrant_ok:
        logger.success("Campaign {} has been reset", args.campaign)
        return 0
    logger.error("Campaign reset failed. Check logs above for details.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
