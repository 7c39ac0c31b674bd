#!/usr/bin/env python3
"""Initialize the Neo4j graph store and the Qdrant entity index.

Creates constraints, indexes and the entity chunk collection. Safe to run
repeatedly.

Usage:
    python scripts/setup_databases.py [--config config/config.yaml] [--recreate-qdrant]

Environment variables:
    NEO4J_URI - Neo4j connection URI (default: bolt://localhost:7687)
    NEO4J_USER - Neo4j username (default: neo4j)
    NEO4J_PASSWORD - Neo4j password
    QDRANT_HOST - Qdrant host (default: localhost)
    QDRANT_PORT - Qdrant port (default: 6333)
    QDRANT_API_KEY - Qdrant API key (optional)
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from lorekeeper.storage.neo4j_manager import Neo4jGraphStore
from lorekeeper.storage.qdrant_manager import QdrantIndex
from lorekeeper.utils.config import Config, load_config
from lorekeeper.utils.logging_setup import configure_logging


def setup_neo4j(config: Config) -> bool:
    logger.info("Setting up Neo4j database...")
    store = Neo4jGraphStore(config.database)
    try:
        store.connect()
        store.create_schema()
        if store.health_check():
            logger.success("Neo4j setup completed successfully")
            return True
        logger.error("Neo4j health check failed after setup")
        return False
    except Exception as e:
        logger.error(f"Neo4j setup failed: {e}")
        return False
    finally:
        store.close()


def setup_qdrant(config: Config, *, recreate: bool = False) -> bool:
    logger.info("Setting up Qdrant entity index...")
    try:
        with QdrantIndex(config.database, collection=config.indexing.collection_name) as index:
            index.create_collection(recreate=recreate)
            is_healthy, message = index.health_check()
            if is_healthy:
                logger.success("Qdrant setup completed successfully")
                return True
            logger.error(f"Qdrant health check failed: {message}")
            return False
    except Exception as e:
        logger.error(f"Qdrant setup failed: {e}")
        return False


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Initialize Neo4j constraints and the Qdrant entity collection.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", "-c", default="config/config.yaml", help="Config file")
    parser.add_argument(
        "--recreate-qdrant",
        action="store_true",
        help="Drop and recreate the Qdrant collection (use after embedding model changes).",
    )
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

    neo4j_ok = setup_neo4j(config)
    qdrant_ok = setup_qdrant(config, recreate=args.recreate_qdrant)
    if neo4j_ok and qdrant_ok:
        logger.success("All databases set up")
        return 0
    logger.error("Database setup failed. Check logs above for details.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
