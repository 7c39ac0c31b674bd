#!/usr/bin/env python3
"""Extract entities and relationships from a text document into a campaign.

Runs the extraction pipeline, prints the staged candidates and possible
duplicates, and optionally commits everything in one batch.

Usage:
    python scripts/extract_document.py notes.md --campaign my-campaign
    python scripts/extract_document.py notes.md --campaign c1 --approve-all --merge-exact
    python scripts/extract_document.py notes.md --campaign c1 --dry-run --approve-all

Options:
    --campaign: Campaign id the document belongs to
    --language: Output language code (default: en)
    --aggressiveness: conservative | balanced | obsessive (default from config)
    --approve-all: Commit every staged candidate after extraction
    --merge-exact: Merge candidates with an exact existing match instead of creating
    --settings: YAML file with per-campaign overrides (extraction, visibility, graph,
        prompts sections) merged onto the config defaults
    --dry-run: Use an in-memory store (nothing is written to Neo4j or Qdrant)
    --config, -c: Path to config file (default: config/config.yaml)
    --verbose, -v: Enable verbose logging
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

import yaml
from loguru import logger
from rich.console import Console
from rich.table import Table

from lorekeeper.curation import BatchCommitService, ExistingEntityMatcher, ReviewSession
from lorekeeper.extraction.models import ExtractionProgress
from lorekeeper.pipeline import run_extraction
from lorekeeper.storage import GraphStore, InMemoryGraphStore
from lorekeeper.utils.config import Config, WorkspaceSettings, load_config, resolve_settings
from lorekeeper.utils.logging_setup import configure_logging

console = Console()


def build_store(config: Config, *, dry_run: bool) -> GraphStore:
    if dry_run:
        return InMemoryGraphStore()
    from lorekeeper.storage.neo4j_manager import Neo4jGraphStore

    store = Neo4jGraphStore(config.database)
    store.connect()
    return store


def build_indexer(config: Config, *, dry_run: bool):
    if dry_run or not config.indexing.enabled:
        return None
    from lorekeeper.indexing import EntityIndexer
    from lorekeeper.storage.qdrant_manager import QdrantIndex
    from lorekeeper.utils.embeddings import EmbeddingGenerator

    index = QdrantIndex(config.database, collection=config.indexing.collection_name)
    return EntityIndexer(index, EmbeddingGenerator(config.database), config.indexing)


def load_workspace_settings(config: Config, path: Optional[str]) -> WorkspaceSettings:
    overrides = None
    if path:
        with open(path, "r", encoding="utf-8") as f:
            overrides = yaml.safe_load(f) or {}
        if not isinstance(overrides, dict):
            raise ValueError(f"Campaign settings file {path} must contain a mapping")
    return resolve_settings(config.workspace_defaults(), overrides)


def print_candidates(session: ReviewSession, matches) -> None:
    matched = {m.staged_temp_id: m for m in matches}
    table = Table(title="Staged entities")
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Aliases")
    table.add_column("Existing match")
    for entity in session.entities:
        match = matched.get(entity.temp_id)
        table.add_row(
            entity.name,
            entity.entity_type,
            ", ".join(entity.aliases),
            f"{match.existing_entity.name} ({match.match_type})" if match else "",
        )
    console.print(table)
    console.print(f"[dim]{len(session.relationships)} staged relationships[/dim]")


async def run(args: argparse.Namespace, config: Config) -> int:
    path = Path(args.file)
    content = path.read_text(encoding="utf-8")
    store = build_store(config, dry_run=args.dry_run)

    def on_progress(progress: ExtractionProgress) -> None:
        console.print(f"[blue]{progress.stage}[/blue] {progress.message}")

    workspace = load_workspace_settings(config, args.settings)
    settings = workspace.extraction
    if args.aggressiveness:
        settings = settings.model_copy(update={"aggressiveness": args.aggressiveness})

    result = await run_extraction(
        content,
        path.name,
        store.list_entity_names(args.campaign),
        args.language,
        on_progress,
        settings,
        llm_config=config.llm,
        custom_prompts=workspace.prompts,
    )
    console.print(f"[bold green]{result.summary}[/bold green]")

    session = ReviewSession.from_extraction(
        result,
        default_dm_only=workspace.visibility.default_dm_only,
        dm_only_entity_types=workspace.visibility.dm_only_entity_types,
        confidence=config.curation.staged_confidence,
        excerpt_length=config.curation.excerpt_length,
    )
    matches = ExistingEntityMatcher(store.list_entities(args.campaign)).match(session.entities)
    print_candidates(session, matches)

    if not args.approve_all or not session.entities:
        return 0

    if args.merge_exact:
        for match in matches:
            if match.match_type == "exact":
                session.set_merge_target(match.staged_temp_id, match.existing_entity.id)
    session.approve_all_pending()

    indexer = build_indexer(config, dry_run=args.dry_run)
    service = BatchCommitService(
        store, config.curation, index_entity=indexer.sync_entity if indexer else None
    )
    response = await service.commit(
        args.campaign, session.build_commit_request(path.name, content)
    )
    console.print(
        f"[bold]Committed:[/bold] {response.summary}, "
        f"{response.created_relationships} relationships, "
        f"index {response.embeddings_status.succeeded}/{response.embeddings_status.total}"
    )
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Extract a campaign knowledge graph from a text document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("file", help="Plain-text or markdown document")
    parser.add_argument("--campaign", required=True, help="Campaign id")
    parser.add_argument("--language", default="en", help="Output language code")
    parser.add_argument(
        "--aggressiveness", choices=["conservative", "balanced", "obsessive"], default=None
    )
    parser.add_argument("--approve-all", action="store_true", help="Commit all candidates")
    parser.add_argument("--merge-exact", action="store_true", help="Merge exact matches")
    parser.add_argument("--settings", default=None, help="Per-campaign settings YAML")
    parser.add_argument("--dry-run", action="store_true", help="Use an in-memory store")
    parser.add_argument("--config", "-c", default="config/config.yaml", help="Config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except Exception as e:
        logger.error(f"Could not load configuration: {e}")
        return 1
    configure_logging(config.logging, verbose=args.verbose)

    try:
        return asyncio.run(run(args, config))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception as e:
        logger.exception(f"Extraction failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
