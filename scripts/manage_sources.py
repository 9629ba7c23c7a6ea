"""Source management entrypoint.

This script indexes a source (PDF URL, raw text or website), removes a
source's vectors, or asks a question against the configured collection,
printing the JSON result of each operation.
"""

from __future__ import annotations

import argparse
import json
import sys
import uuid
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from knowledge_rag.app.container import build_container
from knowledge_rag.common.errors import KnowledgeRAGError
from knowledge_rag.common.schemas import Source
from knowledge_rag.config import GlobalConfig, configure_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage knowledge sources in the RAG collection")

    parser.add_argument(
        "--config-file",
        "-c",
        required=True,
        type=str,
        help="Path to the YAML configuration file.",
    )

    parser.add_argument(
        "--collection-name",
        required=False,
        type=str,
        default=None,
        help="Override the vector collection name from config (optional).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Index a source.")
    ingest.add_argument(
        "--type",
        "-t",
        required=True,
        choices=["pdf", "text", "url"],
        help="Source type.",
    )
    ingest.add_argument(
        "--content",
        required=True,
        type=str,
        help="PDF URL, raw text, or website start URL. Use '@path' to read text from a file.",
    )
    ingest.add_argument("--name", "-n", required=False, type=str, default=None, help="Display name.")
    ingest.add_argument(
        "--source-id",
        "-s",
        required=False,
        type=str,
        default=None,
        help="Source id (a random UUID when omitted).",
    )

    deindex = subparsers.add_parser("deindex", help="Remove every vector of a source.")
    deindex.add_argument("--source-id", "-s", required=True, type=str, help="Source id to remove.")

    query = subparsers.add_parser("query", help="Ask a question.")
    query.add_argument("--query", "-q", required=True, type=str, help="Question text.")

    return parser.parse_args(argv)


def _override_collection_name(cfg: GlobalConfig, cli_value: str | None) -> None:
    if not cli_value:
        return

    vector_store = cfg.raw.get("vector_store")
    if not isinstance(vector_store, dict):
        raise TypeError("'vector_store' config must be a mapping to override collection_name.")
    vector_store["collection_name"] = cli_value


def _read_content(value: str) -> str:
    if value.startswith("@"):
        return Path(value[1:]).expanduser().read_text(encoding="utf-8")
    return value


def run(args: argparse.Namespace) -> dict:
    cfg = GlobalConfig.load(args.config_file)
    configure_logging(cfg)
    _override_collection_name(cfg, args.collection_name)
    container = build_container(cfg)

    if args.command == "ingest":
        source_id = args.source_id or str(uuid.uuid4())
        source = Source.from_dict({
            "id": source_id,
            "type": args.type,
            "content": _read_content(args.content),
            "name": args.name or source_id,
        })
        return container.ingestion_pipeline.ingest(source).to_dict()

    if args.command == "deindex":
        return container.deindexer.deindex(args.source_id).to_dict()

    return container.pipeline.run(args.query).to_dict()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        result = run(args)
    except KnowledgeRAGError as exc:
        print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
