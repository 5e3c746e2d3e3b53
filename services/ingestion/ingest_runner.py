"""Ingest runner entry point.

Feeds local files and zip archives through the same upload boundary the API
uses, then prints one line per outcome.

Usage:
    python -m services.ingestion.ingest_runner --owner admin [--folder FOLDER_ID] <paths...>
"""

import argparse
import asyncio
import mimetypes
from pathlib import Path

from server.core.AppServices import AppServices
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.ingest import UploadItem


def collect_paths(paths: list[str]) -> list[Path]:
    """Expand directories into their files, sorted, keeping the given order otherwise."""
    collected: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            collected.extend(sorted(p for p in path.rglob("*") if p.is_file()))
        elif path.is_file():
            collected.append(path)
    return collected


async def main(paths: list[str], owner_id: str, folder_id: str | None) -> int:
    """Run the ingestion pipeline. Returns the number of failed files."""
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    services = AppServices.from_config(config)

    files = collect_paths(paths)
    if not files:
        logger.error("No files found in %s. Aborting.", paths)
        return 1

    try:
        try:
            await services.boot()
        except Exception as e:
            logger.error(f"Error booting services: {e}. Aborting.")
            return 1

        failed = 0
        for path in files:
            item = UploadItem(
                content=path.read_bytes(),
                original_filename=path.name,
                declared_media_type=mimetypes.guess_type(path.name)[0] or "application/octet-stream",
                target_folder_id=folder_id,
            )
            # one item at a time keeps a single file in memory
            [outcome] = await services.ingest_service.ingest_uploads([item], owner_id)
            if outcome.outcome == "error":
                failed += 1
                logger.error("%s: %s", path, outcome.error.message if outcome.error else "failed")
            elif outcome.archive_summary is not None:
                s = outcome.archive_summary
                logger.info(
                    "%s: %d document(s), %d duplicate(s), %d error(s).",
                    path, len(s.documents_created), len(s.duplicates), len(s.errors),
                )
            else:
                logger.info("%s: %s (%s)", path, outcome.outcome, outcome.document.id if outcome.document else "-")
        return failed
    finally:
        await services.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Ingest local files into the knowledge base.")
    parser.add_argument("paths", nargs="+", help="files, zip archives or directories")
    parser.add_argument("--owner", required=True, help="owner id of the created documents")
    parser.add_argument("--folder", default=None, help="target folder id")
    args = parser.parse_args()
    raise SystemExit(1 if asyncio.run(main(args.paths, args.owner, args.folder)) else 0)
