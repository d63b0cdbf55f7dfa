"""Vector sync runner entry point.

Discovers document types, creates vector indexes, backfills embeddings and
keeps them in sync with the change feed.

Usage:
    python -m services.vector_sync.vector_sync --mode=all
    python -m services.vector_sync.vector_sync --mode=generate --tenant=acme --document-type=invoice --dry-run
"""

import argparse
import asyncio
import signal

from services.vector_sync.VectorSyncService import VectorSyncService
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.index.IndexClientManager import IndexClientManager
from shared.clients.index.IndexClientInterface import IndexClientInterface
from shared.clients.store.StoreClientManager import StoreClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.config import VectorSyncSettings
from shared.models.embedding import BackfillOptions

MODES = ("setup", "generate", "watch", "all")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Maintain vector embeddings for all document collections.")
    parser.add_argument("--mode", choices=MODES, default="all", help="setup: indexes, generate: backfill, watch: change feeds, all: everything")
    parser.add_argument("--collections", default=None, help="comma separated collection names to restrict to")
    parser.add_argument("--tenant", default=None, help="only backfill documents of this tenantId")
    parser.add_argument("--document-type", dest="document_type", default=None, help="only backfill documents of this type")
    parser.add_argument("--batch-size", dest="batch_size", type=int, default=None, help="backfill page size")
    parser.add_argument("--force", action="store_true", help="re-embed documents with a fresh embedding")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="log what would happen, write nothing")
    return parser.parse_args(argv)


def _split_collections(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    names = [name.strip() for name in raw.split(",") if name.strip()]
    return names or None


async def _wait_for_shutdown(logger) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # not available on every platform, KeyboardInterrupt still ends the run
            pass
    logger.info("Running until interrupted (Ctrl+C).")
    await stop.wait()


async def main(argv: list[str] | None = None) -> int:
    """Run the requested mode. Returns the process exit code."""
    args = parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    # configuration errors are fatal: no point in running degraded
    try:
        settings = VectorSyncSettings.from_helper_config(config)
        if args.batch_size:
            settings.batch_size = args.batch_size
        store_client = StoreClientManager(helper_config=config).get_client()
        embed_client = EmbedClientManager(helper_config=config).get_client()
        index_client: IndexClientInterface | None = None
        if args.mode in ("setup", "all"):
            index_client = IndexClientManager(helper_config=config).get_client()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}. Aborting.")
        return 2

    collections = _split_collections(args.collections)
    service: VectorSyncService | None = None
    try:
        # store and embed client are required, without either there is nothing to do
        try:
            await store_client.boot()
            if not await store_client.do_healthcheck():
                raise Exception("healthcheck failed")
        except Exception as e:
            logger.error(f"Error booting store client {store_client.get_engine_name()}: {e}. Aborting.")
            return 1
        try:
            await embed_client.boot()
            if not args.dry_run and not await embed_client.do_healthcheck():
                raise Exception("healthcheck failed")
        except Exception as e:
            logger.error(f"Error booting Embed client {embed_client.get_engine_name()}: {e}. Aborting.")
            return 1

        # the index client is optional, indexes can still be created by hand
        if index_client is not None:
            try:
                await index_client.boot()
            except Exception as e:
                logger.error(f"Error booting index client {index_client.get_engine_name()}: {e}. Skipping index setup.")
                index_client = None

        service = VectorSyncService(
            helper_config=config,
            store_client=store_client,
            embed_client=embed_client,
            index_client=index_client,
            settings=settings,
        )

        if args.mode in ("setup", "all"):
            await service.do_setup(dry_run=args.dry_run, collections=collections)

        if args.mode in ("generate", "all"):
            options = BackfillOptions(
                force=args.force,
                dry_run=args.dry_run,
                tenant_id=args.tenant,
                document_type=args.document_type,
                batch_size=args.batch_size,
            )
            await service.do_generate(options, collections=collections)

        if args.mode in ("watch", "all") and not args.dry_run:
            await service.do_start_watch(collections=collections)
            await _wait_for_shutdown(logger)
        return 0
    finally:
        if service is not None and service.is_running:
            await service.do_stop()
        await embed_client.close()
        await store_client.close()
        if index_client is not None:
            await index_client.close()


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
