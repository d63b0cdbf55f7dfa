"""FastAPI application entry point of the vector sync status API.

Hosts the long-running watchers: on startup the clients are booted, document
types discovered, indexes ensured and one change feed watcher per collection
started. The endpoints report health, metrics and profiles and can start a
backfill run.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from services.vector_sync.VectorSyncService import VectorSyncService
from server.routers.BackfillRouter import router as backfill_router
from server.routers.StatusRouter import router as status_router
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.index.IndexClientManager import IndexClientManager
from shared.clients.store.StoreClientManager import StoreClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.config import VectorSyncSettings

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)
    app.state.backfill_running = False

    # configuration errors raise here and stop the server
    settings = VectorSyncSettings.from_helper_config(app.state.helper_config)
    store_client = StoreClientManager(helper_config=app.state.helper_config).get_client()
    embed_client = EmbedClientManager(helper_config=app.state.helper_config).get_client()
    index_client = IndexClientManager(helper_config=app.state.helper_config).get_client()

    logging.info("Booting all clients...")
    for client in [store_client, embed_client, index_client]:
        await client.boot()
    logging.info("All clients booted successfully.")

    await check_connections(store_client, embed_client, index_client)

    service = VectorSyncService(
        helper_config=app.state.helper_config,
        store_client=store_client,
        embed_client=embed_client,
        index_client=index_client,
        settings=settings,
    )
    app.state.vector_sync = service

    await service.do_setup()
    await service.do_start_watch()

    # while the app is running...
    yield

    # when the app shuts down, stop the watchers and close all client connections
    logging.info("Shutting down, stopping watchers...")
    await service.do_stop()
    for client in [store_client, embed_client, index_client]:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="vector_sync",
    description=(
        "Keeps vector embeddings of all document collections in sync. "
        "Document types are discovered automatically, embeddings are backfilled via POST /backfill "
        "and updated live from the change feed."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(status_router)
app.include_router(backfill_router)


async def check_connections(store_client, embed_client, index_client) -> None:
    """Check connectivity to all configured backends on startup.

    Index backend failures are non-fatal (indexes can be created by hand).
    Store and embedding failures are fatal, nothing can be synced without them.

    Raises:
        Exception: If the store or the embedding provider is not reachable.
    """
    if not await store_client.do_healthcheck():
        raise Exception(f"Store client '{store_client.get_engine_name()}' is not reachable. Cannot sync.")

    if not await embed_client.do_healthcheck():
        raise Exception(f"Embed client '{embed_client.get_engine_name()}' is not reachable. Embeddings will not work.")

    if not await index_client.do_healthcheck():
        logging.warning(
            "Index client '%s' is not reachable. Index setup may fail.",
            index_client.get_engine_name(),
        )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting vector_sync API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
