"""FastAPI application: lifespan wiring of the webhook pipeline and its HTTP routes."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Header, Request

from prforum.channels.discord_forum import DiscordAdapter
from prforum.config.settings import get_settings
from prforum.discussion.projector import StateProjector
from prforum.discussion.resolver import ThreadResolver
from prforum.gateway.intake import intake_delivery
from prforum.github.client import GitHubClient
from prforum.infra.errors import ChannelError
from prforum.infra.logging import setup_logging
from prforum.pipeline.queue import EventQueue
from prforum.pipeline.supervisor import ProjectorSupervisor

logger = structlog.get_logger()


def _log_discord_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("discord_client_exited", error=repr(exc))


async def _wait_until_ready(discord_task: asyncio.Task, ready: asyncio.Event) -> None:
    """Block until Discord is ready. Raises ChannelError if the client ends first."""
    ready_wait = asyncio.create_task(ready.wait())
    try:
        await asyncio.wait({discord_task, ready_wait}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        ready_wait.cancel()
    if ready.is_set():
        return

    exc = None if discord_task.cancelled() else discord_task.exception()
    raise ChannelError(
        f"Discord client stopped before becoming ready: {exc!r}", code="DISCORD_START_FAILED",
    ) from exc


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: build the pipeline, connect to Discord, tear down on exit.

    Startup completes only once Discord is ready and the projector is consuming.
    A client that fails before that (bad token, missing intents) aborts startup.
    """
    # Missing or invalid configuration aborts startup before any traffic is accepted
    settings = get_settings()
    setup_logging(json_output=settings.logging.json_output, log_level=settings.logging.level)

    queue = EventQueue(settings.queue.capacity)
    github = GitHubClient(
        settings.github.token,
        settings.github.repo_owner,
        settings.github.repo_name,
        api_url=settings.github.api_url,
    )
    adapter = DiscordAdapter(settings.discord, settings.tags, github)
    projector = StateProjector(adapter, ThreadResolver(adapter))
    supervisor = ProjectorSupervisor(
        queue,
        projector,
        restart_delay_s=settings.queue.restart_delay_s,
        drain_timeout_s=settings.queue.drain_timeout_s,
    )
    ready = asyncio.Event()

    # The consumer is installed when the Discord connection is first ready
    async def on_discord_ready() -> None:
        await supervisor.start()
        ready.set()

    adapter.set_ready_hook(on_discord_ready)

    app.state.event_queue = queue
    app.state.webhook_secret = settings.webhook.secret
    app.state.supervisor = supervisor
    app.state.discord = adapter

    discord_task = asyncio.create_task(adapter.start(), name="discord_client")
    discord_task.add_done_callback(_log_discord_exit)
    try:
        await _wait_until_ready(discord_task, ready)
    except ChannelError as e:
        logger.error("gateway_start_failed", error=str(e), code=e.code)
        await _shutdown(supervisor, adapter, discord_task, github)
        raise

    logger.info(
        "gateway_started",
        host=settings.webhook.host,
        port=settings.webhook.port,
        repo=github.repo_full_name,
        queue_capacity=queue.capacity,
    )

    yield

    await _shutdown(supervisor, adapter, discord_task, github)
    logger.info("gateway_stopped")


async def _shutdown(
    supervisor: ProjectorSupervisor,
    adapter: DiscordAdapter,
    discord_task: asyncio.Task,
    github: GitHubClient,
) -> None:
    await supervisor.stop()
    await adapter.stop()
    if not discord_task.done():
        discord_task.cancel()
    # Client failures were already reported by _log_discord_exit
    await asyncio.gather(discord_task, return_exceptions=True)
    await github.close()


app = FastAPI(title="prforum", version="0.1.0", lifespan=lifespan)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/push/{secret}")
async def push(
    secret: str,
    request: Request,
    x_github_event: str | None = Header(None),
) -> dict[str, str]:
    """GitHub webhook endpoint. Always answers the same way, whatever happened."""
    body = await request.body()
    await intake_delivery(
        queue=request.app.state.event_queue,
        expected_secret=request.app.state.webhook_secret,
        provided_secret=secret,
        event_type=x_github_event,
        body=body,
    )
    return {"status": "ok"}


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "prforum.gateway.app:app",
        host=settings.webhook.host,
        port=settings.webhook.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
