"""Discord adapter: the forum channel as the pull request discussion surface.

One bot connection per process. The first gateway READY starts the projector
(later READYs after reconnects are no-ops). New guild members receive the
member role. Maintainers can merge a pull request from inside its thread.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from typing import Any

import discord
import structlog
from discord.ext import commands

from prforum.config.settings import DiscordSettings, ForumTagSettings
from prforum.discussion.resolver import pr_number_from_thread_name
from prforum.discussion.surface import PRState, ThreadHandle
from prforum.github.client import GitHubClient, MergeMethod
from prforum.infra.errors import ChannelError, DiscussionError, GitHubError

logger = structlog.get_logger()

_MERGE_FLAG_RE = re.compile(r"\s*(?:--)?(squash|rebase)\b", re.IGNORECASE)


def has_role(member: Any, role_id: int) -> bool:
    """True if member is a guild member holding role_id."""
    if not isinstance(member, discord.Member):
        return False
    return member.get_role(role_id) is not None


def parse_merge_args(raw: str) -> tuple[MergeMethod, str | None]:
    """Split `[squash|rebase]... [title]` into a merge method and commit title.

    squash wins over rebase when both are given. A title wrapped in inline
    code backticks is unwrapped.
    """
    squash = rebase = False
    rest = raw or ""
    while True:
        match = _MERGE_FLAG_RE.match(rest)
        if match is None:
            break
        if match.group(1).lower() == "squash":
            squash = True
        else:
            rebase = True
        rest = rest[match.end():]

    if squash:
        method = MergeMethod.squash
    elif rebase:
        method = MergeMethod.rebase
    else:
        method = MergeMethod.merge

    title = rest.strip().removeprefix("`").removesuffix("`").strip()
    return method, title or None


def pr_number_from_channel(channel: Any, forum_channel_id: int) -> int | None:
    """Pull request number of a thread in the forum channel, else None."""
    if not isinstance(channel, discord.Thread):
        return None
    if channel.parent_id != forum_channel_id:
        return None
    return pr_number_from_thread_name(channel.name)


class MergeCommands(commands.Cog):
    """`.merge [squash|rebase] [title]`, maintainers only."""

    def __init__(self, github: GitHubClient, settings: DiscordSettings) -> None:
        self._github = github
        self._settings = settings

    async def cog_check(self, ctx: commands.Context) -> bool:
        return has_role(ctx.author, self._settings.maintainer_role_id)

    async def cog_command_error(self, ctx: commands.Context, error: Exception) -> None:
        if isinstance(error, commands.CheckFailure):
            logger.warning("merge_denied", user=str(ctx.author), user_id=ctx.author.id)
            return
        logger.error("merge_command_error", user=str(ctx.author), error=str(error))

    @commands.command(name="merge", hidden=True)
    async def merge(self, ctx: commands.Context, *, args: str = "") -> None:
        pr_number = pr_number_from_channel(ctx.channel, self._settings.forum_channel_id)
        if pr_number is None:
            await ctx.send("No PR provided!")
            return

        method, title = parse_merge_args(args)
        await ctx.send("Attempting to merge...")
        try:
            await self._github.merge_pull_request(
                pr_number,
                method=method,
                title=title,
                message=f"Merged on Discord by {ctx.author.name}",
            )
        except GitHubError as e:
            logger.warning("pr_merge_failed", pr=pr_number, error=str(e), status=e.status_code)
            await ctx.send(f"Pull request #{pr_number} failed to merge: {e}")
            return

        logger.info("pr_merge_requested", pr=pr_number, method=str(method), user=ctx.author.name)


class DiscordAdapter:
    """Bot connection plus the DiscussionSurface over the configured forum channel."""

    def __init__(
        self,
        settings: DiscordSettings,
        tags: ForumTagSettings,
        github: GitHubClient,
        *,
        ready_hook: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        intents = discord.Intents.default()
        intents.members = True
        intents.message_content = True

        self._settings = settings
        self._github = github
        self._ready_hook = ready_hook
        self._tag_ids: dict[PRState, int] = {
            PRState.draft: tags.draft,
            PRState.review_needed: tags.review_needed,
            PRState.approved: tags.approved,
            PRState.merged: tags.merged,
            PRState.closed: tags.closed,
        }
        self._bot = commands.Bot(command_prefix=settings.prefixes(), intents=intents)
        self._bot.add_listener(self._on_ready, "on_ready")
        self._bot.add_listener(self._on_member_join, "on_member_join")

    def set_ready_hook(self, hook: Callable[[], Awaitable[Any]]) -> None:
        self._ready_hook = hook

    # ── lifecycle ────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Register commands and connect. Blocks until the connection closes."""
        await self._bot.add_cog(MergeCommands(self._github, self._settings))
        logger.info("discord_connecting", guild=self._settings.guild_id)
        await self._bot.start(self._settings.bot_token)

    async def stop(self) -> None:
        await self._bot.close()
        logger.info("discord_disconnected")

    async def check_ready(self) -> None:
        """Verify the configured forum channel exists. Raises ChannelError otherwise."""
        forum = await self._forum()
        logger.info("discord_forum_ready", forum=forum.id, name=forum.name)

    async def _on_ready(self) -> None:
        logger.info("discord_ready", user=str(self._bot.user))
        try:
            await self.check_ready()
        except ChannelError as e:
            logger.error("discord_forum_unavailable", error=str(e), code=e.code)
        if self._ready_hook is not None:
            await self._ready_hook()

    async def _on_member_join(self, member: discord.Member) -> None:
        if member.guild.id != self._settings.guild_id:
            return
        try:
            await member.add_roles(
                discord.Object(id=self._settings.member_role_id), reason="New member",
            )
        except discord.HTTPException:
            logger.exception("member_role_assign_failed", user_id=member.id)

    # ── DiscussionSurface ────────────────────────────────────────────────

    @property
    def container_id(self) -> int:
        return self._settings.forum_channel_id

    async def list_active_threads(self) -> list[ThreadHandle]:
        guild = self._bot.get_guild(self._settings.guild_id)
        if guild is None:
            guild = await self._bot.fetch_guild(self._settings.guild_id)
        threads = await guild.active_threads()
        return [ThreadHandle(id=t.id, parent_id=t.parent_id, name=t.name) for t in threads]

    async def create_thread(self, name: str, content: str, state: PRState) -> ThreadHandle:
        forum = await self._forum()
        created = await forum.create_thread(
            name=name, content=content, applied_tags=[self._tag(state)],
        )
        thread = created.thread
        return ThreadHandle(id=thread.id, parent_id=thread.parent_id, name=thread.name)

    async def edit_thread_tags(self, thread: ThreadHandle, state: PRState) -> None:
        channel = self._bot.get_channel(thread.id)
        if channel is None:
            channel = await self._bot.fetch_channel(thread.id)
        if not isinstance(channel, discord.Thread):
            raise DiscussionError(f"Channel {thread.id} is not a thread", code="NOT_A_THREAD")
        await channel.edit(applied_tags=[self._tag(state)])

    async def send_message(self, thread: ThreadHandle, content: str) -> None:
        await self._bot.get_partial_messageable(thread.id).send(content)

    def _tag(self, state: PRState) -> discord.Object:
        return discord.Object(id=self._tag_ids[state])

    async def _forum(self) -> discord.ForumChannel:
        forum_id = self._settings.forum_channel_id
        try:
            channel = self._bot.get_channel(forum_id)
            if channel is None:
                channel = await self._bot.fetch_channel(forum_id)
        except discord.HTTPException as e:
            raise ChannelError(
                f"Forum channel {forum_id} could not be fetched: {e}", code="FORUM_UNAVAILABLE",
            ) from e
        if not isinstance(channel, discord.ForumChannel):
            raise ChannelError(
                f"Channel {forum_id} is not a forum channel", code="FORUM_UNAVAILABLE",
            )
        return channel
