from __future__ import annotations

import asyncio
import logging
import os

_logger = logging.getLogger(__name__)

COGS_DIR = "cogs"


class ExtensionLoaderMixin:
    """Mixin loading every ``cogs/*.py`` extension and syncing the command tree."""

    _log_cog_loads: bool
    _command_tree_sync_task: asyncio.Task[None] | None

    def _extension_names(self) -> list[str]:
        names = []
        for filename in sorted(os.listdir(f"./{COGS_DIR}")):
            path = os.path.join(COGS_DIR, filename)
            if os.path.isfile(path) and filename.endswith(".py"):
                names.append(f"{COGS_DIR}.{filename[:-3]}")
        return names

    async def _load_extensions(self) -> None:
        for name in self._extension_names():
            try:
                await self.load_extension(name)
            except Exception as exc:
                print(f"[FATAL] Failed to load cog {name}: {exc}")
                raise
            if self._log_cog_loads:
                print(f"Loaded Cog: {name.rsplit('.', 1)[-1]}")

    def _schedule_command_tree_sync(self) -> None:
        current = self._command_tree_sync_task
        if current is not None and not current.done():
            return
        self._command_tree_sync_task = asyncio.create_task(self._run_command_tree_sync())

    async def _run_command_tree_sync(self) -> None:
        await self.wait_until_ready()
        try:
            synced = await self.tree.sync()
        except Exception:
            _logger.exception("Command tree sync failed")
            return
        print(f"[STARTUP] Synced {len(synced)} application command(s)")
