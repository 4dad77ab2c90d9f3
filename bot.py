import discord
from discord.ext import commands
import os
import sys
import signal
import asyncio
import time
import contextlib
from config import shared_config
from database.core import db
from database.queries import get_all_raid_settings
from utils.logger import get_logger
from utils.state import GuardState

log = get_logger()

EXTENSION_FOLDERS = ("logging_modules", "commands", "services")

class Friday(commands.AutoShardedBot):
    def __init__(self):
        intents = discord.Intents.default()
        intents.members = True

        super().__init__(
            command_prefix="f!", # Fallback, we mainly use slash commands
            intents=intents,
            help_command=None,
            shard_count=shared_config.SHARD_COUNT if shared_config.SHARD_COUNT > 1 else None
        )
        self.start_time = time.time()
        self._ready_once = asyncio.Event()
        # Single guard store for the whole process; cogs reach it as bot.guard
        self.guard = GuardState.from_config(shared_config)

    async def setup_hook(self):
        """
        Async setup hook to initialize DB, restore anti-raid settings and load extensions.
        """
        db.db_path = shared_config.DATABASE_PATH
        await db.connect()
        await self.restore_raid_settings()

        for folder in EXTENSION_FOLDERS:
            await self._load_extensions_from(folder)

        try:
            synced = await self.tree.sync()
            log.discord(f"Synced {len(synced)} command(s) globally.")
        except Exception as e:
            log.error("Failed to sync commands", exc_info=e)

    async def restore_raid_settings(self):
        rows = await get_all_raid_settings()
        for row in rows:
            enabled = row["antiraid_enabled"]
            window = row["raid_window_seconds"]
            self.guard.raid.configure(
                row["guild_id"],
                threshold=row["raid_threshold"],
                window_ms=window * 1000 if window is not None else None,
                enabled=bool(enabled) if enabled is not None else None
            )
        if rows:
            log.info(f"Restored anti-raid settings for {len(rows)} guild(s).")

    async def _load_extensions_from(self, folder: str):
        if not os.path.isdir(folder):
            log.warning(f"Extension folder missing: {folder}")
            return

        failed_extensions = []
        for filename in sorted(os.listdir(folder)):
            if filename.endswith(".py") and not filename.startswith("__") and filename != "base.py":
                extension_name = f"{folder}.{filename[:-3]}"
                try:
                    await self.load_extension(extension_name)
                    log.info(f"Loaded extension: {extension_name}")
                except Exception as e:
                    failed_extensions.append(extension_name)
                    log.error(f"Failed to load extension {extension_name}", exc_info=e)

        if failed_extensions:
            log.error(f"Failed to load extensions: {failed_extensions}")
        else:
            log.discord(f"All extensions in {folder} loaded successfully.")

    async def on_ready(self):
        # Each shard calls on_ready; only announce once
        if not self._ready_once.is_set():
            log.network(f"Bot is online as {self.user} (ID: {self.user.id})")
            log.network(f"Connected to {len(self.guilds)} guilds across {self.shard_count or 1} shard(s).")
            await self.change_presence(activity=discord.Activity(
                type=discord.ActivityType.watching,
                name=f"over {len(self.guilds)} guilds"
            ))
            self._ready_once.set()
        else:
            log.network(f"Session resumed after {time.time() - self.start_time:.2f} seconds.")

    async def on_shard_ready(self, shard_id):
        guilds = [g for g in self.guilds if g.shard_id == shard_id]
        log.network(f"[Shard {shard_id}] ready - handling {len(guilds)} guild(s).")

    async def on_shard_disconnect(self, shard_id):
        log.network(f"[Shard {shard_id}] disconnected - waiting for resume.")

# Bot Instance
bot = Friday()

async def graceful_shutdown():
    log.info("Shutdown signal received - performing cleanup...")
    await db.close()
    with contextlib.suppress(Exception):
        await bot.close()
    log.info("Shutdown complete. Friday signing off.")

async def main():
    async with bot:
        shutdown_signal = asyncio.get_running_loop().create_future()

        def _signal_handler():
            if not shutdown_signal.done():
                shutdown_signal.set_result(True)

        loop = asyncio.get_running_loop()
        # Windows has no add_signal_handler; Ctrl+C arrives as KeyboardInterrupt there
        if sys.platform != 'win32':
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, _signal_handler)
                except Exception as e:
                    log.error(f"Failed to register signal handler for {sig!r}: {e}")

        bot_task = asyncio.create_task(bot.start(shared_config.DISCORD_TOKEN))

        try:
            if sys.platform != 'win32':
                await asyncio.wait({bot_task, shutdown_signal}, return_when=asyncio.FIRST_COMPLETED)
            else:
                await bot_task
        except asyncio.CancelledError:
            log.info("Main task cancelled; initiating cleanup.")
        finally:
            if not bot_task.done():
                bot_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await bot_task
            elif not bot_task.cancelled() and bot_task.exception():
                log.error("Bot stopped with an error", exc_info=bot_task.exception())

            await graceful_shutdown()

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        log.error("Fatal crash in main", exc_info=e)
        sys.exit(1)
