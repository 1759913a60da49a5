from __future__ import annotations

import asyncio
import logging
import time

from modules.core import configure_logging, load_runtime_config
from modules.core.guardian_bot import GuardianBot

print(f"[BOOT] Starting Kojo Guardian at {time.strftime('%X')}")


async def _main() -> None:
    print("[TRACE] Loading runtime config...")
    config = load_runtime_config()
    print("[TRACE] Runtime config loaded")
    configure_logging(config.log_level)
    print(f"[TRACE] Logging configured at level {config.log_level}")
    logger = logging.getLogger("kojo.startup")
    logger.info("Log level resolved to %s", config.log_level)
    logger.info(
        "Moderation settings: model=%s audit_channel=%s video_frames=%s",
        config.moderation.model,
        config.moderation.audit_channel_id,
        config.moderation.video_max_frames,
    )
    logger.info(
        "Voice settings: channel_id=%s channel_name=%s debounce=%sms silence=%sms backend=%s",
        config.voice.channel_id,
        config.voice.channel_name,
        config.voice.debounce_ms,
        config.voice.silence_ms,
        config.voice.transcription_backend,
    )
    logger.info("Cog load logging enabled: %s", config.log_cog_loads)

    if not config.token:
        print("[FATAL] DISCORD_TOKEN is not set. Exiting.")
        return

    bot = GuardianBot(config)
    try:
        await bot.start(config.token)
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        logger.exception("[FATAL] Bot crashed: %s", exc)
    finally:
        print("[TRACE] Entering shutdown cleanup sequence")
        if not bot.is_closed():
            try:
                await bot.close()
                print("[TRACE] Bot closed cleanly")
            except Exception:
                logger.exception("Failed to close bot cleanly")


if __name__ == "__main__":
    asyncio.run(_main())
