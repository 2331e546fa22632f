import argparse
import asyncio
import logging

from pctabot.config import Settings, load_settings
from pctabot.domain import Channel, DeliveryError, NotificationPayload
from pctabot.keybase_notifier import KeybaseNotifier
from pctabot.page_fetcher import PageFetcher
from pctabot.reconnector import CommandReconnector
from pctabot.scheduler import Scheduler


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


async def _run(settings: Settings, *, once: bool) -> None:
    notifier = KeybaseNotifier(
        team=settings.keybase_team,
        topics=settings.keybase_topics,
        binary=settings.keybase_binary,
        timeout_seconds=settings.keybase_timeout_seconds,
    )

    async with PageFetcher(settings.url, timeout_seconds=settings.fetch_timeout_seconds) as fetcher:
        scheduler = Scheduler(
            settings,
            fetcher=fetcher,
            notifier=notifier,
            reconnector=CommandReconnector(settings.vpn_reconnect_command),
        )

        # Startup notice (best-effort)
        try:
            await notifier.send(
                NotificationPayload(
                    channel=Channel.LOGS,
                    body=(
                        "PCTA permit watcher started.\n"
                        f"Mode: {'once' if once else 'forever'}\n"
                        f"interval={scheduler.interval_seconds}s limit={settings.capacity_limit} "
                        f"range={settings.date_range.start}..{settings.date_range.end}"
                    ),
                )
            )
        except DeliveryError:
            logging.getLogger(__name__).warning("Failed to send keybase startup message", exc_info=True)

        if once:
            await scheduler.tick()
            return

        await scheduler.run_forever()


def main() -> int:
    parser = argparse.ArgumentParser(description="PCTA permit availability watcher")
    parser.add_argument("--once", action="store_true", help="Run a single check and exit")
    args = parser.parse_args()

    _setup_logging()
    settings = load_settings()

    try:
        asyncio.run(_run(settings, once=args.once))
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Interrupted, exiting.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
