"""Command-line entry point: load the local state, sync and report due reviews."""
import asyncio
import logging
import signal

from activevocab.app import ActiveVocabApp
from activevocab.config import ensure_directories, settings
from activevocab.exceptions import ActiveVocabError
from activevocab.logging_config import setup_logging

logger = logging.getLogger(__name__)


async def main() -> int:
    """Run one session: start, sign in, load from cloud, report, stop."""
    loop = asyncio.get_running_loop()
    current = asyncio.current_task()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, current.cancel)

    app = ActiveVocabApp()
    await app.start()
    try:
        user_id = settings.sync.user_id
        if user_id:
            app.auth.sign_in(user_id)
            try:
                report = await app.sync.load_from_cloud()
                if not report.ok:
                    logger.warning(f"Some tables failed to load: {report.failures}")
            except ActiveVocabError as e:
                logger.error(f"Cloud load failed, working locally: {e}")
        else:
            logger.info("ACTIVEVOCAB_USER_ID not set, working locally")

        due = app.due_today()
        logger.info(
            f"{len(app.store.active_words())} words, {len(due)} due for review today"
        )
        for word in due:
            logger.info(f"  {word.text} (reviewed {word.review_count} times)")
        return 0
    except asyncio.CancelledError:
        logger.info("Interrupted, shutting down...")
        return 1
    finally:
        await app.stop()


def run() -> None:
    ensure_directories()
    setup_logging("Starting ActiveVocab ...")
    raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    run()
