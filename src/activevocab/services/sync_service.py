"""Reconciliation of the local store with the remote store."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from activevocab.exceptions import NotAuthenticatedError, SyncError
from activevocab.models.entities import ReadingArticle, Word
from activevocab.monitoring import sync_errors, sync_operations, sync_skipped
from activevocab.services.auth_service import AuthService
from activevocab.services.local_store import LocalStore
from activevocab.services.remote_store import RemoteStore
from activevocab.services.validation import clean_explanations

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROFILES = "profiles"
WORDS = "words"
WORD_EXPLANATIONS = "word_explanations"
TOKEN_USAGE = "token_usage"
READING_ARTICLES = "reading_articles"

TABLES = (PROFILES, WORDS, WORD_EXPLANATIONS, TOKEN_USAGE, READING_ARTICLES)


class CoalescingRunner:
    """Runs an async operation with at most one execution in flight.

    A call arriving while a run is in progress does not start a second run;
    it marks the current one as stale, and the running loop repeats once more
    so the latest local state is written. All callers await the same result.
    """

    def __init__(self, name: str, operation: Callable[[], Awaitable[T]]):
        self.name = name
        self.operation = operation
        self._task: Optional[asyncio.Task] = None
        self._pending = False
        self.runs = 0

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self) -> Any:
        if self.in_flight:
            self._pending = True
            logger.debug(f"{self.name} push in flight, folding request into a re-run")
        else:
            self._task = asyncio.ensure_future(self._loop())
        return await self._task

    async def _loop(self) -> Any:
        try:
            while True:
                self._pending = False
                self.runs += 1
                result = await self.operation()
                if not self._pending:
                    return result
        finally:
            self._pending = False


@dataclass
class SyncReport:
    """Per-table outcome of a full push or load."""
    direction: str
    succeeded: Dict[str, int] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def _merge_by_id(remote: List[Any], local: List[Any]) -> List[Any]:
    """Remote copies win by id; records that exist only locally are kept in front."""
    remote_ids = {item.id for item in remote}
    local_only = [item for item in local if item.id not in remote_ids]
    return local_only + list(remote)


class SyncService:
    """Pushes local state to the remote store and loads it back.

    Writes are upserts only. Pushing an empty local collection, or a profile
    or token usage that was never loaded or edited, is a no-op so a cleared
    device can never wipe the remote copy. Without a signed-in user every
    operation raises NotAuthenticatedError and leaves local state untouched.
    """

    def __init__(self, store: LocalStore, remote: RemoteStore, auth: AuthService):
        self.store = store
        self.remote = remote
        self.auth = auth
        self._runners = {
            PROFILES: CoalescingRunner(PROFILES, self._push_profile),
            WORDS: CoalescingRunner(WORDS, self._push_words),
            WORD_EXPLANATIONS: CoalescingRunner(WORD_EXPLANATIONS, self._push_explanations),
            TOKEN_USAGE: CoalescingRunner(TOKEN_USAGE, self._push_token_usage),
            READING_ARTICLES: CoalescingRunner(READING_ARTICLES, self._push_articles),
        }

    @property
    def is_syncing(self) -> bool:
        return any(runner.in_flight for runner in self._runners.values())

    def _skip(self, table: str, reason: str) -> int:
        sync_skipped.labels(table=table).inc()
        logger.warning(f"Skipping {table} push: {reason}")
        return 0

    async def _record(self, table: str, direction: str, call: Callable[[], T]) -> T:
        try:
            result = call()
        except SyncError:
            sync_errors.labels(table=table, direction=direction).inc()
            raise
        sync_operations.labels(table=table, direction=direction).inc()
        return result

    # Push

    async def _push_profile(self) -> int:
        user_id = await self.auth.require_user()
        if not self.store.profile_dirty:
            return self._skip(PROFILES, "local profile was never loaded or edited")
        profile = self.store.profile
        await self._record(PROFILES, "push", lambda: self.remote.upsert_profile(user_id, profile))
        return 1

    async def _push_words(self) -> int:
        user_id = await self.auth.require_user()
        words: List[Word] = list(self.store.words)
        if not words:
            return self._skip(WORDS, "local word list is empty")
        count = await self._record(WORDS, "push", lambda: self.remote.upsert_words(user_id, words))
        logger.info(f"Pushed {count} words")
        return count

    async def _push_explanations(self) -> int:
        user_id = await self.auth.require_user()
        entries = dict(self.store.explanations)
        if not entries:
            return self._skip(WORD_EXPLANATIONS, "no cached explanations")
        valid = {k: v for k, v in entries.items() if v.meaning and v.meaning.strip()}
        if len(valid) < len(entries):
            logger.warning(f"Skipping {len(entries) - len(valid)} explanations without a definition")
        if not valid:
            return self._skip(WORD_EXPLANATIONS, "no explanation has a definition")
        return await self._record(
            WORD_EXPLANATIONS, "push", lambda: self.remote.upsert_explanations(user_id, valid)
        )

    async def _push_token_usage(self) -> int:
        user_id = await self.auth.require_user()
        if not self.store.token_usage_dirty:
            return self._skip(TOKEN_USAGE, "local token usage was never loaded or recorded")
        usage = self.store.token_usage
        await self._record(TOKEN_USAGE, "push", lambda: self.remote.upsert_token_usage(user_id, usage))
        return 1

    async def _push_articles(self) -> int:
        user_id = await self.auth.require_user()
        articles: List[ReadingArticle] = list(self.store.articles)
        if not articles:
            return self._skip(READING_ARTICLES, "local article list is empty")
        count = await self._record(
            READING_ARTICLES, "push", lambda: self.remote.upsert_articles(user_id, articles)
        )
        logger.info(f"Pushed {count} reading articles")
        return count

    async def push_profile(self) -> int:
        return await self._runners[PROFILES].run()

    async def push_words(self) -> int:
        return await self._runners[WORDS].run()

    async def push_explanations(self) -> int:
        return await self._runners[WORD_EXPLANATIONS].run()

    async def push_token_usage(self) -> int:
        return await self._runners[TOKEN_USAGE].run()

    async def push_articles(self) -> int:
        return await self._runners[READING_ARTICLES].run()

    async def push_all(self) -> SyncReport:
        """Push every table; a failing table does not stop the others."""
        await self.auth.require_user()
        report = SyncReport(direction="push")
        for table in TABLES:
            try:
                count = await self._runners[table].run()
            except NotAuthenticatedError:
                raise
            except SyncError as e:
                report.failures[table] = e.message
                continue
            if count:
                report.succeeded[table] = count
            else:
                report.skipped.append(table)
        if not report.ok:
            logger.error(f"Push finished with failures: {report.failures}")
        return report

    # Load

    async def load_from_cloud(self) -> SyncReport:
        """Fetch every table and apply it to the local store.

        Missing profile or token usage rows are not errors. Empty remote
        collections never replace non-empty local ones, and records that
        exist only locally are kept.
        """
        user_id = await self.auth.require_user()
        report = SyncReport(direction="fetch")
        loaders = (
            (PROFILES, self._load_profile),
            (WORDS, self._load_words),
            (WORD_EXPLANATIONS, self._load_explanations),
            (TOKEN_USAGE, self._load_token_usage),
            (READING_ARTICLES, self._load_articles),
        )
        for table, loader in loaders:
            try:
                count = await loader(user_id)
            except SyncError as e:
                report.failures[table] = e.message
                continue
            if count:
                report.succeeded[table] = count
            else:
                report.skipped.append(table)
        logger.info(f"Loaded from cloud: {report.succeeded}, skipped {report.skipped}")
        return report

    async def _load_profile(self, user_id: str) -> int:
        profile = await self._record(PROFILES, "fetch", lambda: self.remote.fetch_profile(user_id))
        if profile is None:
            logger.info("No remote profile yet")
            return 0
        self.store.hydrate_profile(profile)
        return 1

    async def _load_words(self, user_id: str) -> int:
        remote = await self._record(WORDS, "fetch", lambda: self.remote.fetch_words(user_id))
        if not remote:
            if self.store.words:
                logger.warning("Remote word list is empty, keeping local words")
            return 0
        self.store.hydrate_words(_merge_by_id(remote, self.store.words))
        active = sum(1 for w in remote if not w.deleted)
        logger.info(f"Loaded {len(remote)} words from cloud ({active} active)")
        return len(remote)

    async def _load_explanations(self, user_id: str) -> int:
        remote = await self._record(
            WORD_EXPLANATIONS, "fetch", lambda: self.remote.fetch_explanations(user_id)
        )
        if not remote:
            return 0
        merged = dict(self.store.explanations)
        merged.update(remote)
        clean_explanations(merged)
        self.store.hydrate_explanations(merged)
        return len(remote)

    async def _load_token_usage(self, user_id: str) -> int:
        usage = await self._record(TOKEN_USAGE, "fetch", lambda: self.remote.fetch_token_usage(user_id))
        if usage is None:
            return 0
        self.store.hydrate_token_usage(usage)
        return 1

    async def _load_articles(self, user_id: str) -> int:
        remote = await self._record(
            READING_ARTICLES, "fetch", lambda: self.remote.fetch_articles(user_id)
        )
        if not remote:
            return 0
        self.store.hydrate_articles(_merge_by_id(remote, self.store.articles))
        return len(remote)

    async def check_auth(self) -> Optional[str]:
        """Resolve the current user and, when signed in, load from cloud."""
        user_id = await self.auth.get_current_user()
        if user_id is None:
            logger.info("No signed-in user, working locally")
            return None
        await self.load_from_cloud()
        return user_id
