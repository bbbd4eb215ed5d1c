import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from filesaver.errors import SaveTimeoutError
from filesaver.models import Entry, SaveOptions, SaveOutcome
from filesaver.orchestrator.models import BatchSaveResult
from filesaver.use_cases.save_entry import SaveEntryUseCase
from filesaver.utils.events import (
    ENTRY_DONE,
    ENTRY_SKIPPED,
    ENTRY_START,
    TIMEOUT,
    EventEmitter,
)

logger = logging.getLogger(__name__)


@dataclass
class _BatchState:
    timed_out: bool = False


class SaveBatchCoordinator:
    """
    Saves a batch of entries with at most ``options.concurrency`` in flight.

    The deadline is checked when an entry starts; downloads already running
    complete. Once the deadline is hit, queued entries are left unprocessed
    and the partial result is returned instead of raising.
    """

    def __init__(self, save_entry: SaveEntryUseCase, events: Optional[EventEmitter] = None):
        self._save_entry = save_entry
        self._events = events or EventEmitter()

    @property
    def events(self) -> EventEmitter:
        return self._events

    async def run(self, entries: Sequence[Entry], options: SaveOptions) -> BatchSaveResult:
        """
        Save all entries.

        Returns:
            BatchSaveResult with one outcome per processed entry, in input order
        """
        entries = list(entries)
        total = len(entries)
        if not entries:
            logger.warning("No file to download")

        semaphore = asyncio.Semaphore(options.concurrency)
        state = _BatchState()
        tasks = [
            asyncio.create_task(self._save_one(idx, entry, options, semaphore, state))
            for idx, entry in enumerate(entries)
        ]

        outcomes: Dict[int, SaveOutcome] = {}
        try:
            for task in asyncio.as_completed(tasks):
                idx, outcome = await task
                if outcome is not None:
                    outcomes[idx] = outcome
        except BaseException:
            await self._cancel_remaining_tasks(tasks)
            raise

        result = BatchSaveResult(
            total_entries=total,
            outcomes=[outcomes[idx] for idx in sorted(outcomes)],
            timed_out=state.timed_out,
        )

        if state.timed_out:
            logger.warning(
                "saveFiles timeout: still %d / %d to download", result.remaining, total
            )
            await self._events.emit(TIMEOUT, result.remaining, total)

        logger.info(
            "saveFiles created %d files for %d entries", result.created_files, len(result.outcomes)
        )
        return result

    async def _save_one(
        self,
        index: int,
        entry: Entry,
        options: SaveOptions,
        semaphore: asyncio.Semaphore,
        state: _BatchState,
    ) -> Tuple[int, Optional[SaveOutcome]]:
        async with semaphore:
            if state.timed_out:
                return index, None

            if not entry.can_be_saved:
                await self._events.emit(ENTRY_SKIPPED, index, entry)
                return index, SaveOutcome(entry=entry, skipped=True)

            await self._events.emit(ENTRY_START, index, entry)
            try:
                outcome = await self._save_entry.execute(entry, options)
            except SaveTimeoutError:
                state.timed_out = True
                return index, None

            await self._events.emit(ENTRY_DONE, index, outcome)
            return index, outcome

    async def _cancel_remaining_tasks(self, tasks: List[asyncio.Task]) -> None:
        for task in tasks:
            if not task.done():
                task.cancel()

        await asyncio.gather(*tasks, return_exceptions=True)
