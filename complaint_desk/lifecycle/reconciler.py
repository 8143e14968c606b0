"""
Lifecycle reconcilers

Keep locally held ticket state eventually consistent with the Ticket Store
while the backend may still change it:

- TicketReconciler: one ticket, re-fetched every `detail_poll_interval`
  seconds only while its last observed status is pending or processing.
- DashboardReconciler: ticket list plus stats, re-fetched every
  `dashboard_poll_interval` seconds regardless of item status.

Both run a single timer task per instance with a fetch-then-wait cadence,
so a tick never starts while the previous tick's fetch is outstanding.
Use them as async context managers so teardown always cancels the timer.
"""
import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Tuple

from pydantic import ValidationError

from complaint_desk.config import get_settings
from complaint_desk.lifecycle.state_machine import (
    check_observed_transition,
    is_polling_eligible,
)
from complaint_desk.models.schemas import TicketListFilters, TicketStats
from complaint_desk.models.ticket import Ticket
from complaint_desk.services.errors import (
    UNEXPECTED_MESSAGE,
    ErrorKind,
    TicketClientError,
    validation_error_from,
)
from complaint_desk.utils.logger import get_logger

if TYPE_CHECKING:
    from complaint_desk.services.ticket_client import TicketClient

logger = get_logger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


class _PollingTimer:
    """
    Cancellable fetch-then-wait loop owned by a reconciler.

    `should_poll` is re-evaluated before every sleep and after every wake-up,
    so a reconciler that stops being eligible never issues another fetch.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        tick: Callable[[], Awaitable[None]],
        should_poll: Callable[[], bool],
        sleep: SleepFn
    ):
        self.name = name
        self.interval = interval
        self._tick = tick
        self._should_poll = should_poll
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._tick_waiters: List[asyncio.Future] = []

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    async def wait_for_tick(self) -> bool:
        """
        Wait until the next tick's fetch has completed.

        Returns:
            True once a tick finished, False if the timer stopped first
        """
        if not self.armed:
            return False
        future = asyncio.get_running_loop().create_future()
        self._tick_waiters.append(future)
        try:
            return await future
        finally:
            self._tick_waiters.remove(future)

    def _wake_waiters(self, ticked: bool) -> None:
        for future in self._tick_waiters:
            if not future.done():
                future.set_result(ticked)

    def arm(self) -> None:
        if self.armed:
            return
        logger.info(f"{self.name}: auto-refresh armed ({self.interval}s)")
        self._task = asyncio.get_running_loop().create_task(self._run())

    def disarm(self) -> Optional[asyncio.Task]:
        task, self._task = self._task, None
        if task is None or task.done():
            return None
        if task is asyncio.current_task():
            # The loop exits on its own once should_poll() is False
            return None
        task.cancel()
        logger.info(f"{self.name}: auto-refresh disarmed")
        return task

    async def _run(self) -> None:
        try:
            while self._should_poll():
                await self._sleep(self.interval)
                if not self._should_poll():
                    break
                await self._tick()
                self._wake_waiters(True)
        finally:
            self._wake_waiters(False)
            if self._task is asyncio.current_task():
                self._task = None
                logger.info(f"{self.name}: auto-refresh stopped")


async def _wait_cancelled(task: Optional[asyncio.Task]) -> None:
    if task is not None:
        await asyncio.wait([task])


class TicketReconciler:
    """
    Single-ticket observer for the detail view.

    Attributes:
        ticket: Last observed canonical snapshot (replaced whole, never patched)
        error: User-facing message of the last failed fetch, None after a success
        error_kind: Failure class of the last failed fetch
        loading: True until the first fetch completes
    """

    def __init__(
        self,
        client: "TicketClient",
        ticket_id: str,
        interval: Optional[float] = None,
        auto_refresh: bool = True,
        sleep: Optional[SleepFn] = None
    ):
        self.client = client
        self.ticket_id = ticket_id
        self.ticket: Optional[Ticket] = None
        self.error: Optional[str] = None
        self.error_kind: Optional[ErrorKind] = None
        self.loading = True
        self.fetch_count = 0

        self._auto_refresh = auto_refresh
        self._closed = False
        self._in_flight = 0
        self._timer = _PollingTimer(
            name=f"ticket {ticket_id}",
            interval=interval if interval is not None else get_settings().detail_poll_interval,
            tick=self._timer_tick,
            should_poll=self._should_poll,
            sleep=sleep or asyncio.sleep,
        )

    async def __aenter__(self) -> "TicketReconciler":
        await self.refresh()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def auto_refresh(self) -> bool:
        return self._auto_refresh

    @property
    def interval(self) -> float:
        return self._timer.interval

    @property
    def is_polling(self) -> bool:
        """True while a follow-up fetch is scheduled"""
        return self._timer.armed

    @property
    def fetch_in_flight(self) -> bool:
        return self._in_flight > 0

    async def wait_for_refresh(self) -> bool:
        """Wait for the next automatic fetch; False if polling stops first"""
        return await self._timer.wait_for_tick()

    async def refresh(self) -> Optional[Ticket]:
        """
        Fetch the ticket now and re-evaluate scheduling.

        Used for the initial observation and for manual refresh; a success
        after a failed poll re-arms the timer if the status is still
        polling-eligible.
        """
        await self._fetch()
        self._reschedule()
        return self.ticket

    def apply(self, ticket: Ticket) -> None:
        """
        Adopt the canonical ticket returned by a confirmed mutation.

        Args:
            ticket: Ticket echoed by update or resolve
        """
        if ticket.id != self.ticket_id:
            raise ValueError(f"Ticket {ticket.id} does not belong to reconciler for {self.ticket_id}")
        self._store(ticket)
        self.error = None
        self.error_kind = None
        self._reschedule()

    def set_auto_refresh(self, enabled: bool) -> None:
        """Enable or disable automatic polling; re-enabling waits a full interval"""
        self._auto_refresh = enabled
        self._reschedule()

    async def close(self) -> None:
        """Cancel any scheduled fetch; no fetch fires afterwards"""
        self._closed = True
        await _wait_cancelled(self._timer.disarm())

    def _should_poll(self) -> bool:
        return (
            not self._closed
            and self._auto_refresh
            and self.error is None
            and self.ticket is not None
            and is_polling_eligible(self.ticket.status)
        )

    def _reschedule(self) -> None:
        if self._should_poll():
            self._timer.arm()
        else:
            self._timer.disarm()

    async def _timer_tick(self) -> None:
        await self._fetch()

    async def _fetch(self) -> Optional[Ticket]:
        self._in_flight += 1
        self.fetch_count += 1
        try:
            ticket = await self.client.get_ticket(self.ticket_id)
        except TicketClientError as e:
            self.error = e.message
            self.error_kind = e.kind
            logger.warning(f"Fetch of ticket {self.ticket_id} failed: {e.message}")
            return None
        except Exception as e:
            self.error = UNEXPECTED_MESSAGE
            self.error_kind = ErrorKind.UNEXPECTED
            logger.exception(f"Fetch of ticket {self.ticket_id} failed unexpectedly: {e!r}")
            return None
        finally:
            self._in_flight -= 1
            self.loading = False

        self._store(ticket)
        self.error = None
        self.error_kind = None
        return ticket

    def _store(self, ticket: Ticket) -> None:
        previous = self.ticket.status if self.ticket is not None else None
        check_observed_transition(ticket.id, previous, ticket.status)
        self.ticket = ticket


class DashboardReconciler:
    """
    Collection observer for the dashboard: filtered ticket list plus stats.

    The list and the stats are independent failure domains: each keeps its
    own error and its own last good value. The timer only runs while the
    latest refresh or tick succeeded on at least one of them.

    Attributes:
        tickets: Items of the last successful list fetch for the current filters
        total: Total reported by the last successful list fetch
        stats: Last successful stats summary
        list_error: Message of the last failed list fetch
        stats_error: Message of the last failed stats fetch
    """

    def __init__(
        self,
        client: "TicketClient",
        filters: Optional[TicketListFilters] = None,
        interval: Optional[float] = None,
        auto_refresh: bool = True,
        sleep: Optional[SleepFn] = None
    ):
        self.client = client
        self.filters = filters or TicketListFilters()
        self.tickets: List[Ticket] = []
        self.total = 0
        self.stats: Optional[TicketStats] = None
        self.list_error: Optional[str] = None
        self.stats_error: Optional[str] = None
        self.loading = True

        self._auto_refresh = auto_refresh
        self._closed = False
        self._halted = False
        self._timer = _PollingTimer(
            name="dashboard",
            interval=interval if interval is not None else get_settings().dashboard_poll_interval,
            tick=self._timer_tick,
            should_poll=self._should_poll,
            sleep=sleep or asyncio.sleep,
        )

    async def __aenter__(self) -> "DashboardReconciler":
        await self.refresh()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def auto_refresh(self) -> bool:
        return self._auto_refresh

    @property
    def interval(self) -> float:
        return self._timer.interval

    @property
    def is_polling(self) -> bool:
        return self._timer.armed

    async def wait_for_refresh(self) -> bool:
        """Wait for the next automatic list and stats fetch; False if polling stops first"""
        return await self._timer.wait_for_tick()

    async def refresh(self) -> None:
        """Fetch list and stats now (initial load or manual refresh)"""
        list_ok, stats_ok = await self._fetch_all()
        self._halted = not list_ok and not stats_ok
        if self._halted:
            logger.warning("Dashboard list and stats both failed, auto-refresh not armed")
        self._reschedule()

    async def set_filters(self, **changes) -> None:
        """
        Change list filters and re-fetch the list immediately.

        Stats are not re-fetched; they never depend on filters.

        Args:
            **changes: status / urgency / category / limit / offset; None clears

        Raises:
            TicketValidationError: If a filter value is not valid
        """
        try:
            filters = TicketListFilters.model_validate({**self.filters.model_dump(), **changes})
        except ValidationError as e:
            raise validation_error_from(e) from e

        if filters == self.filters:
            return
        self.filters = filters
        if await self._fetch_list():
            self._halted = False
            self._reschedule()

    def set_auto_refresh(self, enabled: bool) -> None:
        self._auto_refresh = enabled
        self._reschedule()

    async def close(self) -> None:
        self._closed = True
        await _wait_cancelled(self._timer.disarm())

    def _should_poll(self) -> bool:
        return not self._closed and self._auto_refresh and not self._halted

    def _reschedule(self) -> None:
        if self._should_poll():
            self._timer.arm()
        else:
            self._timer.disarm()

    async def _timer_tick(self) -> None:
        list_ok, stats_ok = await self._fetch_all()
        if not list_ok and not stats_ok:
            logger.warning("Dashboard list and stats both failed, auto-refresh stopped")
            self._halted = True

    async def _fetch_all(self) -> Tuple[bool, bool]:
        list_ok, stats_ok = await asyncio.gather(self._fetch_list(), self._fetch_stats())
        self.loading = False
        return list_ok, stats_ok

    async def _fetch_list(self) -> bool:
        filters = self.filters
        try:
            listing = await self.client.list_tickets(filters)
        except TicketClientError as e:
            if filters == self.filters:
                self.list_error = e.message
            logger.warning(f"Ticket list fetch failed: {e.message}")
            return False
        except Exception as e:
            if filters == self.filters:
                self.list_error = UNEXPECTED_MESSAGE
            logger.exception(f"Ticket list fetch failed unexpectedly: {e!r}")
            return False

        if filters != self.filters:
            # Filters changed while this fetch was outstanding
            logger.info("Discarding ticket list fetched for stale filters")
            return True

        self.tickets = list(listing.items)
        self.total = listing.total
        self.list_error = None
        return True

    async def _fetch_stats(self) -> bool:
        try:
            stats = await self.client.get_stats()
        except TicketClientError as e:
            self.stats_error = e.message
            logger.warning(f"Stats fetch failed: {e.message}")
            return False
        except Exception as e:
            self.stats_error = UNEXPECTED_MESSAGE
            logger.exception(f"Stats fetch failed unexpectedly: {e!r}")
            return False

        self.stats = stats
        self.stats_error = None
        return True
