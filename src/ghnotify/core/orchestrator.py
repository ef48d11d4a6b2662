"""Poll orchestration for pull request notifications.

This module is integration-agnostic. It only relies on ports for GitHub
queries, persistence, status, and notifications. One cycle runs in a strict
order:
1) Bail out when no token is configured
2) Resolve the authenticated user (cached per token by the client)
3) Fetch assigned and review-requested pull requests concurrently
4) Merge both lists, assigned first
5) Apply the repo/org allowlist
6) Diff against the seen-set
7) Deliver notifications unless suppressed
8) Mark every filtered pull request as seen and persist the seen-set
9) Prune the seen-set every few cycles
10) Publish status and tooltip
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine, List, Mapping, Optional

from ghnotify.core.config import AppSettings, validate_settings
from ghnotify.core.dedup import deduplicate_prs, filter_by_allowlist, find_new_prs
from ghnotify.core.errors import GitHubAPIError
from ghnotify.core.models import ConnectionResult, PullRequestRecord, TrayState
from ghnotify.core.ports import (
    CredentialStore,
    NotifierPort,
    RemoteQueryClient,
    SeenStore,
    SettingsStore,
    StatusSink,
)
from ghnotify.core.scheduling import ScheduledTask, Scheduler
from ghnotify.core.seen import DEFAULT_MAX_AGE_DAYS, SeenSet
from ghnotify.core.suppression import SuppressionPolicy

LOGGER = logging.getLogger(__name__)

APP_TITLE = "GitHub Notify"
PRUNE_EVERY_CYCLES = 12
RESUME_DELAY_SECONDS = 5.0


class PollOrchestrator:
    """Runs poll cycles on a fixed interval and owns the in-flight guard."""

    def __init__(
        self,
        remote: RemoteQueryClient,
        credentials: CredentialStore,
        settings_store: SettingsStore,
        seen_store: SeenStore,
        suppression: SuppressionPolicy,
        notifier: NotifierPort,
        status: StatusSink,
        scheduler: Scheduler,
        prune_every: int = PRUNE_EVERY_CYCLES,
        max_seen_age_days: int = DEFAULT_MAX_AGE_DAYS,
        resume_delay: float = RESUME_DELAY_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._remote = remote
        self._credentials = credentials
        self._settings_store = settings_store
        self._seen_store = seen_store
        self._suppression = suppression
        self._notifier = notifier
        self._status = status
        self._scheduler = scheduler
        self._prune_every = prune_every
        self._max_seen_age_days = max_seen_age_days
        self._resume_delay = resume_delay
        self._clock = clock

        self._poll_timer: Optional[ScheduledTask] = None
        self._snooze_timer: Optional[ScheduledTask] = None
        self._polling = False
        self._paused = False
        self._cycles = 0
        self._interval: Optional[int] = None
        # Set after a failed cycle: one category may have committed a new etag
        # while the other failed, so 304s no longer mean "nothing to diff".
        self._needs_full_diff = False
        self._tracked = 0
        self._state = TrayState.UNCONFIGURED
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_polling(self) -> bool:
        return self._polling

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def is_scheduled(self) -> bool:
        return self._poll_timer is not None and self._poll_timer.active

    @property
    def state(self) -> TrayState:
        return self._state

    @property
    def tracked_count(self) -> int:
        return self._tracked

    def _utc_now(self) -> datetime:
        return self._clock().astimezone(timezone.utc)

    def _set_status(self, state: TrayState, tooltip: Optional[str] = None) -> None:
        self._state = state
        self._status.set_status(state)
        if tooltip is not None:
            self._status.set_tooltip(tooltip)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -- poll cycle ---------------------------------------------------------

    async def poll_now(self) -> None:
        """Run one poll cycle unless one is already running or polling is paused."""

        # The flag is flipped before the first await, so on a single loop the
        # check-and-set cannot interleave with another caller.
        if self._polling or self._paused:
            return
        self._polling = True
        try:
            await self._run_cycle()
        finally:
            self._polling = False

    async def _run_cycle(self) -> None:
        token = self._credentials.get_token()
        if not token:
            LOGGER.info("No token configured, skipping poll")
            self._set_status(TrayState.UNCONFIGURED, f"{APP_TITLE} - No token configured")
            return

        try:
            self._remote.set_token(token)
            username = await self._remote.get_authenticated_user()
            settings = self._settings_store.get_settings()
            LOGGER.info("Polling for PRs assigned to %s", username)

            # Wait for both fetches even when one fails, so neither commits
            # its cache after the cycle has already been reported.
            results = await asyncio.gather(
                self._remote.fetch_assigned(username),
                self._remote.fetch_review_requested(username),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            assigned, review_requested = results

            if not (assigned.changed or review_requested.changed or self._needs_full_diff):
                LOGGER.info("No changes detected (304 responses)")
                self._cycles += 1
                if self._prune_due():
                    self.prune_seen()
                self._report_success(self._suppression.is_suppressed())
                return

            all_prs = deduplicate_prs(assigned.prs, review_requested.prs)
            filtered = filter_by_allowlist(all_prs, settings.filters)

            seen = SeenSet(self._seen_store.get_seen_prs(), now=self._utc_now)
            new_prs = find_new_prs(filtered, seen)
            LOGGER.info("Found %s total PRs, %s new", len(filtered), len(new_prs))

            suppressed = self._suppression.is_suppressed()
            if new_prs:
                if suppressed:
                    LOGGER.info("Notifications suppressed, %s new PRs not announced", len(new_prs))
                else:
                    await self._deliver(new_prs, settings)

            # Suppression gates delivery only; tracking always moves forward.
            seen.mark_seen(pr.key for pr in filtered)
            self._cycles += 1
            if self._prune_due():
                seen.prune(self._max_seen_age_days)
            self._seen_store.save_seen_prs(seen.entries())

            self._tracked = len(filtered)
            self._needs_full_diff = False
            self._report_success(suppressed)
        except Exception as exc:
            self._report_failure(exc)

    async def _deliver(self, prs: List[PullRequestRecord], settings: AppSettings) -> None:
        try:
            await self._notifier.dispatch(
                prs,
                settings.notification_mode,
                settings.notification_sound,
                settings.custom_sound_path,
            )
        except Exception:
            LOGGER.exception("Notification delivery failed for %s PRs", len(prs))

    def _report_success(self, suppressed: bool) -> None:
        checked_at = self._clock().strftime("%H:%M:%S")
        state = TrayState.QUIET if suppressed else TrayState.NORMAL
        self._set_status(
            state,
            f"{APP_TITLE} - {self._tracked} PRs tracked\nLast check: {checked_at}",
        )

    def _prune_due(self) -> bool:
        return self._cycles % self._prune_every == 0

    def _report_failure(self, exc: Exception) -> None:
        self._needs_full_diff = True
        status_code = getattr(exc, "status_code", None)
        if isinstance(exc, GitHubAPIError):
            LOGGER.warning("Poll error (status=%s): %s", status_code, exc)
        else:
            LOGGER.exception("Poll error: %s", exc)

        if status_code == 401:
            self._set_status(TrayState.ERROR, f"{APP_TITLE} - Token invalid")
            # A rejected token needs reconfiguration; polling again would only fail.
            self.stop_polling()
            return
        self._set_status(TrayState.ERROR, f"{APP_TITLE} - Error: {exc}")

    # -- scheduling ---------------------------------------------------------

    def request_poll(self) -> asyncio.Task:
        """Start a cycle in the background, e.g. for a "Check now" action."""

        return self._spawn(self.poll_now())

    def _on_tick(self) -> None:
        self.request_poll()

    def start_polling(self) -> asyncio.Task:
        """Poll immediately, then on the configured interval. Returns the first cycle."""

        self.stop_polling()
        settings = self._settings_store.get_settings()
        LOGGER.info("Starting polling every %ss", settings.poll_interval)
        self._interval = settings.poll_interval
        self._poll_timer = self._scheduler.call_every(settings.poll_interval, self._on_tick)
        return self._spawn(self.poll_now())

    def stop_polling(self) -> None:
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None
            LOGGER.info("Polling stopped")

    def restart_polling(self) -> asyncio.Task:
        self.prune_seen()
        return self.start_polling()

    def pause(self) -> None:
        self._paused = True
        self.stop_polling()
        LOGGER.info("Polling paused")

    def resume(self) -> asyncio.Task:
        self._paused = False
        LOGGER.info("Polling resumed")
        return self.start_polling()

    def toggle_pause(self) -> None:
        if self._paused:
            self.resume()
        else:
            self.pause()

    def handle_system_resume(self) -> None:
        """Schedule an extra cycle shortly after the machine wakes up."""

        LOGGER.info("System resumed from sleep, polling in %ss", self._resume_delay)
        self._scheduler.call_later(self._resume_delay, self._on_resume_tick)

    def _on_resume_tick(self) -> None:
        if self._paused or not self._credentials.has_token():
            return
        self._on_tick()

    def prune_seen(self, max_age_days: Optional[int] = None) -> int:
        seen = SeenSet(self._seen_store.get_seen_prs(), now=self._utc_now)
        removed = seen.prune(max_age_days or self._max_seen_age_days)
        if removed:
            self._seen_store.save_seen_prs(seen.entries())
        return removed

    # -- snooze -------------------------------------------------------------

    def activate_snooze(self, duration_minutes: float) -> float:
        until = self._suppression.activate_snooze(duration_minutes)
        self._arm_snooze_timer(until)
        until_label = datetime.fromtimestamp(until).strftime("%H:%M")
        self._set_status(TrayState.QUIET, f"{APP_TITLE} - Snoozed until {until_label}")
        return until

    def cancel_snooze(self) -> None:
        if self._snooze_timer is not None:
            self._snooze_timer.cancel()
            self._snooze_timer = None
        self._suppression.cancel_snooze()
        self._refresh_quiet_status()

    def restore_snooze(self) -> bool:
        """Re-arm the expiry callback for a snooze persisted by a previous run."""

        until = self._suppression.snooze_until()
        if not until:
            return False
        LOGGER.info("Restoring snooze until %s", datetime.fromtimestamp(until).isoformat())
        self._arm_snooze_timer(until)
        self._set_status(TrayState.QUIET)
        return True

    def _arm_snooze_timer(self, until: float) -> None:
        if self._snooze_timer is not None:
            self._snooze_timer.cancel()
        delay = until - self._clock().timestamp()
        self._snooze_timer = self._scheduler.call_later(delay, self._on_snooze_expired)

    def _on_snooze_expired(self) -> None:
        self._snooze_timer = None
        LOGGER.info("Snooze ended")
        self._refresh_quiet_status()

    def _refresh_quiet_status(self) -> None:
        if self._state in (TrayState.ERROR, TrayState.UNCONFIGURED):
            return
        suppressed = self._suppression.is_suppressed()
        self._set_status(TrayState.QUIET if suppressed else TrayState.NORMAL)

    # -- settings and credentials -------------------------------------------

    def update_settings(self, raw: Mapping[str, Any]) -> AppSettings:
        """Validate, save, and apply new settings. Invalid settings raise SettingsError."""

        settings = validate_settings(raw)
        self._settings_store.save_settings(settings)
        LOGGER.info("Settings changed")
        if not self._paused and self.is_scheduled:
            self.restart_polling()
        return settings

    def reload(self) -> None:
        """Apply settings and snooze state written by another process (the CLI)."""

        settings = self._settings_store.get_settings()
        if not self._paused and self.is_scheduled and settings.poll_interval != self._interval:
            LOGGER.info("Poll interval changed to %ss", settings.poll_interval)
            self.restart_polling()

        until = self._suppression.snooze_until()
        if until:
            self._arm_snooze_timer(until)
        elif self._snooze_timer is not None:
            self._snooze_timer.cancel()
            self._snooze_timer = None
        self._refresh_quiet_status()

    async def test_connection(self, token: str) -> ConnectionResult:
        return await self._remote.test_connection(token)

    async def aclose(self) -> None:
        self.stop_polling()
        if self._snooze_timer is not None:
            self._snooze_timer.cancel()
            self._snooze_timer = None
        pending = list(self._tasks)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
