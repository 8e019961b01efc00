"""
Export job service with thread-per-job architecture.

Each export runs in its own background thread and talks back to request
handlers only through the ExportJobStore.

Thread Safety:
    - CheckupSnapshot is frozen - safe to hand to the export thread
    - ExportJobState is frozen; the export thread builds a new one for every
      progress emission and swaps it into the store under a lock
    - CancellationToken is the only object both sides write to

One job per checkup:
    Submitting a new export for a checkup that is still being exported
    cancels the running job and waits (up to ``join_timeout`` seconds) for
    its thread to stop before the new one starts. If it is still running
    after that, the new export is refused with ExportJobConflictError.
    Submits for the same checkup are serialised by a per-checkup lock, so
    two threads never write into the same checkup's export directory.

Usage:
    # At app startup
    job_service = ExportJobService(orchestrator)

    # On export request (main thread)
    job_id = job_service.submit(snapshot, options)

    # Polling (main thread)
    state = job_service.get_state(job_id)
    if state.status.is_terminal:
        ...

    # At app shutdown
    job_service.shutdown()
"""

from __future__ import annotations

import threading
import uuid
from typing import Dict, List, Optional

from core.cancellation import CancellationToken
from core.exceptions import (
    ExportCancelledError,
    ExportJobConflictError,
    ExportJobNotFoundError,
    ExportValidationError,
    QReportExportError,
)
from models.checkup import CheckupSnapshot
from models.export_job import ExportJobState
from models.export_options import ExportOptions
from services.export_orchestrator import ExportOrchestrator
from logging_config import get_logger, get_job_logger, set_thread_name


# Module logger
logger = get_logger(__name__)


class ExportJobStore:
    """
    Thread-safe storage for export job states.

    Export threads WRITE states here, request handlers READ them. States are
    kept after the job finishes so a late poll still sees the outcome.
    """

    def __init__(self):
        self._states: Dict[str, ExportJobState] = {}
        self._lock = threading.Lock()

    def put(self, state: ExportJobState) -> None:
        """Store (or replace) the state of a job."""
        with self._lock:
            self._states[state.job_id] = state

    def get(self, job_id: str) -> Optional[ExportJobState]:
        with self._lock:
            return self._states.get(job_id)

    def list_states(self) -> List[ExportJobState]:
        """All known jobs, most recently submitted first."""
        with self._lock:
            states = list(self._states.values())
        return sorted(states, key=lambda state: state.submitted_at, reverse=True)

    def clear(self) -> int:
        """
        Remove all stored states.

        Returns:
            Number of states removed
        """
        with self._lock:
            count = len(self._states)
            self._states.clear()
        logger.info(f"Cleared {count} export job states from store")
        return count


class ExportJobService:
    """
    Runs checkup exports in background threads.

    Attributes:
        store: ExportJobStore holding every job's latest state
    """

    def __init__(self, orchestrator: ExportOrchestrator, join_timeout: float = 10.0):
        """
        Initialize the job service.

        Args:
            orchestrator: Orchestrator shared by all job threads
            join_timeout: Max seconds to wait for a replaced job to stop
        """
        self._orchestrator = orchestrator
        self._join_timeout = join_timeout
        self._store = ExportJobStore()

        # Track active job threads and their tokens
        self._active_threads: Dict[str, threading.Thread] = {}
        self._tokens: Dict[str, CancellationToken] = {}
        self._jobs_by_checkup: Dict[str, str] = {}
        self._checkup_locks: Dict[str, threading.Lock] = {}
        self._threads_lock = threading.Lock()
        self._accepting = True

        logger.info("ExportJobService initialized")

    @property
    def store(self) -> ExportJobStore:
        return self._store

    @property
    def is_accepting_jobs(self) -> bool:
        """False once shutdown() has been called."""
        return self._accepting

    def submit(
        self,
        snapshot: CheckupSnapshot,
        options: ExportOptions,
        job_id: Optional[str] = None,
    ) -> str:
        """
        Start an export in a new thread.

        Args:
            snapshot: Checkup to export
            options: Export options
            job_id: Optional job ID (generated if not provided)

        Returns:
            job_id (UUID string)

        Raises:
            RuntimeError: If the service has been shut down
            ExportJobConflictError: If the checkup's previous export did not
                stop within ``join_timeout``

        Note:
            Returns once the thread has started, after waiting for any
            export it replaces. Poll get_state(job_id) for progress.
        """
        if not self._accepting:
            raise RuntimeError("ExportJobService is shut down")

        if job_id is None:
            job_id = str(uuid.uuid4())

        with self._lock_for_checkup(snapshot.checkup_id):
            self._replace_running_job(snapshot.checkup_id)

            logger.info(
                f"Submitting export {job_id[:8]} for checkup {snapshot.checkup_id[:8]} "
                f"({[f.value for f in options.ordered_formats]})"
            )

            token = CancellationToken()
            self._store.put(ExportJobState.create_pending(job_id, snapshot.checkup_id))

            thread = threading.Thread(
                target=self._job_thread_main,
                args=(job_id, snapshot, options, token),
                name=f"Export-{job_id[:8]}",
                daemon=True
            )

            with self._threads_lock:
                self._active_threads[job_id] = thread
                self._tokens[job_id] = token
                self._jobs_by_checkup[snapshot.checkup_id] = job_id

            thread.start()
        return job_id

    def get_state(self, job_id: str) -> ExportJobState:
        """
        Latest state of a job.

        Raises:
            ExportJobNotFoundError: If the job id is unknown
        """
        state = self._store.get(job_id)
        if state is None:
            raise ExportJobNotFoundError(job_id)
        return state

    def list_states(self) -> List[ExportJobState]:
        return self._store.list_states()

    def cancel(self, job_id: str) -> bool:
        """
        Request cancellation of a job.

        The export stops at the next stage or photo boundary.

        Returns:
            True if a running job was signalled, False if it had already finished

        Raises:
            ExportJobNotFoundError: If the job id is unknown
        """
        state = self.get_state(job_id)
        if state.status.is_terminal:
            return False

        with self._threads_lock:
            token = self._tokens.get(job_id)
        if token is None:
            return False

        token.cancel()
        logger.info(f"Cancellation requested for export {job_id[:8]}")
        return True

    def active_job_for(self, checkup_id: str) -> Optional[str]:
        """Job id of the export still running for ``checkup_id``, if any."""
        with self._threads_lock:
            job_id = self._jobs_by_checkup.get(checkup_id)
            thread = self._active_threads.get(job_id) if job_id else None
            if thread is not None and thread.is_alive():
                return job_id
        return None

    def is_job_running(self, job_id: str) -> bool:
        with self._threads_lock:
            thread = self._active_threads.get(job_id)
            return thread is not None and thread.is_alive()

    def wait(self, job_id: str, timeout: Optional[float] = None) -> ExportJobState:
        """
        Block until the job's thread finishes (or ``timeout`` expires).

        Returns:
            The job state at return time, terminal unless the timeout expired

        Raises:
            ExportJobNotFoundError: If the job id is unknown
        """
        state = self.get_state(job_id)
        with self._threads_lock:
            thread = self._active_threads.get(job_id)
        if thread is not None:
            thread.join(timeout=timeout)
            state = self.get_state(job_id)
        return state

    def shutdown(self, timeout_per_thread: float = 5.0) -> None:
        """
        Cancel running exports and wait for their threads.

        Call this during application shutdown.

        Args:
            timeout_per_thread: Max seconds to wait per thread
        """
        self._accepting = False
        with self._threads_lock:
            active = list(self._active_threads.items())
            tokens = list(self._tokens.values())

        if not active:
            logger.info("No active export threads to wait for")
            return

        for token in tokens:
            token.cancel()

        logger.info(f"Waiting for {len(active)} export threads to stop...")

        for job_id, thread in active:
            if thread.is_alive():
                thread.join(timeout=timeout_per_thread)
                if thread.is_alive():
                    logger.warning(f"Export thread {job_id[:8]} did not stop in time")

        logger.info("Export job service shutdown complete")

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _lock_for_checkup(self, checkup_id: str) -> threading.Lock:
        with self._threads_lock:
            return self._checkup_locks.setdefault(checkup_id, threading.Lock())

    def _replace_running_job(self, checkup_id: str) -> None:
        """
        Cancel the running export for ``checkup_id`` and wait for it.

        Called with the checkup's lock held.

        Raises:
            ExportJobConflictError: If it is still running after ``join_timeout``
        """
        previous = self.active_job_for(checkup_id)
        if previous is None:
            return

        logger.info(f"Export {previous[:8]} replaced by a new request for checkup {checkup_id[:8]}")
        self.cancel(previous)

        with self._threads_lock:
            thread = self._active_threads.get(previous)
        if thread is not None:
            thread.join(timeout=self._join_timeout)
            if thread.is_alive():
                logger.warning(
                    f"Replaced export {previous[:8]} still running after {self._join_timeout}s, "
                    f"refusing new export for checkup {checkup_id[:8]}"
                )
                raise ExportJobConflictError(checkup_id, previous)

    def _job_thread_main(
        self,
        job_id: str,
        snapshot: CheckupSnapshot,
        options: ExportOptions,
        token: CancellationToken,
    ) -> None:
        """
        Main function of an export thread.

        Args:
            job_id: UUID for this job
            snapshot: Immutable checkup snapshot
            options: Export options
            token: Cancellation token shared with the service
        """
        set_thread_name(f"Export-{job_id[:8]}")
        job_logger = get_job_logger(job_id)
        job_logger.info(f"Export thread starting for checkup {snapshot.checkup_id[:8]}")

        state = self._store.get(job_id)
        try:
            if token.is_cancelled:
                state = state.cancelled()
                job_logger.info("Export cancelled before it started")
                return

            latest = None
            for latest in self._orchestrator.run(snapshot, options, token):
                state = state.with_progress(latest)
                self._store.put(state)

            if latest is not None and latest.cancelled:
                state = state.cancelled()
            else:
                state = state.completed()
            job_logger.info(f"Export finished: status={state.status.value}")

        except ExportValidationError as e:
            job_logger.warning(f"Export rejected: {e.messages}")
            state = state.failed(e.message, tuple(e.messages))

        except ExportCancelledError:
            state = state.cancelled()
            job_logger.info("Export cancelled")

        except QReportExportError as e:
            job_logger.error(f"Export failed: {e}")
            state = state.failed(e.message)

        except Exception as e:
            job_logger.error(f"Export failed: {e}", exc_info=True)
            state = state.failed(str(e) or type(e).__name__)

        finally:
            self._store.put(state)

            with self._threads_lock:
                self._active_threads.pop(job_id, None)
                self._tokens.pop(job_id, None)
                if self._jobs_by_checkup.get(snapshot.checkup_id) == job_id:
                    self._jobs_by_checkup.pop(snapshot.checkup_id, None)

            job_logger.info("Export thread exiting")
