"""A restartable background thread driving a ``work_loop``."""

from __future__ import annotations

import signal
import threading
from abc import ABC, abstractmethod
from enum import Enum

from .log import cwarn, set_thread_name

__all__ = ["WorkerState", "Worker"]


class WorkerState(Enum):
    """Lifecycle states of a worker thread."""

    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"
    STOPPED = "stopped"
    KILLING = "killing"


class Worker(ABC):
    """Runs :meth:`work_loop` on a dedicated thread that can be stopped and restarted.

    ``work_loop`` should poll :meth:`should_stop` and return once it is true.
    """

    def __init__(self, name: str, exit_on_error: bool = False) -> None:
        self.name = name
        self.exit_on_error = exit_on_error
        self._work_lock = threading.Lock()
        self._cond = threading.Condition()
        self._thread: threading.Thread | None = None
        self._state = WorkerState.STARTING

    def _set_state(self, state: WorkerState) -> None:
        self._state = state
        self._cond.notify_all()

    def start_working(self) -> None:
        """Start (or restart) the thread and wait until it is running."""
        with self._work_lock, self._cond:
            if self._thread is not None:
                if self._state is WorkerState.STOPPED:
                    self._set_state(WorkerState.STARTING)
            else:
                self._set_state(WorkerState.STARTING)
                self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
                self._thread.start()
            while self._state is WorkerState.STARTING:
                self._cond.wait()

    def trigger_stop_working(self) -> None:
        """Ask the thread to stop without waiting for it."""
        with self._work_lock, self._cond:
            if self._thread is not None and self._state is WorkerState.STARTED:
                self._set_state(WorkerState.STOPPING)

    def stop_working(self) -> None:
        """Ask the thread to stop and wait until its work loop has returned."""
        with self._work_lock, self._cond:
            if self._thread is None:
                return
            if self._state is WorkerState.STARTED:
                self._set_state(WorkerState.STOPPING)
            while self._state is not WorkerState.STOPPED:
                self._cond.wait()

    def should_stop(self) -> bool:
        """True whenever the work loop ought to return."""
        return self._state is not WorkerState.STARTED

    def close(self) -> None:
        """Terminate the thread for good and join it."""
        with self._work_lock:
            thread = self._thread
            if thread is None:
                return
            with self._cond:
                self._set_state(WorkerState.KILLING)
            thread.join()
            self._thread = None

    @abstractmethod
    def work_loop(self) -> None:
        """The work done on the thread; return when :meth:`should_stop` is true."""

    def _run(self) -> None:
        set_thread_name(self.name)
        while True:
            with self._cond:
                if self._state is WorkerState.KILLING:
                    return
                if self._state is WorkerState.STARTING:
                    self._set_state(WorkerState.STARTED)

            try:
                self.work_loop()
            except Exception as exc:
                cwarn("Exception thrown in Worker thread: ", exc)
                if self.exit_on_error:
                    cwarn("Terminating due to --exit")
                    signal.raise_signal(signal.SIGTERM)

            with self._cond:
                if self._state not in (WorkerState.KILLING, WorkerState.STARTING):
                    self._set_state(WorkerState.STOPPED)
                while self._state is WorkerState.STOPPED:
                    self._cond.wait()

    def __enter__(self) -> Worker:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()