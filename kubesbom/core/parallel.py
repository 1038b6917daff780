import contextvars
import threading
from collections.abc import Callable
from collections.abc import Sequence
from concurrent.futures import as_completed
from concurrent.futures import Future
from concurrent.futures import ThreadPoolExecutor
from typing import Generic
from typing import TypeVar

from rich.progress import BarColumn
from rich.progress import MofNCompleteColumn
from rich.progress import Progress
from rich.progress import SpinnerColumn
from rich.progress import TaskProgressColumn
from rich.progress import TextColumn
from rich.progress import TimeElapsedColumn
from rich.progress import TimeRemainingColumn

from kubesbom.core.exceptions import PipelineError
from kubesbom.core.exceptions import ScanCancelledError
from kubesbom.core.logging import console


T = TypeVar('T')
U = TypeVar('U')

_SKIPPED = object()


class Pipeline(Generic[T, U]):
    """
    Run ``on_item`` over ``items`` on a bounded thread pool.

    Results are handed to ``on_result`` from the calling thread only, so the
    callback may append to plain lists without locking. The first exception
    raised by either callback stops the pipeline: queued items are cancelled,
    items already running finish, and ``PipelineError`` is raised. A
    ``PipelineError`` raised by a callback is passed through as is.

    Each item runs in a copy of the caller's context, so context variables
    (such as a muted log state) reach the worker threads.
    """

    def __init__(
        self,
        workers: int | None,
        progress: bool,
        items: Sequence[T],
        on_item: Callable[[T], U],
        on_result: Callable[[U], None] | None = None,
        description: str = 'Scanning...',
    ):
        self.workers = workers if workers and workers > 0 else 1
        self.progress = progress
        self.items = items
        self.on_item = on_item
        self.on_result = on_result or (lambda _: None)
        self.description = description
        self.skipped = 0
        self._stop = threading.Event()

    def _run_item(self, item: T, cancel: threading.Event | None):
        if self._stop.is_set() or (cancel is not None and cancel.is_set()):
            return _SKIPPED
        return self.on_item(item)

    def _abort(self, futures: list[Future]) -> None:
        self._stop.set()
        for pending in futures:
            pending.cancel()

    def run(self, cancel: threading.Event | None = None) -> None:
        self.skipped = 0
        self._stop.clear()
        with Progress(
            SpinnerColumn(),
            TextColumn('[progress.description]{task.description}'),
            BarColumn(),
            TaskProgressColumn(),
            MofNCompleteColumn(),
            TextColumn('•'),
            TimeElapsedColumn(),
            TextColumn('•'),
            TimeRemainingColumn(),
            console=console,
            disable=not self.progress,
            transient=True,
        ) as progress:
            task = progress.add_task(self.description, total=len(self.items))

            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                # One context copy per item: a Context cannot be entered by two threads at once
                futures: list[Future] = [
                    executor.submit(
                        contextvars.copy_context().run, self._run_item, item, cancel,
                    )
                    for item in self.items
                ]
                try:
                    for future in as_completed(futures):
                        result = future.result()
                        if result is _SKIPPED:
                            self.skipped += 1
                        else:
                            self.on_result(result)
                        progress.advance(task)
                except (KeyboardInterrupt, PipelineError):
                    self._abort(futures)
                    raise
                except Exception as e:
                    self._abort(futures)
                    raise PipelineError(f"pipeline error: {e}") from e

        if self.skipped and cancel is not None and cancel.is_set():
            raise ScanCancelledError(
                f"scan cancelled: {self.skipped} of {len(self.items)} items not processed",
            )
