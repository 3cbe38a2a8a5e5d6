"""Loading model resources and deferring predictions until a model is ready.

``load_resource`` turns a path, a JSON string, or an already decoded dict
into the resource mapping the builder consumes.

``ModelHandle`` covers the window while a model is still being loaded.
Its state moves once from ``LOADING`` to either ``READY`` or ``FAILED``:

- predictions submitted while loading are queued and run in submission
  order, exactly once, when the model becomes ready
- when loading fails every queued prediction fails with the load error,
  and so does every later submission
"""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from collections.abc import Mapping
from concurrent.futures import Future
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from .classifier import LocalLogisticRegression
from .errors import SchemaError
from .models import LogisticModel, Prediction

logger = logging.getLogger(__name__)

ResourceSource = Union[Mapping, str, Path]


def load_resource(source: ResourceSource) -> Mapping:
    """Return the decoded JSON resource for ``source``.

    Args:
        source: A decoded mapping, a JSON string, or a path to a JSON file.

    Raises:
        SchemaError: If the file cannot be read or does not hold JSON.
    """
    if isinstance(source, Mapping):
        return source

    if isinstance(source, str) and source.lstrip().startswith("{"):
        text, origin = source, "<string>"
    else:
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise SchemaError(f"Failed to read local logistic regression file {path}: {e}") from e
        origin = str(path)

    try:
        resource = json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaError(f"Failed to parse the JSON logistic regression in {origin}: {e}") from e
    if not isinstance(resource, Mapping):
        raise SchemaError(f"Expected a JSON object in {origin}")
    logger.debug("Loaded logistic regression JSON from %s", origin)
    return resource


class ModelState(str, Enum):
    """Lifecycle of a ``ModelHandle``."""

    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ModelHandle:
    """A predictor that may still be loading.

    Example::

        handle = ModelHandle.load("logreg.json")
        future = handle.submit({"age": 50})   # queued if still loading
        print(future.result().prediction)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._state = ModelState.LOADING
        self._predictor: Optional[LocalLogisticRegression] = None
        self._error: Optional[BaseException] = None
        self._pending: deque[tuple[Mapping[str, Any], Future]] = deque()

    @classmethod
    def load(cls, source: ResourceSource, background: bool = True) -> "ModelHandle":
        """Create a handle and build the model from ``source``.

        Args:
            source: Anything ``load_resource`` accepts.
            background: Build in a worker thread and return immediately.
        """
        handle = cls()

        def _run() -> None:
            try:
                model = LocalLogisticRegression(load_resource(source))
            except Exception as e:
                handle.mark_failed(e)
            else:
                handle.mark_ready(model)

        if background:
            threading.Thread(target=_run, name="local-logistic-loader", daemon=True).start()
        else:
            _run()
        return handle

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def predictor(self) -> LocalLogisticRegression:
        """The ready predictor.

        Raises:
            RuntimeError: If the handle is not ready.
        """
        if self._state is not ModelState.READY or self._predictor is None:
            raise RuntimeError(f"Model is not ready (state: {self._state.value})")
        return self._predictor

    def wait(self, timeout: Optional[float] = None) -> ModelState:
        """Block until loading finishes or ``timeout`` expires."""
        self._done.wait(timeout)
        return self._state

    def mark_ready(self, model: Union[LocalLogisticRegression, LogisticModel]) -> None:
        """Switch to ``READY`` and replay queued predictions in order.

        Raises:
            RuntimeError: If the handle already left ``LOADING``.
        """
        if not isinstance(model, LocalLogisticRegression):
            model = LocalLogisticRegression(model)
        with self._lock:
            self._check_loading()
            self._predictor = model
            logger.info("Model ready; replaying %d queued predictions", len(self._pending))
        # Submissions that arrive while draining are queued behind the rest
        while True:
            with self._lock:
                if not self._pending:
                    self._state = ModelState.READY
                    break
                input_data, future = self._pending.popleft()
            self._run(input_data, future)
        self._done.set()

    def mark_failed(self, error: BaseException) -> None:
        """Switch to ``FAILED`` and reject every queued prediction.

        Raises:
            RuntimeError: If the handle already left ``LOADING``.
        """
        with self._lock:
            self._check_loading()
            self._error = error
            self._state = ModelState.FAILED
            pending, self._pending = self._pending, deque()
        self._done.set()
        logger.error("Model failed to load: %s", error)
        for _, future in pending:
            if future.set_running_or_notify_cancel():
                future.set_exception(error)

    def submit(self, input_data: Mapping[str, Any]) -> Future:
        """Request a prediction; resolved now or once the model is ready.

        Returns:
            A ``Future`` resolving to a ``Prediction``, or to the
            prediction or load error.
        """
        future: Future = Future()
        with self._lock:
            if self._state is ModelState.LOADING:
                self._pending.append((input_data, future))
                return future
        if self._state is ModelState.FAILED:
            future.set_exception(self._error)
        else:
            self._run(input_data, future)
        return future

    def predict(self, input_data: Mapping[str, Any], timeout: Optional[float] = None) -> Prediction:
        """Blocking shortcut for ``submit(input_data).result(timeout)``."""
        return self.submit(input_data).result(timeout)

    def _check_loading(self) -> None:
        if self._state is not ModelState.LOADING or self._predictor is not None:
            raise RuntimeError(f"Model already left the loading state ({self._state.value})")

    def _run(self, input_data: Mapping[str, Any], future: Future) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(self._predictor.predict(input_data))
        except Exception as e:
            future.set_exception(e)
