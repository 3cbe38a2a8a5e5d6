"""Tests for resource loading and the deferred-prediction model handle."""

from __future__ import annotations

import json
import threading

import pytest

from local_logistic.builder import build_model
from local_logistic.classifier import LocalLogisticRegression
from local_logistic.errors import SchemaError, ValidationError
from local_logistic.loader import ModelHandle, ModelState, load_resource


# ---------------------------------------------------------------------------
# load_resource
# ---------------------------------------------------------------------------


class TestLoadResource:
    """Tests for turning paths and strings into resource mappings."""

    def test_mapping_passes_through(self, yes_no_resource) -> None:
        assert load_resource(yes_no_resource) is yes_no_resource

    def test_path(self, model_file, mixed_grouped_resource) -> None:
        assert load_resource(model_file) == mixed_grouped_resource

    def test_path_as_string(self, model_file, mixed_grouped_resource) -> None:
        assert load_resource(str(model_file)) == mixed_grouped_resource

    def test_json_string(self, yes_no_resource) -> None:
        assert load_resource(json.dumps(yes_no_resource)) == yes_no_resource

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(SchemaError, match="Failed to read"):
            load_resource(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SchemaError, match="Failed to parse"):
            load_resource(path)

    def test_non_object_json(self, tmp_path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(SchemaError, match="Expected a JSON object"):
            load_resource(path)


# ---------------------------------------------------------------------------
# ModelHandle
# ---------------------------------------------------------------------------


class TestModelHandle:
    """Tests for the LOADING -> READY | FAILED lifecycle."""

    def test_starts_loading(self) -> None:
        handle = ModelHandle()
        assert handle.state is ModelState.LOADING
        assert handle.error is None
        with pytest.raises(RuntimeError, match="not ready"):
            handle.predictor

    def test_queued_predictions_replayed_in_order(self, yes_no_resource) -> None:
        handle = ModelHandle()
        finished: list[int] = []
        futures = []
        for age in range(5):
            future = handle.submit({"age": age})
            future.add_done_callback(lambda _, age=age: finished.append(age))
            futures.append(future)
        assert not any(f.done() for f in futures)

        local = LocalLogisticRegression(yes_no_resource)
        handle.mark_ready(local)

        assert handle.state is ModelState.READY
        assert finished == [0, 1, 2, 3, 4]
        for age, future in enumerate(futures):
            assert future.result().to_dict() == local.predict({"age": age}).to_dict()

    def test_submit_when_ready_runs_immediately(self, yes_no_resource) -> None:
        handle = ModelHandle()
        handle.mark_ready(build_model(yes_no_resource))
        future = handle.submit({"age": 50})
        assert future.done()
        assert future.result().probability == pytest.approx(0.5)
        assert handle.predict({"age": 50}).prediction == "yes"

    def test_failed_rejects_queued_and_later_requests(self) -> None:
        handle = ModelHandle()
        queued = handle.submit({"age": 1})
        error = SchemaError("bad model")
        handle.mark_failed(error)

        assert handle.state is ModelState.FAILED
        assert handle.error is error
        with pytest.raises(SchemaError, match="bad model"):
            queued.result(timeout=1)
        with pytest.raises(SchemaError, match="bad model"):
            handle.predict({"age": 2}, timeout=1)

    def test_failure_skips_cancelled_requests(self) -> None:
        handle = ModelHandle()
        cancelled = handle.submit({"age": 1})
        waiting = handle.submit({"age": 2})
        assert cancelled.cancel()

        handle.mark_failed(RuntimeError("boom"))

        assert handle.state is ModelState.FAILED
        assert cancelled.cancelled()
        with pytest.raises(RuntimeError, match="boom"):
            waiting.result(timeout=1)

    def test_prediction_error_stays_with_its_request(self, yes_no_resource) -> None:
        handle = ModelHandle()
        bad = handle.submit({"age": "old"})
        good = handle.submit({"age": 50})
        handle.mark_ready(LocalLogisticRegression(yes_no_resource))
        with pytest.raises(ValidationError):
            bad.result()
        assert good.result().prediction == "yes"

    @pytest.mark.parametrize("first", ["ready", "failed"])
    def test_single_transition(self, first: str, yes_no_resource) -> None:
        handle = ModelHandle()
        if first == "ready":
            handle.mark_ready(LocalLogisticRegression(yes_no_resource))
        else:
            handle.mark_failed(SchemaError("bad model"))
        with pytest.raises(RuntimeError, match="already left"):
            handle.mark_ready(LocalLogisticRegression(yes_no_resource))
        with pytest.raises(RuntimeError, match="already left"):
            handle.mark_failed(SchemaError("again"))

    def test_load_in_foreground(self, model_file) -> None:
        handle = ModelHandle.load(model_file, background=False)
        assert handle.state is ModelState.READY
        assert handle.predictor.objective_field == "000004"

    def test_load_in_background(self, model_file) -> None:
        handle = ModelHandle.load(model_file)
        future = handle.submit({"age": 10, "color": "green"})
        assert handle.wait(timeout=10) is ModelState.READY
        assert future.result(timeout=10).prediction in {"pos", "neg", "neutral"}

    def test_load_failure(self, tmp_path) -> None:
        handle = ModelHandle.load(tmp_path / "absent.json", background=False)
        assert handle.state is ModelState.FAILED
        assert isinstance(handle.error, SchemaError)
        with pytest.raises(SchemaError):
            handle.predict({"age": 1})

    def test_concurrent_submissions_while_loading(self, yes_no_resource) -> None:
        handle = ModelHandle()
        futures = []
        lock = threading.Lock()

        def _submit(age: int) -> None:
            future = handle.submit({"age": age})
            with lock:
                futures.append(future)

        threads = [threading.Thread(target=_submit, args=(age,)) for age in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        handle.mark_ready(LocalLogisticRegression(yes_no_resource))
        assert len(futures) == 20
        assert all(f.result(timeout=1).prediction in {"yes", "no"} for f in futures)
