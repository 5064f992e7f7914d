import json
from types import SimpleNamespace

import pytest

from polling.models import UnsupportedWatchEventError
from workers.polling import dispatch_poll_jobs, load_poll_jobs, poll_watch_job

from conftest import StubInFlowClient


def _settings(tmp_path, **overrides) -> SimpleNamespace:
    values = {
        "poll_jobs": "",
        "poll_interval_seconds": 300,
        "poll_checkpoint_dir": str(tmp_path / "checkpoints"),
        "poll_page_size": 50,
        "poll_event_task": "",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _capture_send_task(monkeypatch) -> list[tuple[str, dict, dict]]:
    sent: list[tuple[str, dict, dict]] = []

    def _send_task(task_name: str, kwargs: dict, **options):
        sent.append((task_name, kwargs, options))
        return None

    monkeypatch.setattr("workers.polling.celery_app.send_task", _send_task)
    return sent


def _use_stub_client(monkeypatch, stub: StubInFlowClient) -> None:
    class _Factory:
        @classmethod
        def from_settings(cls, settings, **kwargs):
            return stub

    monkeypatch.setattr("integrations.inflow.InFlowClient", _Factory)


class TestLoadPollJobs:
    def test_empty_setting_means_no_jobs(self):
        assert load_poll_jobs("") == []
        assert load_poll_jobs("   ") == []

    def test_strings_and_objects(self):
        jobs = load_poll_jobs(
            json.dumps(
                [
                    "salesOrder.fulfilled",
                    {"event": "inventory.changed", "options": {"location_filter": "Main"}},
                    {"event": "inventory.changed", "job_id": "all-stock"},
                ]
            )
        )

        assert [job.key for job in jobs] == [
            "salesOrder.fulfilled",
            "inventory.changed:location=Main",
            "all-stock",
        ]

    def test_rejects_non_list(self):
        with pytest.raises(ValueError, match="JSON list"):
            load_poll_jobs('{"event": "product.created"}')

    def test_rejects_bad_entries(self):
        with pytest.raises(ValueError, match="Invalid poll job entry"):
            load_poll_jobs("[42]")

    def test_rejects_duplicate_keys(self):
        with pytest.raises(ValueError, match="Duplicate poll job keys"):
            load_poll_jobs('["product.created", {"event": "product.created"}]')

    def test_unsupported_event(self):
        with pytest.raises(UnsupportedWatchEventError):
            load_poll_jobs('["customer.created"]')


class TestDispatchPollJobs:
    def test_fans_out_one_task_per_job(self, tmp_path, monkeypatch):
        settings = _settings(
            tmp_path,
            poll_jobs='["salesOrder.fulfilled", {"event": "product.created", "options": {"category_filter": "Bolts"}}]',
            poll_interval_seconds=120,
        )
        monkeypatch.setattr("core.config.get_settings", lambda: settings)
        sent = _capture_send_task(monkeypatch)

        result = dispatch_poll_jobs.run()

        assert result["status"] == "success"
        assert result["job_count"] == 2
        assert result["jobs"] == ["salesOrder.fulfilled", "product.created:category=Bolts"]
        assert {task for task, _, _ in sent} == {"workers.polling.poll_watch_job"}
        assert sent[1][1] == {
            "job": {
                "event": "product.created",
                "options": {"location_filter": None, "category_filter": "Bolts"},
                "job_id": None,
            }
        }
        assert all(options["expires"] == 120 for _, _, options in sent)

    def test_invalid_jobs_fail_without_dispatch(self, tmp_path, monkeypatch):
        monkeypatch.setattr("core.config.get_settings", lambda: _settings(tmp_path, poll_jobs='["nope.created"]'))
        sent = _capture_send_task(monkeypatch)

        result = dispatch_poll_jobs.run()

        assert result["status"] == "failed"
        assert result["reason"] == "invalid_poll_jobs"
        assert sent == []


class TestPollWatchJob:
    def test_bootstrap_then_routes_events(self, tmp_path, monkeypatch):
        settings = _settings(tmp_path, poll_event_task="workers.handlers.on_inflow_event")
        monkeypatch.setattr("core.config.get_settings", lambda: settings)
        stub = StubInFlowClient().queue(
            [{"entityId": "so1", "status": "Open"}],
            [{"entityId": "so1", "status": "Fulfilled"}],
        )
        _use_stub_client(monkeypatch, stub)
        sent = _capture_send_task(monkeypatch)
        job = {"event": "salesOrder.fulfilled"}

        first = poll_watch_job.run(job=job)
        second = poll_watch_job.run(job=job)

        assert first["status"] == "bootstrapped"
        assert first["events"] == []
        assert second["status"] == "events"
        assert second["event_count"] == 1
        assert second["routed_count"] == 1
        assert sent == [
            (
                "workers.handlers.on_inflow_event",
                {
                    "job_key": "salesOrder.fulfilled",
                    "event": "salesOrder.fulfilled",
                    "data": {"entityId": "so1", "status": "Fulfilled"},
                },
                {},
            )
        ]
        assert list((tmp_path / "checkpoints").glob("*.json"))

    def test_events_not_routed_without_event_task(self, tmp_path, monkeypatch):
        monkeypatch.setattr("core.config.get_settings", lambda: _settings(tmp_path))
        _use_stub_client(monkeypatch, StubInFlowClient().queue([{"entityId": "p1"}], [{"entityId": "p1"}, {"entityId": "p2"}]))
        sent = _capture_send_task(monkeypatch)

        poll_watch_job.run(job={"event": "product.created"})
        result = poll_watch_job.run(job={"event": "product.created"})

        assert result["event_count"] == 1
        assert result["routed_count"] == 0
        assert result["events"][0]["json"]["data"] == {"entityId": "p2"}
        assert sent == []

    def test_fetch_failure_is_reported_not_raised(self, tmp_path, monkeypatch):
        from integrations.inflow import InFlowAPIError

        monkeypatch.setattr("core.config.get_settings", lambda: _settings(tmp_path))
        _use_stub_client(monkeypatch, StubInFlowClient().queue(InFlowAPIError("inFlow API Request Failed: timeout")))

        result = poll_watch_job.run(job={"event": "product.created"})

        assert result["status"] == "failed"
        assert "timeout" in result["error"]
        assert not (tmp_path / "checkpoints").exists()

    def test_unsupported_event_raises(self, tmp_path, monkeypatch):
        monkeypatch.setattr("core.config.get_settings", lambda: _settings(tmp_path))

        with pytest.raises(UnsupportedWatchEventError):
            poll_watch_job.run(job={"event": "customer.deleted"})
