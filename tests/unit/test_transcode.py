"""Tests for conversion to the orchestrator wire format."""

import pytest
from datetime import date, timedelta

from nomad_bench.jobs.models import Job, Resources, RestartMode, RestartPolicy, Task, TaskGroup
from nomad_bench.jobs.jobspec import parse_file, write_manifest
from nomad_bench.jobs.transcode import (
    TranscodeError,
    convert_free_form,
    duration_to_ns,
    to_api_job,
)


def make_job(config=None, restart=None):
    return Job(
        id="bench",
        name="bench",
        datacenters=["dc1"],
        groups=[
            TaskGroup(
                name="cache",
                count=2,
                restart=restart,
                tasks=[
                    Task(
                        name="redis",
                        driver="docker",
                        config=config if config is not None else {"image": "redis:latest"},
                        resources=Resources(cpu=100, memory_mb=64),
                    )
                ],
            )
        ],
    )


class TestToApiJob:
    def test_rendered_template(self, temp_work_dir):
        api_job = to_api_job(parse_file(write_manifest(temp_work_dir, 3)))

        assert api_job["ID"] == "bench"
        assert api_job["Type"] == "service"
        assert api_job["Datacenters"] == ["dc1"]
        group = api_job["TaskGroups"][0]
        assert group["Name"] == "cache"
        assert group["Count"] == 3
        assert group["RestartPolicy"]["Mode"] == "fail"
        assert group["RestartPolicy"]["Attempts"] == 0
        task = group["Tasks"][0]
        assert task["Driver"] == "docker"
        assert task["Config"] == {"image": "redis:latest"}
        assert task["Resources"] == {"CPU": 100, "MemoryMB": 100}

    def test_restart_durations_in_nanoseconds(self):
        policy = RestartPolicy(
            mode=RestartMode.DELAY,
            attempts=3,
            interval=timedelta(minutes=5),
            delay=timedelta(milliseconds=250),
        )
        api_job = to_api_job(make_job(restart=policy))

        restart = api_job["TaskGroups"][0]["RestartPolicy"]
        assert restart == {
            "Mode": "delay",
            "Attempts": 3,
            "Interval": 300_000_000_000,
            "Delay": 250_000_000,
        }

    def test_no_restart_policy_is_omitted(self):
        api_job = to_api_job(make_job())
        assert "RestartPolicy" not in api_job["TaskGroups"][0]

    def test_empty_maps_become_null(self):
        api_job = to_api_job(make_job())
        assert api_job["Meta"] is None
        assert api_job["TaskGroups"][0]["Tasks"][0]["Env"] is None

    def test_heterogeneous_config_is_copied(self):
        config = {
            "image": "nginx",
            "ports": ["http", 8080],
            "mounts": [{"type": "bind", "readonly": True, "opts": None}],
            "ratio": 0.5,
        }
        api_job = to_api_job(make_job(config=config))

        out = api_job["TaskGroups"][0]["Tasks"][0]["Config"]
        assert out == config
        assert out is not config
        assert out["mounts"][0] is not config["mounts"][0]

    def test_unsupported_config_value_names_path(self):
        config = {"image": "nginx", "labels": [{"built": date(2026, 1, 1)}]}

        with pytest.raises(TranscodeError) as exc_info:
            to_api_job(make_job(config=config))

        assert exc_info.value.path == "job.groups[0].tasks[0].config.labels[0].built"

    def test_non_string_key_rejected(self):
        with pytest.raises(TranscodeError, match="not a string"):
            to_api_job(make_job(config={1: "one"}))

    def test_job_without_groups(self):
        with pytest.raises(TranscodeError):
            to_api_job(Job(id="empty", name="empty"))


class TestConvertFreeForm:
    def test_tuples_become_lists(self):
        assert convert_free_form((1, 2), "x") == [1, 2]

    def test_sets_rejected(self):
        with pytest.raises(TranscodeError):
            convert_free_form({"a"}, "x")

    def test_bytes_rejected(self):
        with pytest.raises(TranscodeError):
            convert_free_form(b"raw", "x")

    def test_non_finite_float_rejected(self):
        with pytest.raises(TranscodeError):
            convert_free_form(float("nan"), "x")


def test_duration_to_ns():
    assert duration_to_ns(timedelta(0)) == 0
    assert duration_to_ns(timedelta(seconds=15)) == 15_000_000_000
    assert duration_to_ns(timedelta(days=1, microseconds=1)) == 86_400_000_000_000 + 1000
