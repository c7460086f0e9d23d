"""Pytest configuration and shared fixtures."""

import pytest
from pathlib import Path
from tempfile import TemporaryDirectory

from nomad_bench.orchestrator import Allocation, JobStub, OrchestratorError, QueryMeta
from nomad_bench.status import SinkError


class FakeNomad:
    """In-memory stand-in for NomadClient.

    ``responses`` is consumed one entry per list_allocations call. Each entry
    is either ``(index, [client_status, ...])`` or an exception to raise.
    """

    def __init__(self, responses=None, jobs=None, fail_register_at=None, fail_deregister=None):
        self.responses = list(responses or [])
        self.jobs = [JobStub(id=job_id) for job_id in (jobs or [])]
        self.fail_register_at = fail_register_at
        self.fail_deregister = fail_deregister
        self.queries = []
        self.registered = []
        self.deregistered = []
        self.on_query = None

    def list_allocations(self, wait_index, allow_stale=True):
        self.queries.append((wait_index, allow_stale))
        if self.on_query is not None:
            self.on_query(len(self.queries))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        index, statuses = response
        allocs = [Allocation(id=f"alloc-{i}", client_status=s) for i, s in enumerate(statuses)]
        return allocs, QueryMeta(last_index=index)

    def register(self, job):
        if self.fail_register_at is not None and len(self.registered) == self.fail_register_at:
            raise OrchestratorError("register job", "HTTP 500: boom", status_code=500)
        self.registered.append(job)
        return f"eval-{len(self.registered)}"

    def list_jobs(self):
        return list(self.jobs)

    def deregister(self, job_id):
        if job_id == self.fail_deregister:
            raise OrchestratorError("deregister job", "HTTP 500: boom", status_code=500)
        self.deregistered.append(job_id)
        return f"eval-{job_id}"

    def close(self):
        pass


class FakeSink:
    """Records samples; raises SinkError for names listed in ``fail_names``."""

    def __init__(self, fail_names=()):
        self.samples = []
        self.fail_names = set(fail_names)
        self.closed = False

    def set(self, name, value, timestamp):
        if name in self.fail_names:
            raise SinkError("fake:2003", f"write failed for {name}")
        self.samples.append((name, value, timestamp))

    def close(self):
        self.closed = True


@pytest.fixture
def temp_work_dir():
    """Create a temporary working directory for tests."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_sink():
    return FakeSink()


@pytest.fixture
def sample_manifest():
    """A manifest exercising every supported field."""
    return '''
job:
  id: web
  name: web-frontend
  type: service
  priority: 70
  region: global
  datacenters: [dc1, dc2]
  meta:
    owner: bench
  groups:
    - name: frontend
      count: 3
      restart:
        mode: delay
        attempts: 2
        interval: 5m
        delay: 250ms
      tasks:
        - name: nginx
          driver: docker
          config:
            image: nginx:1.25
            ports: [http, https]
            mounts:
              - type: bind
                target: /etc/nginx
                readonly: true
          env:
            LOG_LEVEL: debug
          resources:
            cpu: 250
            memory: 128
'''


@pytest.fixture
def make_nomad():
    """Factory for FakeNomad clients."""
    return FakeNomad


@pytest.fixture
def make_sink():
    """Factory for FakeSink sinks."""
    return FakeSink
