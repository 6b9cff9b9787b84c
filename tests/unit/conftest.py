from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _no_threads_in_unit_tests(monkeypatch: pytest.MonkeyPatch):
    """Run `asyncio.to_thread` inline for unit tests.

    The observability recorder hands sink writes to a worker thread. In unit
    tests that threadpool can keep the process alive longer than expected, and
    inline writes make record ordering deterministic.
    """

    async def _to_thread(func, /, *args, **kwargs):  # noqa: ANN001, D401
        return func(*args, **kwargs)

    monkeypatch.setattr("observability.recorder.asyncio.to_thread", _to_thread)
    yield
