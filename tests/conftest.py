import pytest

from core.timing.scheduler import ManualScheduler
from core.timing.stopwatch import start_link


@pytest.fixture
def scheduler():
    sched = ManualScheduler()
    yield sched
    sched.shutdown()


@pytest.fixture
def announcements():
    """List that doubles as an announcer: every snapshot gets appended."""
    class _Recorder(list):
        def __call__(self, snapshot):
            self.append(snapshot)

    received = _Recorder()
    return received


@pytest.fixture
def make_stopwatch(scheduler, announcements):
    """Start stopwatches on the manual scheduler and terminate them afterwards."""
    started = []

    def _make(**options):
        options.setdefault("announcer", announcements)
        sw = start_link(scheduler=scheduler, **options)
        started.append(sw)
        return sw

    yield _make
    for sw in started:
        sw.terminate()


@pytest.fixture
def run_ticks(scheduler):
    """Fire ``n`` ticks, waiting for the actor to process each one."""

    def _run(sw, n, resolution=10):
        # earlier casts (go, clear) must be handled before the clock moves
        sw.time()
        for _ in range(n):
            scheduler.advance(resolution, settle=sw.time)

    return _run
