"""Tests for the background fan-out queue."""

import logging

import pytest

from app.services.fanout import DONE, FanoutJob, FanoutQueue, FanoutRun


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


class TestFanoutRun:

    def test_steps_record_completion_and_results(self, app_ctx):
        run = FanoutRun(FanoutJob('listing', 1, 'update'))

        assert run.step('translated', lambda x: x * 2, 21) == 42
        assert run.completed == ['translated']
        assert run.ok

    def test_failing_step_is_recorded_not_raised(self, app_ctx):
        run = FanoutRun(FanoutJob('listing', 1, 'update'))

        def boom():
            raise RuntimeError('provider down')

        assert run.step('emailed', boom) is None
        run.step('notified', lambda: True)

        assert run.failed == {'emailed': ['provider down']}
        assert run.completed == ['notified']
        assert not run.ok


class TestEagerQueue:

    def test_runs_registered_handler_inline(self, app_ctx):
        seen = []
        queue = FanoutQueue(eager=True)
        queue.register('listing', lambda run, job: seen.append((job.entity_id, job.operation, job.payload)))

        run = queue.enqueue('listing', 7, 'create', {'source': 'test'})

        assert seen == [(7, 'create', {'source': 'test'})]
        assert run.state == DONE
        assert 'audited' in run.completed
        assert queue.last_run is run

    def test_unknown_entity_type_is_ignored(self, app_ctx):
        run = FanoutQueue(eager=True).enqueue('invoice', 1, 'create')
        assert run.state == DONE
        assert run.completed == []

    def test_handler_error_is_retried(self, app_ctx):
        attempts = []

        def flaky(run, job):
            attempts.append(job.attempts)
            if len(attempts) < 2:
                raise RuntimeError('deadlock')
            run.step('cache_invalidated', lambda: 1)

        queue = FanoutQueue(eager=True, max_retries=1)
        queue.register('booking', flaky)

        run = queue.enqueue('booking', 3, 'update')

        assert attempts == [1, 2]
        assert run.error is None
        assert run.completed == ['cache_invalidated', 'audited']

    def test_exhausted_retries_keep_the_error(self, app_ctx):
        def broken(run, job):
            raise RuntimeError('deadlock')

        queue = FanoutQueue(eager=True, max_retries=2)
        queue.register('booking', broken)

        run = queue.enqueue('booking', 3, 'update')

        assert run.job.attempts == 3
        assert run.error == 'deadlock'

    def test_every_run_is_audited(self, app_ctx, caplog):
        queue = FanoutQueue(eager=True)
        queue.register('review', lambda run, job: run.step('notified', lambda: None))

        with caplog.at_level(logging.INFO, logger='app.audit'):
            queue.enqueue('review', 5, 'create')

        records = [r.getMessage() for r in caplog.records if r.name == 'app.audit']
        assert records == ['review.create id=5 completed=notified failed=-']


class TestThreadedQueue:

    def test_workers_drain_the_queue(self, app):
        seen = []
        queue = FanoutQueue(workers=2)
        queue.app = app
        queue.register('notification', lambda run, job: seen.append(job.entity_id))

        for i in range(5):
            queue.enqueue('notification', i, 'create')
        queue.join()
        queue.stop(timeout=2)

        assert sorted(seen) == [0, 1, 2, 3, 4]
        assert queue.last_run.state == DONE

    def test_enqueue_returns_the_job(self, app):
        queue = FanoutQueue(workers=1)
        queue.app = app
        queue.register('listing', lambda run, job: None)

        job = queue.enqueue('listing', 1, 'delete', {'booking_ids': [2]})
        queue.join()
        queue.stop(timeout=2)

        assert isinstance(job, FanoutJob)
        assert job.attempts == 1
