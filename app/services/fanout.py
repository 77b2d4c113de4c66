"""Background fan-out after a mutation has been committed.

Routes commit to the database, answer the client, and hand a job
``(entity_type, entity_id, operation, payload)`` to the queue. Worker
threads run the handler registered for the entity type inside an app
context. Handlers are written as a series of named best-effort steps; a
failing step is logged and the remaining steps still run.
"""

import logging
import queue
import threading
from datetime import datetime

from flask import current_app

from app import db

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger('app.audit')

STARTED = 'BACKGROUND_STARTED'
DONE = 'BACKGROUND_DONE'


class FanoutJob:
    def __init__(self, entity_type, entity_id, operation, payload=None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.operation = operation
        self.payload = payload or {}
        self.attempts = 0
        self.created_at = datetime.utcnow()

    def __repr__(self):
        return f'<FanoutJob {self.entity_type}:{self.entity_id} {self.operation}>'


class FanoutRun:
    """Outcome of one attempt at a job: which steps completed and which failed."""

    def __init__(self, job):
        self.job = job
        self.state = STARTED
        self.completed = []
        self.failed = {}
        self.error = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed

    def step(self, name, fn, *args, **kwargs):
        """Run one step, recording rather than raising its failure."""
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            db.session.rollback()
            self.failed.setdefault(name, []).append(str(e))
            logger.error(f"{self.job} step '{name}' failed: {e}")
            return None
        if name not in self.completed:
            self.completed.append(name)
        return result

    def finish(self):
        self.state = DONE
        return self


class FanoutQueue:
    """In-process job queue drained by a small pool of worker threads."""

    def __init__(self, workers=2, eager=False, max_retries=0):
        self.workers = max(1, int(workers))
        self.eager = eager
        self.max_retries = max(0, int(max_retries))
        self.app = None
        self._handlers = {}
        self._queue = queue.Queue()
        self._threads = []
        self._start_lock = threading.Lock()
        self.last_run = None

    def init_app(self, app):
        self.app = app
        app.extensions['fanout'] = self
        return self

    def register(self, entity_type, handler):
        """``handler(run, job)`` performs the steps for one entity type."""
        self._handlers[entity_type] = handler

    def enqueue(self, entity_type, entity_id, operation, payload=None):
        job = FanoutJob(entity_type, entity_id, operation, payload)
        if self.eager:
            # Inline, inside the caller's app context
            return self._execute(job)
        self.start()
        self._queue.put(job)
        logger.debug(f"Queued {job} ({self._queue.qsize()} pending)")
        return job

    def run(self, job) -> FanoutRun:
        run = FanoutRun(job)
        handler = self._handlers.get(job.entity_type)
        if handler is None:
            logger.warning(f"No fan-out handler registered for {job.entity_type}")
            return run.finish()

        job.attempts += 1
        try:
            handler(run, job)
        except Exception as e:
            db.session.rollback()
            run.error = str(e)
            logger.exception(f"Fan-out {job} aborted: {e}")

        run.step('audited', self._audit, run)
        return run.finish()

    def _execute(self, job) -> FanoutRun:
        run = self.run(job)
        while run.error and job.attempts <= self.max_retries:
            logger.info(f"Retrying {job} (attempt {job.attempts + 1})")
            run = self.run(job)
        self.last_run = run
        return run

    @staticmethod
    def _audit(run):
        job = run.job
        audit_logger.info(
            f"{job.entity_type}.{job.operation} id={job.entity_id} "
            f"completed={','.join(run.completed) or '-'} "
            f"failed={','.join(run.failed) or '-'}"
            + (f" error={run.error}" if run.error else '')
        )

    def _worker(self):
        while True:
            job = self._queue.get()
            try:
                if job is None:
                    return
                with self.app.app_context():
                    self._execute(job)
            except Exception as e:
                logger.exception(f"Fan-out worker crashed on {job}: {e}")
            finally:
                self._queue.task_done()

    def start(self):
        with self._start_lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            if self._threads or self.eager:
                return
            for i in range(self.workers):
                thread = threading.Thread(target=self._worker, name=f'fanout-{i}', daemon=True)
                thread.start()
                self._threads.append(thread)
            logger.info(f"Started {self.workers} fan-out workers")

    def join(self):
        """Block until every queued job has been processed."""
        self._queue.join()

    def stop(self, timeout=None):
        for _ in self._threads:
            self._queue.put(None)
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []


def get_fanout() -> FanoutQueue:
    return current_app.extensions['fanout']
