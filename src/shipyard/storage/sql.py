# storage/sql.py
from __future__ import annotations

import contextlib
import threading
from datetime import datetime
from typing import Iterator, List

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import NotFoundError, PersistenceError
from ..model import Workflow, WorkflowRun, utcnow
from .base import Storage


class Base(DeclarativeBase):
    pass


class WorkflowRecord(Base):
    __tablename__ = "workflows"
    name: Mapped[str] = mapped_column(sa.Text, primary_key=True)
    document: Mapped[dict] = mapped_column(sa.JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)


class RunRecord(Base):
    __tablename__ = "workflow_runs"
    id: Mapped[str] = mapped_column(sa.Text, primary_key=True)
    workflow_name: Mapped[str] = mapped_column(sa.Text, nullable=False, index=True)
    status: Mapped[str] = mapped_column(sa.Text, nullable=False)
    started_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, index=True)
    document: Mapped[dict] = mapped_column(sa.JSON, nullable=False)


class SQLStorage(Storage):
    """
    Durable store: each workflow and run is kept as its JSON document, with
    the columns needed for lookups and ordering pulled out next to it.

    Any SQLAlchemy URL works; SQLite connections are serialized through one
    lock since SQLite takes a single writer anyway.
    """

    def __init__(self, url: str, *, create_tables: bool = True, echo: bool = False):
        kwargs: dict = {"echo": echo, "pool_pre_ping": True}
        is_sqlite = url.startswith("sqlite")
        if is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool

        self.url = url
        self.engine = sa.create_engine(url, **kwargs)
        self._sessions = sessionmaker(self.engine, class_=Session, expire_on_commit=False)
        self._guard: contextlib.AbstractContextManager = threading.Lock() if is_sqlite else contextlib.nullcontext()

        if create_tables:
            try:
                Base.metadata.create_all(self.engine)
            except SQLAlchemyError as e:
                raise PersistenceError(f"failed to initialize storage: {e}") from e

    @contextlib.contextmanager
    def _session(self, op: str) -> Iterator[Session]:
        with self._guard:
            try:
                with self._sessions() as s, s.begin():
                    yield s
            except SQLAlchemyError as e:
                raise PersistenceError(f"failed to {op}: {e}") from e

    # ---- workflows ----

    def save_workflow(self, wf: Workflow) -> None:
        with self._session("save workflow") as s:
            s.merge(WorkflowRecord(name=wf.name, document=wf.to_dict(), updated_at=utcnow()))

    def get_workflow(self, name: str) -> Workflow:
        with self._session("get workflow") as s:
            rec = s.get(WorkflowRecord, name)
            if rec is None:
                raise NotFoundError("workflow", name)
            return Workflow.from_dict(rec.document)

    def list_workflows(self) -> List[Workflow]:
        with self._session("list workflows") as s:
            recs = s.scalars(sa.select(WorkflowRecord).order_by(WorkflowRecord.name)).all()
            return [Workflow.from_dict(r.document) for r in recs]

    def delete_workflow(self, name: str) -> None:
        with self._session("delete workflow") as s:
            rec = s.get(WorkflowRecord, name)
            if rec is None:
                raise NotFoundError("workflow", name)
            s.delete(rec)

    # ---- runs ----

    def save_run(self, run: WorkflowRun) -> None:
        snap = run.snapshot()
        with self._session("save run") as s:
            s.merge(
                RunRecord(
                    id=snap.id,
                    workflow_name=snap.workflow_name,
                    status=snap.status,
                    started_at=snap.started_at,
                    document=snap.to_dict(),
                )
            )

    def get_run(self, run_id: str) -> WorkflowRun:
        with self._session("get run") as s:
            rec = s.get(RunRecord, run_id)
            if rec is None:
                raise NotFoundError("run", run_id)
            return WorkflowRun.from_dict(rec.document)

    def list_runs(self) -> List[WorkflowRun]:
        q = sa.select(RunRecord).order_by(RunRecord.started_at.desc(), RunRecord.id.desc())
        with self._session("list runs") as s:
            return [WorkflowRun.from_dict(r.document) for r in s.scalars(q).all()]

    def update_run(self, run: WorkflowRun) -> None:
        snap = run.snapshot()
        with self._session("update run") as s:
            rec = s.get(RunRecord, snap.id)
            if rec is None:
                raise NotFoundError("run", snap.id)
            rec.status = snap.status
            rec.document = snap.to_dict()

    def delete_runs_by_workflow(self, workflow_name: str) -> int:
        with self._session("delete runs") as s:
            result = s.execute(sa.delete(RunRecord).where(RunRecord.workflow_name == workflow_name))
            return result.rowcount or 0

    def close(self) -> None:
        self.engine.dispose()
