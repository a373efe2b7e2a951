"""SQLAlchemy-backed unit of work for license sync runs.

The engine is process-wide: call ``startup()`` once (it also migrates the schema),
then create one ``SqlAlchemyLicenseUnitOfWork`` per transaction.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from licsync.adapters.sqlalchemy.mappings import start_mappers
from licsync.adapters.sqlalchemy.migrations import upgrade_head
from licsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyExternalLicenseMirrorRepository,
    SqlAlchemyLicenseRepository,
    SqlAlchemySyncRunRepository,
)
from licsync.config import get_database_config
from licsync.domain.ports.unit_of_work import LicenseRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the adapter is used before ``startup()`` or configured twice."""


_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the adapter to an engine and bring the schema to the latest revision."""

    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None and not force:
        raise StartupError("SQLAlchemy adapter already initialised. Pass force=True to rebind.")

    if engine is None:
        database = get_database_config()
        engine = create_engine(database_uri or database.uri, echo=database.echo, future=True)
    start_mappers()
    upgrade_head(engine=engine)
    _engine = engine
    # committed records stay readable after the session closes
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    log.info("License database ready at %s", engine.url.render_as_string(hide_password=True))


def configured_engine() -> Engine | None:
    return _engine


def is_started() -> bool:
    return _engine is not None


def shutdown() -> None:
    """Dispose the engine and forget it (tests call this between cases)."""

    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


class SqlAlchemyLicenseUnitOfWork:
    """One session per ``with`` block; exceptions roll the session back."""

    def __init__(self) -> None:
        if _session_factory is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call licsync.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        self._session_factory = _session_factory
        self._session: Session | None = None
        self._repositories: LicenseRepositories | None = None

    def __enter__(self) -> SqlAlchemyLicenseUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        self._session = self._session_factory()
        self._repositories = LicenseRepositories(
            licenses=SqlAlchemyLicenseRepository(self._session),
            mirror=SqlAlchemyExternalLicenseMirrorRepository(self._session),
            sync_runs=SqlAlchemySyncRunRepository(self._session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        try:
            if exc_type is not None:
                self.rollback()
        finally:
            self.session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._session

    @property
    def repositories(self) -> LicenseRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from licsync.domain.ports.unit_of_work import LicenseUnitOfWork

    _uow_check: LicenseUnitOfWork = SqlAlchemyLicenseUnitOfWork()
