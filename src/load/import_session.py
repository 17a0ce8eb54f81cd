"""Import session lifecycle: start, complete, fail, roll back."""

import uuid
from datetime import datetime

from common.errors import NotFoundError
from common.logger import get_logger

from .db import DatabaseError
from .models import ImportSession, ImportStats, ImportStatus, RollbackResult
from .store import ReadingStore

logger = get_logger(__name__)


class ImportSessionTracker:
    """Tracks import sessions so a bad import can be undone as a unit.

    Every book and note written by an import carries the session id in
    ``imported_from``; rollback deletes by that column.
    """

    def __init__(self, store: ReadingStore):
        self.store = store

    def start(self, file_name: str, file_size: int) -> str:
        """Create a session in ``processing`` state and return its id."""
        session = ImportSession(
            id=str(uuid.uuid4()),
            file_name=file_name,
            file_size=file_size,
            status=ImportStatus.PROCESSING,
            started_at=datetime.now(),
        )
        self.store.save_session(session)
        logger.debug(f"Started import session {session.id} for {file_name}")
        return session.id

    def get(self, session_id: str) -> ImportSession:
        """
        Raises:
            NotFoundError: If the session does not exist
        """
        session = self.store.get_session(session_id)
        if session is None:
            raise NotFoundError("Import session", session_id)
        return session

    def list_sessions(
        self, status: ImportStatus | None = None, limit: int | None = None
    ) -> list[ImportSession]:
        """Sessions, newest first."""
        return self.store.list_sessions(status=status, limit=limit)

    def complete(self, session_id: str, stats: ImportStats) -> ImportSession:
        session = self.get(session_id)
        session.status = ImportStatus.COMPLETED
        session.completed_at = datetime.now()
        session.stats = stats
        self.store.save_session(session)
        return session

    def fail(self, session_id: str, message: str, stats: ImportStats | None = None) -> ImportSession:
        session = self.get(session_id)
        session.status = ImportStatus.FAILED
        session.completed_at = datetime.now()
        session.error_message = message
        if stats is not None:
            session.stats = stats
        self.store.save_session(session)
        logger.error(f"Import session {session_id} failed: {message}")
        return session

    def rollback(self, session_id: str) -> RollbackResult:
        """
        Remove everything a session wrote and mark it ``rolled_back``.

        Notes and books with ``imported_from`` equal to the session are
        deleted (books only once they have no notes left), note counts of the
        remaining books are recomputed. Content updates the session applied to
        older notes and canonical records are kept.

        Returns:
            RollbackResult; ``success`` is False with ``errors`` set when the
            session was already rolled back or the delete failed

        Raises:
            NotFoundError: If the session does not exist
        """
        session = self.get(session_id)
        result = RollbackResult(session_id=session_id)

        if session.status == ImportStatus.ROLLED_BACK:
            result.errors.append(f"Session {session_id} is already rolled back")
            return result

        try:
            with self.store.batch():
                notes_removed, books_removed, _ = self.store.delete_session_records(session_id)
                session.status = ImportStatus.ROLLED_BACK
                session.completed_at = datetime.now()
                self.store.save_session(session)
        except DatabaseError as e:
            logger.error(f"Rollback of session {session_id} failed: {e}")
            result.errors.append(str(e))
            return result

        result.notes_removed = notes_removed
        result.books_removed = books_removed
        result.success = True
        logger.info(
            f"Rolled back session {session_id}: "
            f"{notes_removed} notes and {books_removed} books removed"
        )
        return result
