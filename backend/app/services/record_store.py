"""
Store de documents (collections nommées de dicts JSON).

Interface unique consommée par tous les services :
    insert / all / where / by_id / put / remove / transaction / clear

Deux implémentations :
- MemoryRecordStore : en mémoire, utilisée par les tests
- SqlRecordStore    : persistante, une table `records` via SQLAlchemy

Aucune contrainte d'intégrité référentielle n'est assurée ici : les
suppressions en cascade sont la responsabilité des services.

Le store est construit une seule fois au démarrage (app.main) et injecté ;
il n'y a pas de singleton implicite.
"""

import copy
import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.exceptions import StorageError
from app.models.record import Record

logger = logging.getLogger(__name__)

Row = dict
Predicate = Callable[[Row], bool]

TRIPS = "trips"
MEMBERS = "members"
PAYMENTS = "payments"
CLAIMS = "claims"
HISTORY = "history_events"
RATES = "rates"


class RecordStore:
    """Contrat commun. Les lignes retournées sont des copies : les modifier n'altère pas le store."""

    def insert(self, collection: str, row: Row) -> Row:
        raise NotImplementedError

    def all(self, collection: str) -> list[Row]:
        raise NotImplementedError

    def by_id(self, collection: str, record_id: str) -> Optional[Row]:
        raise NotImplementedError

    def put(self, collection: str, row: Row) -> Row:
        raise NotImplementedError

    def remove(self, collection: str, record_id: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def transaction(self):
        raise NotImplementedError

    def where(self, collection: str, predicate: Predicate) -> list[Row]:
        return [row for row in self.all(collection) if predicate(row)]


def _with_id(row: Row) -> Row:
    """Copie la ligne et génère un id si absent."""
    data = copy.deepcopy(row)
    if not data.get("id"):
        data["id"] = str(uuid.uuid4())
    return data


class MemoryRecordStore(RecordStore):
    """
    Store en mémoire.

    Toutes les opérations prennent le même RLock : un lecteur ne voit jamais
    l'état intermédiaire d'une transaction en cours. En cas d'exception dans
    transaction(), l'état d'avant est restauré.
    """

    def __init__(self):
        self._collections: dict[str, list[Row]] = {}
        self._lock = threading.RLock()
        self._depth = 0

    def insert(self, collection: str, row: Row) -> Row:
        data = _with_id(row)
        with self._lock:
            self._collections.setdefault(collection, []).append(data)
        return copy.deepcopy(data)

    def all(self, collection: str) -> list[Row]:
        with self._lock:
            return copy.deepcopy(self._collections.get(collection, []))

    def by_id(self, collection: str, record_id: str) -> Optional[Row]:
        with self._lock:
            for row in self._collections.get(collection, []):
                if row.get("id") == record_id:
                    return copy.deepcopy(row)
        return None

    def put(self, collection: str, row: Row) -> Row:
        data = _with_id(row)
        with self._lock:
            rows = self._collections.setdefault(collection, [])
            for i, existing in enumerate(rows):
                if existing.get("id") == data["id"]:
                    rows[i] = data
                    break
            else:
                rows.append(data)
        return copy.deepcopy(data)

    def remove(self, collection: str, record_id: str) -> None:
        with self._lock:
            rows = self._collections.get(collection, [])
            self._collections[collection] = [r for r in rows if r.get("id") != record_id]

    def clear(self) -> None:
        with self._lock:
            self._collections = {}

    @contextmanager
    def transaction(self) -> Iterator["MemoryRecordStore"]:
        with self._lock:
            outermost = self._depth == 0
            snapshot = copy.deepcopy(self._collections) if outermost else None
            self._depth += 1
            try:
                yield self
            except BaseException:
                if outermost:
                    self._collections = snapshot
                raise
            finally:
                self._depth -= 1


class SqlRecordStore(RecordStore):
    """
    Store persistant : une ligne `records` par document.

    Hors transaction, chaque opération ouvre sa session et commit.
    Dans transaction(), toutes les opérations du thread partagent une seule
    session, commitée une seule fois à la sortie (rollback sinon).
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._local = threading.local()
        self._write_lock = threading.RLock()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        active = getattr(self._local, "session", None)
        if active is not None:
            yield active
            return

        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Échec d'écriture dans le store : %s", exc)
            raise StorageError(str(exc)) from exc
        finally:
            db.close()

    def _find(self, db: Session, collection: str, record_id: str) -> Optional[Record]:
        return db.execute(
            select(Record).where(
                Record.collection == collection,
                Record.record_id == record_id,
            )
        ).scalar()

    def insert(self, collection: str, row: Row) -> Row:
        data = _with_id(row)
        with self._session() as db:
            db.add(Record(collection=collection, record_id=data["id"], data=data))
            db.flush()
        return copy.deepcopy(data)

    def all(self, collection: str) -> list[Row]:
        with self._session() as db:
            rows = db.execute(
                select(Record.data)
                .where(Record.collection == collection)
                .order_by(Record.seq)
            ).scalars().all()
        return [copy.deepcopy(r) for r in rows]

    def by_id(self, collection: str, record_id: str) -> Optional[Row]:
        with self._session() as db:
            record = self._find(db, collection, record_id)
            return copy.deepcopy(record.data) if record else None

    def put(self, collection: str, row: Row) -> Row:
        data = _with_id(row)
        with self._session() as db:
            record = self._find(db, collection, data["id"])
            if record is None:
                db.add(Record(collection=collection, record_id=data["id"], data=data))
            else:
                # Réassignation complète : SQLAlchemy ne suit pas les mutations internes d'un JSON
                record.data = data
            db.flush()
        return copy.deepcopy(data)

    def remove(self, collection: str, record_id: str) -> None:
        with self._session() as db:
            record = self._find(db, collection, record_id)
            if record is not None:
                db.delete(record)
                db.flush()

    def clear(self) -> None:
        with self._session() as db:
            for record in db.execute(select(Record)).scalars().all():
                db.delete(record)

    @contextmanager
    def transaction(self) -> Iterator["SqlRecordStore"]:
        if getattr(self._local, "session", None) is not None:
            yield self
            return

        with self._write_lock:
            db = self._session_factory()
            self._local.session = db
            try:
                yield self
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("Transaction annulée : %s", exc)
                raise StorageError(str(exc)) from exc
            except BaseException:
                db.rollback()
                raise
            finally:
                self._local.session = None
                db.close()
