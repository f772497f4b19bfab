"""
Saved delivery addresses with a single-default invariant.

Policy: the first address stored for a user becomes the default even when
the caller did not ask for it. Deleting the default does not promote
another address; the user has to pick one.

Every write runs under one lock and inside one transaction, so the
"clear all defaults, then set the new one" pair is never observed half
done: a failure rolls the whole write back. The address list is re-read
and republished before the lock is released, so publications follow
commit order.
"""
import threading
import uuid
from contextlib import contextmanager
from typing import List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .context import SessionContext
from .errors import ConstraintViolation, NotFound, Result, ShopError, StorageError
from .schemas import Address, AddressIn
from .streams import StateStream

logger = structlog.get_logger(__name__)


class AddressBook:
    def __init__(self, context: SessionContext):
        self.context = context
        self._write_lock = threading.Lock()
        self.addresses = StateStream([], name="addresses")
        self.addresses.set(self.list())

    # ---------- Transactions ----------

    @contextmanager
    def _transaction(self):
        """Commits on success, rolls back otherwise. Callers hold the write lock."""
        db: Session = self.context.db()
        try:
            yield db
            self._check_invariant(db)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _write(self, action: str, fn) -> Result:
        """Run ``fn`` in a transaction and republish the list, all under the write lock."""
        with self._write_lock:
            try:
                with self._transaction() as db:
                    value = fn(db)
            except ShopError as e:
                logger.warning("address_write_failed", action=action, reason=e.reason)
                return Result.failure(e)
            except SQLAlchemyError as e:
                logger.error("address_write_failed", action=action, reason=str(e))
                return Result.failure(StorageError(f"Failed to {action}: {e}"))
            try:
                self.addresses.set(self.list())
            except StorageError as e:
                logger.error("addresses_refresh_failed", action=action, reason=e.reason)
        logger.info("address_write", action=action)
        return Result.success(value)

    def _query(self, db: Session):
        return db.query(models.Address).filter(models.Address.user_id == self.context.user_id)

    def _check_invariant(self, db: Session):
        defaults = self._query(db).filter(models.Address.is_default.is_(True)).count()
        if defaults > 1:
            raise ConstraintViolation(f"{defaults} default addresses for user {self.context.user_id}")

    def _clear_defaults(self, db: Session):
        self._query(db).filter(models.Address.is_default.is_(True)).update(
            {models.Address.is_default: False}, synchronize_session=False
        )

    def _mark_default(self, db: Session, address_id: str):
        updated = self._query(db).filter(models.Address.id == address_id).update(
            {models.Address.is_default: True}, synchronize_session=False
        )
        if updated != 1:
            raise NotFound(f"Address {address_id} not found")

    # ---------- Writes ----------

    def add(self, address: AddressIn) -> Result:
        """Store ``address`` (replacing any address with the same id)."""

        def insert(db: Session) -> Address:
            address_id = address.id or str(uuid.uuid4())
            others = self._query(db).filter(models.Address.id != address_id).count()
            is_default = address.is_default or others == 0
            if is_default:
                self._clear_defaults(db)
            existing = db.get(models.Address, address_id)
            if existing is not None:
                db.delete(existing)
                db.flush()
            row = models.Address(
                id=address_id,
                user_id=self.context.user_id,
                name=address.name,
                phone=address.phone,
                address_line1=address.address_line1,
                address_line2=address.address_line2,
                landmark=address.landmark,
                city=address.city,
                state=address.state,
                pincode=address.pincode,
                address_type=address.address_type.value,
                is_default=is_default,
                created_at=self.context.clock(),
            )
            db.add(row)
            db.flush()
            return Address.model_validate(row)

        return self._write("add address", insert)

    def set_default(self, address_id: str) -> Result:
        def switch(db: Session):
            self._clear_defaults(db)
            self._mark_default(db, address_id)

        return self._write("set default address", switch)

    def delete(self, address_id: str) -> Result:
        def remove(db: Session):
            row = self._query(db).filter(models.Address.id == address_id).first()
            if row is None:
                raise NotFound(f"Address {address_id} not found")
            db.delete(row)

        return self._write("delete address", remove)

    # ---------- Reads ----------

    def list(self) -> List[Address]:
        """Default address first, then newest first."""
        db: Session = self.context.db()
        try:
            rows = self._query(db).order_by(
                models.Address.is_default.desc(), models.Address.created_at.desc()
            ).all()
            return [Address.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load addresses: {e}") from e
        finally:
            db.close()

    def get(self, address_id: str) -> Address:
        db: Session = self.context.db()
        try:
            row = self._query(db).filter(models.Address.id == address_id).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load address: {e}") from e
        finally:
            db.close()
        if row is None:
            raise NotFound(f"Address {address_id} not found")
        return Address.model_validate(row)

    def get_default(self) -> Optional[Address]:
        db: Session = self.context.db()
        try:
            rows = self._query(db).filter(models.Address.is_default.is_(True)).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load default address: {e}") from e
        finally:
            db.close()
        if len(rows) > 1:
            raise ConstraintViolation(f"{len(rows)} default addresses for user {self.context.user_id}")
        return Address.model_validate(rows[0]) if rows else None

    def default_count(self) -> int:
        db: Session = self.context.db()
        try:
            return self._query(db).filter(models.Address.is_default.is_(True)).count()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count default addresses: {e}") from e
        finally:
            db.close()
