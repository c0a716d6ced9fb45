"""Slider position management.

Homepage slides carry an integer `position` that forms the gap-free
order 1..N and is protected by a unique index. The operations here are
the only code that writes that column:

- `append` creates a slide at N+1,
- `replace_order` applies a full permutation supplied by the admin UI,
- `move` swaps a slide with its neighbour above or below,
- `set_position` moves a slide to a (clamped) target and puts the
  displaced slide in the vacated spot,
- `delete` removes a slide and renumbers the rest to 1..N-1.

Each operation runs in a single transaction on the caller's session and
either commits with the order intact or rolls back completely. Because
the index is checked per statement, any write that could momentarily
duplicate a position first parks the moving rows above the current
maximum (`TEMP_OFFSET`) and only then writes final values.

Reads are not trusted to still hold when the writes run. Every staged
write names the position it expects to find and must touch exactly one
row, bulk shifts must touch every row that was read, and the order is
checked again just before commit. A concurrent writer therefore causes
a `ConflictError` after rollback instead of a committed broken order;
so does a collision on the unique index or a serialization failure.
"""

import json
import logging
import math
import re
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session

from . import models, repositories
from .errors import ConflictError, NotFoundError, ServiceError, TransientStoreError, ValidationError

logger = logging.getLogger("guesthouse.ordering")

TEMP_OFFSET = 100000
DIRECTIONS = ("up", "down")
CONCURRENT_CHANGE = "slider order changed concurrently; reload and retry"

_GUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)


def normalize_id(raw: Any) -> Optional[str]:
    """Return the lowercase form of a dashed GUID string, or None if malformed."""
    if not isinstance(raw, str) or not _GUID.match(raw):
        return None
    return raw.lower()


def _log(event: str, **fields):
    logger.info("%s %s", event, json.dumps(fields, ensure_ascii=True, default=str))


def _is_contention(exc: DBAPIError) -> bool:
    """True for serialization failures, deadlocks and SQLite busy locks."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    return code in ("40001", "40P01") or "database is locked" in str(orig)


class SliderOrderService:
    """Transactional position operations over the `slider` table."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SliderRepository(session)

    @contextmanager
    def transaction(self, action: str, commit: bool = True):
        """Commit on success; roll back and translate store errors otherwise.

        With `commit=False` the caller owns the transaction and only the
        error translation applies.
        """
        try:
            yield
            if commit:
                self.session.commit()
        except ServiceError:
            self.session.rollback()
            raise
        except (IntegrityError, StaleDataError) as exc:
            self.session.rollback()
            logger.warning("slider_%s_conflict %s", action, exc)
            raise ConflictError(CONCURRENT_CHANGE, code="POSITION_CONFLICT") from exc
        except DBAPIError as exc:
            self.session.rollback()
            if _is_contention(exc):
                logger.warning("slider_%s_contention %s", action, exc)
                raise ConflictError(CONCURRENT_CHANGE, code="POSITION_CONFLICT") from exc
            logger.exception("slider_%s_failed", action)
            raise TransientStoreError() from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("slider_%s_failed", action)
            raise TransientStoreError() from exc

    def _require_position(self, slider_id: Any) -> Tuple[str, int]:
        sid = normalize_id(slider_id)
        position = self.repo.position_of(sid) if sid else None
        if position is None:
            raise NotFoundError()
        return sid, position

    def _temp_position(self) -> int:
        return self.repo.max_position() + TEMP_OFFSET

    def _write(self, slider_id: str, position: int, expected: Optional[int] = None):
        if self.repo.set_position(slider_id, position, expected=expected) != 1:
            raise ConflictError(CONCURRENT_CHANGE, code="ORDER_CHANGED")

    def _swap_into(self, slider_id: str, origin: int, target: int, occupant: str):
        """Move `slider_id` from `origin` to `target`, sending `occupant` to `origin`."""
        temp = self._temp_position()
        self._write(slider_id, temp, expected=origin)
        self._write(occupant, origin, expected=target)
        self._write(slider_id, target, expected=temp)

    def _verify_order(self):
        """Positions must be exactly 1..N before anything is committed."""
        total, low, high = self.repo.order_summary()
        if total and (low != 1 or high != total):
            raise ConflictError(CONCURRENT_CHANGE, code="ORDER_CHANGED")

    def append(self, slider: models.Slider) -> models.Slider:
        """Insert `slider` at the end of the order (position N+1)."""
        with self.transaction("create"):
            slider.position = self.repo.max_position() + 1
            self.repo.add(slider)
            self._verify_order()
        self.session.refresh(slider)
        _log("slider_create", id=slider.id, position=slider.position)
        return slider

    def replace_order(self, ids: Any) -> None:
        """Assign positions 1..N following `ids`, which must list every slide exactly once."""
        if not isinstance(ids, list) or not ids:
            raise ValidationError("ids must be a non-empty array", code="IDS_REQUIRED")
        normalized: List[str] = []
        for index, raw in enumerate(ids):
            sid = normalize_id(raw)
            if sid is None:
                raise ValidationError(f"invalid id at index {index}", code="INVALID_ID")
            normalized.append(sid)
        if len(set(normalized)) != len(normalized):
            raise ValidationError("ids must be unique", code="DUPLICATE_ID")
        known = set(self.repo.ids_in_order())
        if any(sid not in known for sid in normalized):
            self.session.rollback()
            raise ValidationError("ids contain unknown slider id", code="UNKNOWN_ID")
        if len(normalized) != len(known):
            self.session.rollback()
            raise ValidationError("ids length mismatch", code="LENGTH_MISMATCH")

        with self.transaction("reorder"):
            if self.repo.shift_all(self._temp_position()) != len(known):
                raise ConflictError(CONCURRENT_CHANGE, code="ORDER_CHANGED")
            affected = 0
            for index, sid in enumerate(normalized):
                affected += self.repo.set_position(sid, index + 1)
            if affected != len(normalized):
                raise ConflictError("affected rows mismatch", code="ROWCOUNT_MISMATCH")
            self._verify_order()
        _log("slider_reorder", count=len(normalized))

    def move(self, slider_id: Any, direction: Any) -> Dict[str, Any]:
        """Swap a slide with its neighbour; at either end this is a successful no-op."""
        if direction not in DIRECTIONS:
            raise ValidationError("direction must be up|down", code="INVALID_DIRECTION")
        with self.transaction("move"):
            sid, position = self._require_position(slider_id)
            neighbour = self.repo.neighbour(position, direction)
            if neighbour is None:
                return {"id": sid, "position": position}
            other_id, other_position = neighbour
            self._swap_into(sid, position, other_position, other_id)
            self._verify_order()
        _log("slider_move", id=sid, direction=direction, **{"from": position, "to": other_position})
        return {"id": sid, "position": other_position}

    def set_position(self, slider_id: Any, position: Any, commit: bool = True) -> Dict[str, Any]:
        """Move a slide to `position`, clamped into 1..N.

        Out-of-range targets are clamped rather than rejected; only a
        missing, non-numeric or non-positive value is a validation error.
        """
        target = _parse_position(position)
        with self.transaction("update_position", commit=commit):
            sid, current = self._require_position(slider_id)
            total = self.repo.count()
            target = max(1, min(total, target))
            if target == current:
                return {"id": sid, "position": current}
            occupant = self.repo.occupant(target)
            if occupant is None:
                raise ConflictError(CONCURRENT_CHANGE, code="ORDER_CHANGED")
            self._swap_into(sid, current, target, occupant)
            self._verify_order()
        _log("slider_update_position", id=sid, **{"from": current, "to": target})
        return {"id": sid, "position": target}

    def delete(self, slider_id: Any) -> None:
        """Delete a slide and renumber the remaining ones to 1..N-1."""
        sid = normalize_id(slider_id)
        if sid is None:
            raise NotFoundError()
        with self.transaction("delete"):
            if self.repo.delete(sid) == 0:
                raise NotFoundError()
            self._renumber()
            self._verify_order()
        _log("slider_delete", id=sid)

    def _renumber(self):
        ordered = self.repo.ids_in_order()
        if not ordered:
            return
        if self.repo.shift_all(self._temp_position()) != len(ordered):
            raise ConflictError(CONCURRENT_CHANGE, code="ORDER_CHANGED")
        for index, sid in enumerate(ordered):
            self._write(sid, index + 1)


def _parse_position(value: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("position must be a positive integer", code="INVALID_POSITION")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError("position must be a positive integer", code="INVALID_POSITION")
    if value < 1:
        raise ValidationError("position must be a positive integer", code="INVALID_POSITION")
    return int(value)
