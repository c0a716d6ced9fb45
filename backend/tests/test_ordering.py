import uuid

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session, select

from guesthouse import models, repositories
from guesthouse.database import engine
from guesthouse.errors import ConflictError, NotFoundError, TransientStoreError, ValidationError
from guesthouse.ordering import SliderOrderService, normalize_id
from guesthouse.schemas import SliderUpdateIn
from guesthouse.services import SliderService


def _make(session, n):
    svc = SliderOrderService(session)
    ids = []
    for i in range(n):
        slider = svc.append(models.Slider(image_url=f"https://img.test/{i}.png", position=0))
        ids.append(slider.id)
    return ids


def _positions(session):
    session.expire_all()
    rows = session.exec(select(models.Slider.id, models.Slider.position)).all()
    return {sid: pos for sid, pos in rows}


def _assert_gap_free(session):
    positions = _positions(session)
    assert sorted(positions.values()) == list(range(1, len(positions) + 1))


def test_append_assigns_next_position(session):
    a, b, c = _make(session, 3)
    assert _positions(session) == {a: 1, b: 2, c: 3}


def test_move_up_swaps_with_neighbour(session):
    a, b, c = _make(session, 3)
    result = SliderOrderService(session).move(b, "up")
    assert result == {"id": b, "position": 1}
    assert _positions(session) == {a: 2, b: 1, c: 3}


def test_move_down_swaps_with_neighbour(session):
    a, b, c = _make(session, 3)
    result = SliderOrderService(session).move(b, "down")
    assert result == {"id": b, "position": 3}
    assert _positions(session) == {a: 1, b: 3, c: 2}


def test_move_at_extremes_is_a_noop(session):
    a, b, c = _make(session, 3)
    svc = SliderOrderService(session)
    assert svc.move(a, "up") == {"id": a, "position": 1}
    assert svc.move(c, "down") == {"id": c, "position": 3}
    assert _positions(session) == {a: 1, b: 2, c: 3}


def test_move_rejects_bad_direction(session):
    a, _, _ = _make(session, 3)
    with pytest.raises(ValidationError) as exc:
        SliderOrderService(session).move(a, "sideways")
    assert exc.value.code == "INVALID_DIRECTION"


def test_move_unknown_slide_is_not_found(session):
    _make(session, 2)
    with pytest.raises(NotFoundError):
        SliderOrderService(session).move(str(uuid.uuid4()), "up")
    with pytest.raises(NotFoundError):
        SliderOrderService(session).move("not-an-id", "up")


def test_set_position_displaces_occupant(session):
    a, b, c = _make(session, 3)
    result = SliderOrderService(session).set_position(a, 3)
    assert result == {"id": a, "position": 3}
    assert _positions(session) == {a: 3, b: 2, c: 1}


def test_set_position_to_current_is_idempotent(session):
    a, b, c = _make(session, 3)
    svc = SliderOrderService(session)
    assert svc.set_position(b, 2) == {"id": b, "position": 2}
    assert svc.set_position(b, 2) == {"id": b, "position": 2}
    assert _positions(session) == {a: 1, b: 2, c: 3}


def test_set_position_clamps_out_of_range_target(session):
    a, b, c = _make(session, 3)
    assert SliderOrderService(session).set_position(a, 99) == {"id": a, "position": 3}
    assert _positions(session) == {a: 3, b: 2, c: 1}


def test_set_position_truncates_floats(session):
    a, b, c = _make(session, 3)
    assert SliderOrderService(session).set_position(c, 1.9)["position"] == 1
    assert _positions(session) == {a: 3, b: 2, c: 1}


@pytest.mark.parametrize("bad", [None, 0, -2, "2", True, float("nan"), float("inf"), [1]])
def test_set_position_rejects_invalid_values(session, bad):
    a, b, c = _make(session, 3)
    with pytest.raises(ValidationError):
        SliderOrderService(session).set_position(a, bad)
    assert _positions(session) == {a: 1, b: 2, c: 3}


def test_set_position_unknown_slide_is_not_found(session):
    _make(session, 2)
    with pytest.raises(NotFoundError):
        SliderOrderService(session).set_position(str(uuid.uuid4()), 1)


def test_delete_renumbers_remaining(session):
    a, b, c, d = _make(session, 4)
    SliderOrderService(session).delete(b)
    assert _positions(session) == {a: 1, c: 2, d: 3}


def test_delete_last_slide_leaves_empty_store(session):
    (a,) = _make(session, 1)
    SliderOrderService(session).delete(a)
    assert _positions(session) == {}


def test_delete_unknown_slide_changes_nothing(session):
    a, b = _make(session, 2)
    with pytest.raises(NotFoundError):
        SliderOrderService(session).delete(str(uuid.uuid4()))
    with pytest.raises(NotFoundError):
        SliderOrderService(session).delete("garbage")
    assert _positions(session) == {a: 1, b: 2}


def test_replace_order_applies_permutation(session):
    a, b, c = _make(session, 3)
    SliderOrderService(session).replace_order([c, a, b])
    assert _positions(session) == {c: 1, a: 2, b: 3}


def test_replace_order_round_trip_is_noop(session):
    ids = _make(session, 4)
    svc = SliderOrderService(session)
    before = _positions(session)
    svc.replace_order(repositories.SliderRepository(session).ids_in_order())
    assert _positions(session) == before
    assert repositories.SliderRepository(session).ids_in_order() == ids


def test_replace_order_accepts_uppercase_ids(session):
    a, b = _make(session, 2)
    SliderOrderService(session).replace_order([b.upper(), a.upper()])
    assert _positions(session) == {a: 2, b: 1}


@pytest.mark.parametrize(
    "build, code",
    [
        (lambda ids: [], "IDS_REQUIRED"),
        (lambda ids: None, "IDS_REQUIRED"),
        (lambda ids: "abc", "IDS_REQUIRED"),
        (lambda ids: [ids[0], "nope", ids[2]], "INVALID_ID"),
        (lambda ids: [ids[0], 7, ids[2]], "INVALID_ID"),
        (lambda ids: [ids[0], ids[0], ids[1]], "DUPLICATE_ID"),
        (lambda ids: [ids[0], ids[1], str(uuid.uuid4())], "UNKNOWN_ID"),
        (lambda ids: [ids[0], ids[1]], "LENGTH_MISMATCH"),
    ],
)
def test_replace_order_rejections_leave_store_untouched(session, build, code):
    ids = _make(session, 3)
    with pytest.raises(ValidationError) as exc:
        SliderOrderService(session).replace_order(build(ids))
    assert exc.value.code == code
    assert _positions(session) == {ids[0]: 1, ids[1]: 2, ids[2]: 3}


def test_replace_order_reports_index_of_malformed_id(session):
    ids = _make(session, 3)
    with pytest.raises(ValidationError) as exc:
        SliderOrderService(session).replace_order([ids[0], "x", ids[2]])
    assert exc.value.message == "invalid id at index 1"


def test_replace_order_rowcount_mismatch_rolls_back(session, monkeypatch):
    a, b, c = _make(session, 3)
    original = repositories.SliderRepository.set_position

    def lossy_set_position(self, slider_id, position, expected=None):
        original(self, slider_id, position, expected)
        return 0 if slider_id == a else 1

    monkeypatch.setattr(repositories.SliderRepository, "set_position", lossy_set_position)
    with pytest.raises(ConflictError) as exc:
        SliderOrderService(session).replace_order([c, b, a])
    assert exc.value.code == "ROWCOUNT_MISMATCH"
    monkeypatch.undo()
    assert _positions(session) == {a: 1, b: 2, c: 3}


def test_colliding_append_is_a_conflict(session, monkeypatch):
    a, b = _make(session, 2)
    # a stale read of the maximum makes the new slide collide with position 1
    monkeypatch.setattr(repositories.SliderRepository, "max_position", lambda self: 0)
    with pytest.raises(ConflictError):
        SliderOrderService(session).append(models.Slider(image_url="https://img.test/x.png", position=0))
    monkeypatch.undo()
    assert _positions(session) == {a: 1, b: 2}


def test_mixed_operations_keep_order_gap_free(session):
    ids = _make(session, 6)
    svc = SliderOrderService(session)
    svc.move(ids[5], "up")
    _assert_gap_free(session)
    svc.set_position(ids[0], 4)
    _assert_gap_free(session)
    svc.delete(ids[2])
    _assert_gap_free(session)
    remaining = repositories.SliderRepository(session).ids_in_order()
    svc.replace_order(list(reversed(remaining)))
    _assert_gap_free(session)
    assert repositories.SliderRepository(session).ids_in_order() == list(reversed(remaining))
    svc.append(models.Slider(image_url="https://img.test/new.png", position=0))
    _assert_gap_free(session)
    assert len(_positions(session)) == 6


def test_store_failure_is_reported_as_transient(session, monkeypatch):
    a, b = _make(session, 2)

    def broken_shift(self, offset):
        raise OperationalError("UPDATE slider", {}, Exception("disk I/O error"))

    monkeypatch.setattr(repositories.SliderRepository, "shift_all", broken_shift)
    with pytest.raises(TransientStoreError):
        SliderOrderService(session).replace_order([b, a])
    monkeypatch.undo()
    assert _positions(session) == {a: 1, b: 2}


def _race_after(monkeypatch, method, action):
    """Run `action` in a second session right after the first call to `method`."""
    original = getattr(repositories.SliderRepository, method)
    state = {"fired": False}

    def racing(self, *args, **kwargs):
        result = original(self, *args, **kwargs)
        if not state["fired"]:
            state["fired"] = True
            with Session(engine) as other:
                action(SliderOrderService(other))
        return result

    monkeypatch.setattr(repositories.SliderRepository, method, racing)


def test_move_racing_a_delete_is_a_conflict(session, monkeypatch):
    a, b, c = _make(session, 3)
    _race_after(monkeypatch, "neighbour", lambda svc: svc.delete(a))
    with pytest.raises(ConflictError) as exc:
        SliderOrderService(session).move(c, "up")
    assert exc.value.code == "ORDER_CHANGED"
    monkeypatch.undo()
    assert _positions(session) == {b: 1, c: 2}


def test_reorder_racing_an_append_is_a_conflict(session, monkeypatch):
    a, b, c = _make(session, 3)
    added = []
    _race_after(
        monkeypatch,
        "ids_in_order",
        lambda svc: added.append(svc.append(models.Slider(image_url="https://img.test/late.png", position=0)).id),
    )
    with pytest.raises(ConflictError):
        SliderOrderService(session).replace_order([c, b, a])
    monkeypatch.undo()
    assert _positions(session) == {a: 1, b: 2, c: 3, added[0]: 4}


def test_set_position_racing_a_delete_is_a_conflict(session, monkeypatch):
    a, b, c = _make(session, 3)
    _race_after(monkeypatch, "occupant", lambda svc: svc.delete(c))
    with pytest.raises(ConflictError):
        SliderOrderService(session).set_position(a, 3)
    monkeypatch.undo()
    assert _positions(session) == {a: 1, b: 2}


def test_append_racing_a_delete_is_a_conflict(session, monkeypatch):
    a, b, c = _make(session, 3)
    _race_after(monkeypatch, "max_position", lambda svc: svc.delete(a))
    with pytest.raises(ConflictError):
        SliderOrderService(session).append(models.Slider(image_url="https://img.test/x.png", position=0))
    monkeypatch.undo()
    assert _positions(session) == {b: 1, c: 2}


def test_move_with_stale_neighbour_is_a_conflict(session, monkeypatch):
    a, b, c = _make(session, 3)
    monkeypatch.setattr(repositories.SliderRepository, "neighbour", lambda self, position, direction: (a, 2))
    with pytest.raises(ConflictError) as exc:
        SliderOrderService(session).move(c, "up")
    assert exc.value.code == "ORDER_CHANGED"
    monkeypatch.undo()
    assert _positions(session) == {a: 1, b: 2, c: 3}


def test_move_index_collision_is_a_conflict(session, monkeypatch):
    a, b, c = _make(session, 3)
    # the parking spot collides with c
    monkeypatch.setattr(SliderOrderService, "_temp_position", lambda self: 3)
    with pytest.raises(ConflictError) as exc:
        SliderOrderService(session).move(b, "up")
    assert exc.value.code == "POSITION_CONFLICT"
    monkeypatch.undo()
    assert _positions(session) == {a: 1, b: 2, c: 3}


def test_set_position_index_collision_is_a_conflict(session, monkeypatch):
    a, b, c = _make(session, 3)
    monkeypatch.setattr(SliderOrderService, "_temp_position", lambda self: 3)
    with pytest.raises(ConflictError) as exc:
        SliderOrderService(session).set_position(a, 2)
    assert exc.value.code == "POSITION_CONFLICT"
    monkeypatch.undo()
    assert _positions(session) == {a: 1, b: 2, c: 3}


def test_delete_index_collision_restores_deleted_slide(session, monkeypatch):
    a, b, c, d = _make(session, 4)
    # a stale order without the staging shift makes d land on b's position
    monkeypatch.setattr(SliderOrderService, "_temp_position", lambda self: 0)
    monkeypatch.setattr(repositories.SliderRepository, "ids_in_order", lambda self: [c, d, b])
    with pytest.raises(ConflictError) as exc:
        SliderOrderService(session).delete(a)
    assert exc.value.code == "POSITION_CONFLICT"
    monkeypatch.undo()
    assert _positions(session) == {a: 1, b: 2, c: 3, d: 4}


def test_delete_with_stale_order_is_a_conflict(session, monkeypatch):
    a, b, c, d = _make(session, 4)
    monkeypatch.setattr(repositories.SliderRepository, "ids_in_order", lambda self: [c, d])
    with pytest.raises(ConflictError) as exc:
        SliderOrderService(session).delete(a)
    assert exc.value.code == "ORDER_CHANGED"
    monkeypatch.undo()
    assert _positions(session) == {a: 1, b: 2, c: 3, d: 4}


@pytest.mark.parametrize("code", ["UNKNOWN_ID", "LENGTH_MISMATCH"])
def test_replace_order_lookup_rejections_write_nothing(session, monkeypatch, code):
    a, b, c = _make(session, 3)
    ids = [a, b, str(uuid.uuid4())] if code == "UNKNOWN_ID" else [a, b]

    def unexpected_shift(self, offset):
        raise AssertionError("no write expected")

    monkeypatch.setattr(repositories.SliderRepository, "shift_all", unexpected_shift)
    with pytest.raises(ValidationError) as exc:
        SliderOrderService(session).replace_order(ids)
    assert exc.value.code == code
    assert not session.in_transaction()


def test_update_commit_collision_is_a_conflict(session, monkeypatch):
    a, b = _make(session, 2)

    def failing_commit():
        raise IntegrityError("UPDATE slider", {}, Exception("UNIQUE constraint failed: slider.position"))

    monkeypatch.setattr(session, "commit", failing_commit)
    with pytest.raises(ConflictError):
        SliderService(session).update(a, SliderUpdateIn(title="renamed"))
    monkeypatch.undo()
    session.expire_all()
    assert session.get(models.Slider, a).title is None
    assert _positions(session) == {a: 1, b: 2}


@pytest.mark.parametrize(
    "raw",
    [
        "{%s}",
        "urn:uuid:%s",
        "%s ",
    ],
)
def test_normalize_id_accepts_only_dashed_guids(raw):
    value = str(uuid.uuid4())
    assert normalize_id(value) == value
    assert normalize_id(value.upper()) == value
    assert normalize_id(raw % value) is None
    assert normalize_id(value.replace("-", "")) is None
    assert normalize_id("00000000-0000-0000-0000-000000000000") is None
