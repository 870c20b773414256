"""
Mutation handlers of the list-page states, called with a plain stand-in for
the state instance so no running app is needed
"""
import pytest

from irrigation_app.models.entities import get_entity
from irrigation_app.states.entities import AlertsState, AreasState


class RecordingView:
    def __init__(self, entity_name="areas", records=()):
        self.spec = get_entity(entity_name)
        self.records = list(records)
        self.calls = []

    async def create(self, payload):
        self.calls.append(("create", payload))
        return {"id": "new", **payload}

    async def update(self, id, payload):
        self.calls.append(("update", id, payload))
        return {"id": id, **payload}

    async def update_many(self, ids, payload):
        self.calls.append(("update_many", list(ids), payload))
        return [{"id": id, **payload} for id in ids]

    async def delete(self, id):
        self.calls.append(("delete", id))
        return True


class StandInState:
    def __init__(self, view=None, rejection=None, prepare_error=None, editing_id=""):
        self.view = view
        self.rejection = rejection
        self.prepare_error = prepare_error
        self.checked = []
        self.is_saving = False
        self.dialog_open = True
        self.editing_id = editing_id
        self.editing = {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def _entity_name(self):
        return self.view.spec.name if self.view else "areas"

    async def _rejection(self, operation):
        self.checked.append(operation)
        return self.rejection

    async def _prepare(self, form):
        if self.prepare_error is not None:
            raise self.prepare_error
        return form

    async def _view(self):
        return self.view


async def drain(events):
    return [event async for event in events]


async def test_save_creates_and_closes_dialog():
    view = RecordingView()
    state = StandInState(view)

    assert await drain(AreasState.save_record.fn(state, {"name": " Sawah Utara ", "location": "Karawang"})) == []

    assert view.calls == [("create", {"name": "Sawah Utara", "location": "Karawang"})]
    assert state.checked == ["create"]
    assert not state.is_saving
    assert not state.dialog_open


async def test_save_while_editing_updates():
    view = RecordingView()
    state = StandInState(view, editing_id="a1")

    await drain(AreasState.save_record.fn(state, {"name": "Sawah"}))

    assert state.checked == ["update"]
    assert view.calls == [("update", "a1", {"name": "Sawah"})]


async def test_rejected_save_never_reaches_the_view():
    view = RecordingView()
    state = StandInState(view, rejection="denied")

    events = await drain(AreasState.save_record.fn(state, {"name": "Sawah"}))

    assert events == ["denied"]
    assert view.calls == []
    assert not state.is_saving
    assert state.dialog_open


async def test_failing_prepare_unlocks_the_form():
    state = StandInState(RecordingView(), prepare_error=RuntimeError("session state unavailable"))

    with pytest.raises(RuntimeError):
        await drain(AreasState.save_record.fn(state, {"name": "Sawah"}))

    assert not state.is_saving


async def test_rejected_delete_is_not_sent():
    view = RecordingView()
    state = StandInState(view, rejection="denied")

    assert await drain(AreasState.delete_record.fn(state, "a1")) == ["denied"]
    assert state.checked == ["delete"]
    assert view.calls == []


async def test_mark_all_read_is_one_batched_write():
    view = RecordingView("alerts", [
        {"id": "x1", "is_read": False},
        {"id": "x2", "is_read": True},
        {"id": "x3", "is_read": False},
    ])
    state = StandInState(view)

    await drain(AlertsState.mark_all_read.fn(state))

    assert view.calls == [("update_many", ["x1", "x3"], {"is_read": True})]


async def test_mark_read_requires_permission():
    view = RecordingView("alerts", [{"id": "x1", "is_read": False}])
    state = StandInState(view, rejection="denied")

    assert await drain(AlertsState.mark_read.fn(state, "x1")) == ["denied"]
    assert view.calls == []
