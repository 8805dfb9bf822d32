import asyncio
import json

import httpx
import pytest

from bytekindle.keys import derive_key
from bytekindle.kv_storage import InMemoryStorage, KVError, KVStorage
from bytekindle.models import StoryState
from bytekindle.session import SessionController, fallback_scenes
from bytekindle.settings import FALLBACK_SCENE_COUNT, STARTED_KEY_PREFIX
from bytekindle.stubs import StubImageGenerator, StubStoryGenerator


class RecordingStore(InMemoryStorage):
    def __init__(self):
        super().__init__()
        self.writes = []

    async def put(self, key, value, ttl):
        self.writes.append((key, value, ttl))
        return await super().put(key, value, ttl)


class BrokenStore(InMemoryStorage):
    async def put(self, key, value, ttl):
        raise RuntimeError("store is down")


def run(coro):
    return asyncio.run(coro)


def make_controller(scenes=("A", "B", "C"), story_error=None, image_error=None, store=None):
    store = store if store is not None else RecordingStore()
    story = StubStoryGenerator(scenes=scenes, error=story_error)
    image = StubImageGenerator(payload=b"png-bytes", error=image_error)
    return SessionController(store, story, image, ttl_seconds=604800), store, story, image


def stored_state(store, subject):
    return StoryState.from_record(run(store.get(derive_key(subject))))


def test_start_creates_story_and_advance_loops():
    controller, store, story, _ = make_controller()

    target = run(controller.start("Brave Bee"))
    assert target == "/view?hero=Brave%20Bee"
    assert story.calls == ["Brave Bee"]

    record = json.loads(run(store.get(derive_key("Brave Bee"))))
    assert record["scenes"] == ["A", "B", "C"]
    assert record["currentIndex"] == 0

    results = [run(controller.advance("Brave Bee")).model_dump() for _ in range(3)]
    assert results == [
        {"index": 1, "desc": "B", "looped": False},
        {"index": 2, "desc": "C", "looped": False},
        {"index": 0, "desc": "A", "looped": True},
    ]


def test_advance_n_times_loops_only_on_last_call():
    scenes = [f"scene {i}" for i in range(7)]
    controller, store, _, _ = make_controller(scenes=scenes)
    run(controller.start("Little Fox"))

    flags = [run(controller.advance("Little Fox")).looped for _ in range(len(scenes))]
    assert flags == [False] * (len(scenes) - 1) + [True]
    assert stored_state(store, "Little Fox").current_index == 0


def test_start_writes_once_with_retention_ttl():
    controller, store, _, _ = make_controller()
    run(controller.start("Brave Bee", "2024-03"))
    assert len(store.writes) == 1
    key, _, ttl = store.writes[0]
    assert key == derive_key("Brave Bee")
    assert ttl == 604800
    assert stored_state(store, "Brave Bee").birth_month == "2024-03"


def test_start_on_existing_story_rewinds_without_regenerating():
    controller, store, story, _ = make_controller()
    run(controller.start("Brave Bee"))
    run(controller.advance("Brave Bee"))
    run(controller.advance("Brave Bee"))

    story.scenes = ["X", "Y"]
    run(controller.start("  brave   BEE "))

    state = stored_state(store, "Brave Bee")
    assert state.scenes == ["A", "B", "C"]
    assert state.current_index == 0
    assert story.calls == ["Brave Bee"]


@pytest.mark.parametrize("story_error,scenes", [
    (RuntimeError("model unavailable"), None),
    (ValueError("not json"), None),
    (None, []),
    (None, ["", "   "]),
])
def test_generation_failure_uses_fallback_story(story_error, scenes):
    controller, store, _, _ = make_controller(scenes=scenes, story_error=story_error)
    run(controller.start("X"))

    state = stored_state(store, "X")
    assert state.scenes == fallback_scenes()
    assert len(state.scenes) == FALLBACK_SCENE_COUNT >= 1
    assert state.current_index == 0


def test_generated_scenes_are_cleaned():
    controller, store, _, _ = make_controller(scenes=["  A ", "", "B"])
    run(controller.start("Brave Bee"))
    assert stored_state(store, "Brave Bee").scenes == ["A", "B"]


def test_view_reports_current_scene_without_writing():
    controller, store, _, _ = make_controller()
    assert run(controller.view("Brave Bee")) is None

    run(controller.start("Brave Bee"))
    run(controller.advance("Brave Bee"))
    writes = len(store.writes)

    view = run(controller.view("brave bee"))
    assert view.index == 1
    assert view.total == 3
    assert view.description == "B"
    assert len(store.writes) == writes


def test_advance_without_story_returns_none():
    controller, store, _, _ = make_controller()
    assert run(controller.advance("Nobody")) is None
    assert store.writes == []


def test_image_passes_scene_and_story_context():
    controller, _, _, image = make_controller()
    run(controller.start("Brave Bee", "2024-03"))

    assert run(controller.image("Brave Bee", 2)) == b"png-bytes"
    assert len(image.calls) == 1
    call = image.calls[0]
    assert call["scene_text"] == "C"
    assert call["context"] == "A B C"
    assert call["hero"] == "Brave Bee"
    assert call["age"].endswith("m")


def test_image_is_read_only():
    controller, store, _, _ = make_controller()
    run(controller.start("Brave Bee"))
    writes = len(store.writes)
    run(controller.image("Brave Bee", 1))
    assert len(store.writes) == writes
    assert stored_state(store, "Brave Bee").current_index == 0


@pytest.mark.parametrize("index", [5, 3, -1])
def test_image_out_of_range_never_calls_generator(index):
    controller, _, _, image = make_controller()
    run(controller.start("Brave Bee"))
    assert run(controller.image("Brave Bee", index)) is None
    assert image.calls == []


def test_image_without_story_never_calls_generator():
    controller, _, _, image = make_controller()
    assert run(controller.image("Nobody", 0)) is None
    assert image.calls == []


def test_image_failure_propagates():
    controller, _, _, _ = make_controller(image_error=RuntimeError("replicate down"))
    run(controller.start("Brave Bee"))
    with pytest.raises(RuntimeError, match="replicate down"):
        run(controller.image("Brave Bee", 0))


def test_corrupt_record_is_treated_as_missing():
    controller, store, story, _ = make_controller()
    run(store.put(derive_key("Brave Bee"), "active", 60))

    assert run(controller.view("Brave Bee")) is None
    run(controller.start("Brave Bee"))
    assert story.calls == ["Brave Bee"]
    assert stored_state(store, "Brave Bee").scenes == ["A", "B", "C"]


def test_expired_story_is_gone():
    now = [1000.0]
    store = InMemoryStorage(clock=lambda: now[0])
    controller, _, _, _ = make_controller(store=store)
    run(controller.start("Brave Bee"))
    assert run(controller.view("Brave Bee")) is not None

    now[0] += 604800
    assert run(controller.view("Brave Bee")) is None


def test_advance_refreshes_ttl():
    now = [0.0]
    store = InMemoryStorage(clock=lambda: now[0])
    controller, _, _, _ = make_controller(store=store)
    run(controller.start("Brave Bee"))

    now[0] += 600000
    run(controller.advance("Brave Bee"))
    now[0] += 600000
    assert run(controller.view("Brave Bee")).index == 1


def test_record_started_writes_marker():
    controller, store, _, _ = make_controller()
    run(controller.record_started("Brave Bee"))
    assert run(store.get(derive_key("Brave Bee", prefix=STARTED_KEY_PREFIX))) == "active"


def test_record_started_swallows_store_errors():
    controller, _, _, _ = make_controller(store=BrokenStore())
    assert run(controller.record_started("Brave Bee")) is None


def test_unreadable_story_is_never_regenerated():
    record = StoryState(scenes=["A", "B", "C"], current_index=2).to_record()
    kv_data = {derive_key("Brave Bee"): record}
    writes = []

    def handler(request):
        command = json.loads(request.content)
        if command[0] == "GET":
            return httpx.Response(503, json={"error": "unavailable"})
        writes.append(command)
        kv_data[command[1]] = command[2]
        return httpx.Response(200, json={"result": "OK"})

    store = KVStorage(url="https://kv.example.com/", token="secret", transport=httpx.MockTransport(handler))
    controller, _, story, _ = make_controller(scenes=["X", "Y"], store=store)

    with pytest.raises(KVError):
        run(controller.start("Brave Bee"))
    with pytest.raises(KVError):
        run(controller.advance("Brave Bee"))

    assert story.calls == []
    assert writes == []
    state = StoryState.from_record(kv_data[derive_key("Brave Bee")])
    assert state.scenes == ["A", "B", "C"]
    assert state.current_index == 2
