import pytest

from src.services.relay.injection import (
    InjectionBoundary,
    InjectionState,
    build_fixed_content_frame,
)
from tests.helpers import TEST_ID, TEST_TIMESTAMP, event_payload


class TestFixedContentFrame:

    def test_frame_shape(self, id_factory, clock):
        frame = build_fixed_content_frame("Ad text", id_factory, clock)
        assert frame.startswith("data: ")

        payload = event_payload(frame)
        assert payload == {
            "id": f"chatcmpl-{TEST_ID}",
            "object": "chat.completion",
            "created": TEST_TIMESTAMP,
            "choices": [{
                "index": 0,
                "finish_reason": "stop",
                "delta": {"content": "\n\nAd text", "role": ""}
            }]
        }

    def test_non_ascii_is_not_escaped(self, id_factory, clock):
        frame = build_fixed_content_frame("Реклама", id_factory, clock)
        assert "Реклама" in frame

    def test_default_id_is_fresh(self):
        first = event_payload(build_fixed_content_frame("x"))
        second = event_payload(build_fixed_content_frame("x"))
        assert first["id"].startswith("chatcmpl-")
        assert first["id"] != second["id"]


class TestInjectionBoundary:

    def test_starts_normal(self, id_factory, clock):
        boundary = InjectionBoundary("Ad", id_factory, clock)
        assert boundary.state is InjectionState.NORMAL
        assert boundary.release() is None

    def test_arm_then_release_once(self, id_factory, clock):
        boundary = InjectionBoundary("Ad", id_factory, clock)
        boundary.arm()
        assert boundary.is_pending

        frame = boundary.release()
        assert event_payload(frame)["choices"][0]["delta"]["content"] == "\n\nAd"
        assert boundary.state is InjectionState.NORMAL
        assert boundary.release() is None
        assert boundary.injected_count == 1

    def test_repeated_arm_releases_single_frame(self, id_factory, clock):
        boundary = InjectionBoundary("Ad", id_factory, clock)
        boundary.arm()
        boundary.arm()
        assert boundary.release() is not None
        assert boundary.release() is None

    @pytest.mark.parametrize("fixed_content", ["", None])
    def test_empty_fixed_content_clears_without_frame(self, fixed_content, id_factory, clock):
        boundary = InjectionBoundary(fixed_content, id_factory, clock)
        boundary.arm()
        assert boundary.release() is None
        assert not boundary.is_pending
        assert boundary.injected_count == 0
