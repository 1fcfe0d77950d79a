"""End-to-end tests for ``watch``: HTTP response bytes in, events out.

Every test runs the full pipeline (connection, reader, framer, decoder,
sequence) over an ``httpx.MockTransport``.
"""

from __future__ import annotations

import gc

import httpx
import pytest
from pydantic import BaseModel

from kubewatch import (
    Cluster,
    DeserializationError,
    Event,
    EventType,
    FrameTooLargeError,
    WatchConnectionError,
    watch,
)
from kubewatch.models.config import KubeWatchConfig, StreamConfig

from ..conftest import make_client, make_frame, make_pod, split_every, unreachable_handler

pytestmark = pytest.mark.integration

_TWO_EVENTS = b'{"type":"ADDED","object":{"id":1}}\n{"type":"DELETED","object":{"id":1}}\n'


class Metadata(BaseModel):
    name: str


class Pod(BaseModel):
    metadata: Metadata


# ---------------------------------------------------------------------------
# Basic scenarios
# ---------------------------------------------------------------------------


class TestWatchScenarios:
    def test_two_events_then_end(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        client, _ = make_client([_TWO_EVENTS])
        events = list(watch(cluster, "pods", client=client, config=config))
        assert events == [
            Event(EventType.ADDED, {"id": 1}),
            Event(EventType.DELETED, {"id": 1}),
        ]

    @pytest.mark.parametrize("cuts", [(5, 40, 60), (35, 36, 37), (1, 2, 70)])
    def test_same_events_across_chunk_splits(
        self, cluster: Cluster, config: KubeWatchConfig, cuts: tuple[int, int, int]
    ) -> None:
        a, b, c = cuts
        chunks = [_TWO_EVENTS[:a], _TWO_EVENTS[a:b], _TWO_EVENTS[b:c], _TWO_EVENTS[c:]]
        client, _ = make_client(chunks)
        events = list(watch(cluster, "pods", client=client, config=config))
        assert [e.event_type for e in events] == [EventType.ADDED, EventType.DELETED]
        assert [e.object for e in events] == [{"id": 1}, {"id": 1}]

    def test_n_lines_yield_n_events_in_order(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        body = b"".join(make_frame("MODIFIED", {"seq": i}) for i in range(250))
        client, _ = make_client(split_every(body, 97))
        events = list(watch(cluster, "pods", client=client, config=config))
        assert [e.object["seq"] for e in events] == list(range(250))

    def test_final_line_without_newline(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        body = make_frame("ADDED", {"id": 1}) + make_frame("MODIFIED", {"id": 1}, newline=False)
        client, _ = make_client([body])
        events = list(watch(cluster, "pods", client=client, config=config))
        assert [e.event_type for e in events] == [EventType.ADDED, EventType.MODIFIED]

    def test_blank_keepalive_lines_are_skipped(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        body = b"\n" + make_frame("ADDED", {"id": 1}) + b"\r\n\n" + make_frame("DELETED", {"id": 1})
        client, _ = make_client([body])
        events = list(watch(cluster, "pods", client=client, config=config))
        assert len(events) == 2

    def test_empty_body_ends_immediately(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        client, _ = make_client([])
        assert list(watch(cluster, "pods", client=client, config=config)) == []

    def test_typed_objects(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        body = make_frame("ADDED", make_pod("web-0")) + make_frame("DELETED", make_pod("web-1"))
        client, _ = make_client([body])
        events = list(cluster.events("api/v1/pods", Pod, client=client, config=config))
        assert all(isinstance(e.object, Pod) for e in events)
        assert [e.object.metadata.name for e in events] == ["web-0", "web-1"]


# ---------------------------------------------------------------------------
# Decode errors
# ---------------------------------------------------------------------------


class TestDecodeErrors:
    def test_invalid_frame_yielded_inline_and_iteration_continues(
        self, cluster: Cluster, config: KubeWatchConfig
    ) -> None:
        body = make_frame("ADDED", {"id": 1}) + b"{not json}\n" + make_frame("DELETED", {"id": 1})
        client, _ = make_client(split_every(body, 7))
        items = list(watch(cluster, "pods", client=client, config=config))

        assert len(items) == 3
        assert isinstance(items[1], DeserializationError)
        assert items[1].frame == b"{not json}"
        assert items[2] == Event(EventType.DELETED, {"id": 1})

    def test_shape_error_inline_for_typed_watch(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        body = make_frame("ADDED", {"metadata": {}}) + make_frame("ADDED", make_pod("ok"))
        client, _ = make_client([body])
        items = list(watch(cluster, "pods", Pod, client=client, config=config))
        assert isinstance(items[0], DeserializationError)
        assert isinstance(items[1], Event)

    def test_raise_policy_terminates_and_closes(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        body = make_frame("ADDED", {"id": 1}) + b"garbage\n" + make_frame("DELETED", {"id": 1})
        client, _ = make_client([body])
        events = watch(cluster, "pods", on_error="raise", client=client, config=config)

        assert next(events).event_type is EventType.ADDED
        with pytest.raises(DeserializationError):
            next(events)
        with pytest.raises(StopIteration):
            next(events)
        assert events._connection.closed

    def test_policy_from_config(self, cluster: Cluster) -> None:
        client, _ = make_client([b"garbage\n"])
        events = watch(cluster, "pods", client=client, config=KubeWatchConfig(on_error="raise"))
        with pytest.raises(DeserializationError):
            list(events)

    def test_unknown_policy_rejected(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        client, _ = make_client([])
        with pytest.raises(ValueError):
            watch(cluster, "pods", on_error="ignore", client=client, config=config)  # type: ignore[arg-type]

    def test_oversized_record_inline(self, cluster: Cluster) -> None:
        config = KubeWatchConfig(stream=StreamConfig(max_frame_size=64))
        body = make_frame("ADDED", {"blob": "x" * 200}) + make_frame("DELETED", {"id": 1})
        client, _ = make_client(split_every(body, 16))
        items = list(watch(cluster, "pods", client=client, config=config))
        assert isinstance(items[0], FrameTooLargeError)
        assert items[1] == Event(EventType.DELETED, {"id": 1})

    def test_decode_counters(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        body = make_frame("ADDED", {}) + b"bad\n" + make_frame("ADDED", {})
        client, _ = make_client([body])
        events = watch(cluster, "pods", client=client, config=config)
        list(events)
        assert events.events_decoded == 2
        assert events.decode_errors == 1


# ---------------------------------------------------------------------------
# Connection errors
# ---------------------------------------------------------------------------


class TestConnectionErrors:
    def test_unreachable_address_yields_no_events(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        client = httpx.Client(transport=httpx.MockTransport(unreachable_handler))
        with pytest.raises(WatchConnectionError):
            watch(cluster, "pods", client=client, config=config)

    def test_http_error_status(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        client, _ = make_client([], status_code=401)
        with pytest.raises(WatchConnectionError) as exc_info:
            watch(cluster, "pods", client=client, config=config)
        assert exc_info.value.status_code == 401

    def test_stream_interrupted_after_events(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        client, _ = make_client([make_frame("ADDED", {"id": 1})], error=httpx.RemoteProtocolError("peer closed"))
        events = watch(cluster, "pods", client=client, config=config)
        assert next(events).object == {"id": 1}
        with pytest.raises(WatchConnectionError):
            next(events)
        assert events._connection.closed


# ---------------------------------------------------------------------------
# Laziness and resource release
# ---------------------------------------------------------------------------


class TestLazinessAndRelease:
    def test_chunks_pulled_only_on_demand(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        chunks = [make_frame("ADDED", {"id": i}) for i in range(5)]
        client, stream = make_client(chunks)
        events = watch(cluster, "pods", client=client, config=config)
        assert stream.pulled == 0
        next(events)
        assert stream.pulled == 1
        next(events)
        assert stream.pulled == 2
        events.close()

    def test_close_releases_connection_early(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        client, _ = make_client([make_frame("ADDED", {"id": i}) for i in range(5)])
        with watch(cluster, "pods", client=client, config=config) as events:
            first = next(events)
        assert first.object == {"id": 0}
        assert events._connection.closed
        assert events._connection.response.is_closed
        with pytest.raises(StopIteration):
            next(events)

    def test_close_before_iteration(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        client, _ = make_client([make_frame("ADDED", {})])
        events = watch(cluster, "pods", client=client, config=config)
        events.close()
        assert events._connection.closed

    def test_stream_end_closes_connection(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        client, _ = make_client([_TWO_EVENTS])
        events = watch(cluster, "pods", client=client, config=config)
        assert len(list(events)) == 2
        assert events._connection.closed
        assert not client.is_closed

    def test_sequence_is_not_restartable(self, cluster: Cluster, config: KubeWatchConfig) -> None:
        client, _ = make_client([_TWO_EVENTS])
        events = watch(cluster, "pods", client=client, config=config)
        assert len(list(events)) == 2
        assert list(events) == []

    def test_unstarted_sequence_releases_connection_when_collected(
        self, cluster: Cluster, config: KubeWatchConfig
    ) -> None:
        client, stream = make_client([make_frame("ADDED", {})])
        events = watch(cluster, "pods", client=client, config=config)
        connection = events._connection
        del events
        gc.collect()
        assert connection.closed
        assert connection.response.is_closed
        assert stream.pulled == 0

    def test_partly_consumed_sequence_releases_connection_when_collected(
        self, cluster: Cluster, config: KubeWatchConfig
    ) -> None:
        client, _ = make_client([make_frame("ADDED", {"id": i}) for i in range(5)])
        events = watch(cluster, "pods", client=client, config=config)
        next(events)
        connection = events._connection
        del events
        gc.collect()
        assert connection.closed
