from ordermesh.tracing import Span, SpanStatus, current_span, start_span


def test_root_span_is_valid_and_recording():
    span = start_span("GET /api")
    assert span.name == "GET /api"
    assert span.recording
    assert span.is_valid
    assert span.parent_span_id == ""


def test_child_span_shares_trace():
    parent = start_span("parent")
    child = start_span("child", parent)
    assert child.trace_id == parent.trace_id
    assert child.parent_span_id == parent.span_id
    assert child.span_id != parent.span_id


def test_traceparent_contains_ids():
    span = start_span("x")
    parts = span.traceparent.split("-")
    assert parts[1] == span.trace_id
    assert parts[2] == span.span_id


def test_invalid_span_has_no_traceparent():
    assert Span(name="", recording=False).traceparent == ""


def test_events_recorded_until_end():
    span = start_span("work")
    span.add_event("order.updated")
    span.end()
    span.add_event("late")
    assert span.events == ["order.updated"]
    assert span.ended


def test_error_status_keeps_description():
    span = start_span("work")
    span.set_status(SpanStatus.ERROR, "boom")
    assert span.status is SpanStatus.ERROR
    assert span.status_description == "boom"


def test_ok_status_is_final():
    span = start_span("work")
    span.set_status(SpanStatus.OK, "ignored")
    span.set_status(SpanStatus.ERROR, "boom")
    assert span.status is SpanStatus.OK
    assert span.status_description == ""


def test_current_span_without_active_span_is_not_recording():
    span = current_span()
    span.add_event("nothing")
    assert not span.recording
    assert span.events == []


def test_context_manager_activates_and_ends():
    span = start_span("outer")
    with span as active:
        assert current_span() is active
        child = start_span("inner")
        assert child.parent_span_id == span.span_id
    assert span.ended
    assert current_span() is not span
    assert not current_span().recording