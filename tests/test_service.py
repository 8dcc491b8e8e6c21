import pytest

from prdgen.llm.errors import ClassifiedError, ErrorKind
from prdgen.llm.providers.registry import AdapterRegistry
from prdgen.llm.ratelimit import SlidingWindowRateLimiter
from prdgen.llm.service import DispatchService
from prdgen.llm.types import Message, Request, Response, Usage

from conftest import StubAdapter


def _req(model="m1", temperature=None, messages=None):
    if messages is None:
        messages = [Message("user", "Hi")]
    return Request(model=model, messages=messages, temperature=temperature)


def test_empty_messages_fail_before_any_call(service, stub):
    with pytest.raises(ClassifiedError) as ei:
        service.dispatch(_req(messages=[]))
    assert ei.value.kind is ErrorKind.MISSING_MESSAGES
    assert ei.value.provider == "stub"
    assert stub.calls == 0
    assert service.rate_limiter.recent("m1") == 0


def test_missing_model(service, stub):
    with pytest.raises(ClassifiedError) as ei:
        service.dispatch(_req(model=""))
    assert ei.value.kind is ErrorKind.MISSING_MODEL
    assert ei.value.message
    assert stub.calls == 0


@pytest.mark.parametrize("t", [-0.1, -5, 2.01, 3.0])
def test_temperature_out_of_range(service, stub, t):
    with pytest.raises(ClassifiedError) as ei:
        service.dispatch(_req(temperature=t))
    assert ei.value.kind is ErrorKind.INVALID_TEMPERATURE
    assert not ei.value.retryable
    assert stub.calls == 0


@pytest.mark.parametrize("t", [0.0, 2.0, 1.0])
def test_temperature_bounds_accepted(service, stub, t):
    service.dispatch(_req(temperature=t))
    assert stub.calls == 1


def test_rate_limit_sliding_window(service, stub, clock):
    for _ in range(60):
        service.dispatch(_req())
    with pytest.raises(ClassifiedError) as ei:
        service.dispatch(_req())
    assert ei.value.kind is ErrorKind.RATE_LIMIT_EXCEEDED
    assert ei.value.retryable
    assert stub.calls == 60
    # rejected attempts are not recorded
    assert service.rate_limiter.recent("m1") == 60

    clock.advance(60.5)
    service.dispatch(_req())
    assert stub.calls == 61
    assert service.rate_limiter.recent("m1") == 1


def test_rate_limit_is_per_model(service, clock):
    for _ in range(60):
        service.dispatch(_req())
    with pytest.raises(ClassifiedError) as ei:
        service.dispatch(_req(model="o1"))
    # o1 has its own window; it fails later, at delegation
    assert ei.value.kind is ErrorKind.PROVIDER_NOT_SUPPORTED


def test_unknown_model_makes_no_call(service, stub):
    with pytest.raises(ClassifiedError) as ei:
        service.dispatch(_req(model="nope"))
    assert ei.value.kind is ErrorKind.MODEL_NOT_FOUND
    assert stub.calls == 0


def test_provider_without_adapter(service):
    with pytest.raises(ClassifiedError) as ei:
        service.dispatch(_req(model="o1"))
    assert ei.value.kind is ErrorKind.PROVIDER_NOT_SUPPORTED
    assert ei.value.provider == "orphan"


def test_streaming_not_supported_skips_adapter(service, stub):
    with pytest.raises(ClassifiedError) as ei:
        service.stream(_req(model="m2"))
    assert ei.value.kind is ErrorKind.STREAMING_NOT_SUPPORTED
    assert stub.calls == 0


def test_adapter_exception_wrapped_as_unknown(service, stub):
    stub.error = RuntimeError("socket exploded")
    with pytest.raises(ClassifiedError) as ei:
        service.dispatch(_req())
    assert ei.value.kind is ErrorKind.UNKNOWN_ERROR
    assert ei.value.message == "socket exploded"
    assert ei.value.provider == "stub"
    assert not ei.value.retryable


def test_classified_adapter_error_passes_through(service, stub):
    stub.error = ClassifiedError(ErrorKind.HTTP_ERROR, "OpenAI HTTP 503: busy", status_code=503)
    with pytest.raises(ClassifiedError) as ei:
        service.dispatch(_req())
    assert ei.value.kind is ErrorKind.HTTP_ERROR
    assert ei.value.retryable
    assert ei.value.provider == "stub"


def test_end_to_end_usage_total(service, stub):
    stub.response = Response(content="Hello!", model="m1", usage=Usage(prompt_tokens=5, completion_tokens=2))
    req = Request(
        model="m1",
        messages=[Message("system", "You are helpful"), Message("user", "Hi")],
        temperature=0.7,
    )
    resp = service.dispatch(req)
    assert resp.content == "Hello!"
    assert resp.finish_reason == "stop"
    assert resp.usage.total_tokens == 7
    # the adapter sees the messages exactly as built
    assert [m.role for m in stub.requests[0].messages] == ["system", "user"]


def test_stream_relays_chunks_in_order(service, stub):
    stub.chunks = ["Hel", "lo, ", "world"]
    got = []
    service.dispatch_stream(_req(), got.append)
    assert "".join(got) == "Hello, world"
    assert got == ["Hel", "lo, ", "world"]


def test_stream_rate_checked_once_per_call(service, stub):
    stub.chunks = ["a"] * 10
    list(service.stream(_req()))
    assert service.rate_limiter.recent("m1") == 1


def test_stream_error_after_chunks_is_classified(service, stub):
    stub.chunks = ["partial"]
    stub.error = ValueError("boom")
    got = []
    with pytest.raises(ClassifiedError) as ei:
        service.dispatch_stream(_req(), got.append)
    assert got == ["partial"]
    assert ei.value.kind is ErrorKind.UNKNOWN_ERROR


def test_two_services_do_not_share_limits(catalog, clock):
    adapters = AdapterRegistry()
    adapters.register("stub", StubAdapter())
    a = DispatchService(catalog, adapters, SlidingWindowRateLimiter(max_requests=1, clock=clock))
    b = DispatchService(catalog, adapters, SlidingWindowRateLimiter(max_requests=1, clock=clock))
    a.dispatch(_req())
    b.dispatch(_req())
    with pytest.raises(ClassifiedError):
        a.dispatch(_req())


def test_limiter_forgets_idle_models(clock):
    limiter = SlidingWindowRateLimiter(max_requests=2, clock=clock)
    limiter.check("no-such-model")
    assert limiter.recent("no-such-model") == 1
    clock.advance(61)
    assert limiter.recent("no-such-model") == 0
    assert "no-such-model" not in limiter._log
    limiter.check("m1")
    assert list(limiter._log) == ["m1"]
