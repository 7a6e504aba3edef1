from unittest import mock

from svcpatterns.token_bucket import TokenBucket, rate_limit_interceptor


def test_starts_full():
    bucket = TokenBucket(5, 0)
    assert bucket.tokens == 5


def test_consume_until_empty():
    bucket = TokenBucket(5, 0)
    results = [bucket.consume(1) for _ in range(6)]
    assert results == [True] * 5 + [False]


def test_refused_consume_keeps_tokens():
    bucket = TokenBucket(5, 0)
    assert bucket.consume(6) is False
    assert bucket.tokens == 5


def test_consume_all_then_refuse():
    bucket = TokenBucket(5, 0)
    assert bucket.consume(bucket.tokens) is True
    assert bucket.consume(1) is False


def test_add_refills_beyond_capacity():
    bucket = TokenBucket(5, 0)
    bucket.consume(5)
    bucket.add(100)
    assert bucket.tokens == 100
    assert bucket.consume(100) is True
    assert bucket.consume(1) is False


def test_refill_counts_whole_seconds_and_caps():
    clock = [0.0]
    with mock.patch("time.monotonic", side_effect=lambda: clock[0]):
        bucket = TokenBucket(5, 2)
        assert bucket.consume(5) is True

        clock[0] = 0.9
        assert bucket.consume(1) is False

        clock[0] = 1.5
        assert bucket.consume(2) is True
        assert bucket.consume(1) is False

        clock[0] = 100.0
        assert bucket.consume(5) is True
        assert bucket.consume(1) is False


def test_zero_rate_never_refills():
    clock = [0.0]
    with mock.patch("time.monotonic", side_effect=lambda: clock[0]):
        bucket = TokenBucket(1, 0)
        assert bucket.consume(1) is True
        clock[0] = 1000.0
        assert bucket.consume(1) is False


def test_interceptor_flags_rate_limited_requests():
    bucket = TokenBucket(1, 0)
    intercept = rate_limit_interceptor(bucket)

    def handler(request, rate_limited):
        return request, rate_limited

    results = [intercept("a", handler), intercept("b", handler)]
    assert results == [("a", False), ("b", True)]