from student_registration.utils.rate_limit import LoginRateLimiter


def test_limit_is_per_key():
    limiter = LoginRateLimiter(max_attempts=2, window_seconds=60)
    assert limiter.allow('a') == (True, 0)
    assert limiter.allow('a') == (True, 0)
    allowed, retry_after = limiter.allow('a')
    assert allowed is False
    assert 1 <= retry_after <= 60
    assert limiter.allow('b')[0] is True


def test_reset():
    limiter = LoginRateLimiter(max_attempts=1, window_seconds=60)
    limiter.allow('a')
    limiter.allow('b')
    limiter.reset('a')
    assert limiter.allow('a')[0] is True
    assert limiter.allow('b')[0] is False
    limiter.reset()
    assert limiter.allow('b')[0] is True
