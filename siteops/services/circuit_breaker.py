"""
Circuit breaker pattern with Redis-backed state and health tracking.

One breaker per outbound provider (PageSpeed, OpenAI, Resend). States:
  - CLOSED    → normal operation, requests pass through
  - OPEN      → too many consecutive failures, calls short-circuit with CircuitOpenError
  - HALF_OPEN → after reset_timeout, one probe request is let through

Redis being unreachable never blocks a call: every Redis operation fails open.
Health counters feed GET /api/health.
"""
import logging
import time

logger = logging.getLogger('siteops.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'

# name → (failure_threshold, reset_timeout seconds)
BREAKER_SETTINGS = {
    'pagespeed': (3, 300),
    'openai': (5, 60),
    'resend': (3, 180),
}


class CircuitOpenError(Exception):
    """Raised when calling through an open circuit breaker."""
    http_status = 503

    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is open, {name} calls are paused")


class CircuitBreaker:
    """
    Redis-backed circuit breaker.

    Usage:
        cb = CircuitBreaker('pagespeed', redis_client, failure_threshold=3, reset_timeout=300)
        resp = cb.call(requests.get, url, params=params, timeout=60)
    """

    PREFIX = 'siteops:cb'

    def __init__(self, name, redis_client, failure_threshold=3, reset_timeout=300):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    def _key(self, suffix):
        return f'{self.PREFIX}:{self.name}:{suffix}'

    def _safe(self, op, default=None):
        """Run a Redis operation, returning default if Redis is unavailable."""
        try:
            return op()
        except Exception as e:
            logger.debug("Circuit '%s' redis op failed: %s", self.name, e)
            return default

    # ── State ─────────────────────────────────────────────────────────

    @property
    def state(self):
        current = self._safe(lambda: self.redis.get(self._key('state')))
        if current is None:
            return CLOSED
        if current == OPEN and self._seconds_since_failure() > self.reset_timeout:
            self._safe(lambda: self.redis.set(self._key('state'), HALF_OPEN))
            return HALF_OPEN
        return current

    @property
    def failure_count(self):
        val = self._safe(lambda: self.redis.get(self._key('failures')))
        return int(val) if val else 0

    def _seconds_since_failure(self):
        last = self._safe(lambda: self.redis.get(self._key('last_failure')))
        if not last:
            return float('inf')
        return time.time() - float(last)

    # ── Calls ─────────────────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        """Execute func through the circuit breaker."""
        if self.state == OPEN:
            retry_after = max(0.0, self.reset_timeout - self._seconds_since_failure())
            raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def _on_success(self):
        def op():
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.hincrby(self._key('health'), 'success', 1)
            pipe.hset(self._key('health'), 'last_success', str(time.time()))
            pipe.execute()
        self._safe(op)

    def _on_failure(self, error):
        def op():
            count = self.redis.incr(self._key('failures'))
            now = str(time.time())
            pipe = self.redis.pipeline()
            pipe.set(self._key('last_failure'), now)
            pipe.hincrby(self._key('health'), 'failure', 1)
            pipe.hset(self._key('health'), 'last_failure', now)
            pipe.hset(self._key('health'), 'last_error', str(error)[:200])
            if count >= self.failure_threshold:
                pipe.set(self._key('state'), OPEN)
            pipe.execute()
            return count

        count = self._safe(op)
        if count is None:
            return
        if count >= self.failure_threshold:
            logger.warning("Circuit '%s' OPENED after %d failures: %s", self.name, count, error)
        else:
            logger.info("Circuit '%s' failure %d/%d: %s", self.name, count, self.failure_threshold, error)

    def reset(self):
        """Manually close the circuit."""
        def op():
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.delete(self._key('last_failure'))
            pipe.execute()
            return True

        if self._safe(op):
            logger.info("Circuit '%s' manually reset to CLOSED", self.name)
        else:
            logger.error("Failed to reset circuit '%s'", self.name)

    def get_health(self):
        """Return health metrics dict for this service."""
        data = self._safe(lambda: self.redis.hgetall(self._key('health')))
        state = self.state if data is not None else 'unknown'
        data = data or {}
        return {
            'name': self.name,
            'state': state,
            'failure_count': self.failure_count,
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(data.get('success', 0)),
            'total_failure': int(data.get('failure', 0)),
            'last_success': float(data['last_success']) if data.get('last_success') else None,
            'last_failure': float(data['last_failure']) if data.get('last_failure') else None,
            'last_error': data.get('last_error', ''),
        }


# ── Registry ─────────────────────────────────────────────────────────────

_registry = {}


def get_breaker(name, redis_client=None):
    """Get or create the named breaker (singleton per name)."""
    if name not in _registry:
        if redis_client is None:
            from siteops.extensions import redis_client
        threshold, timeout = BREAKER_SETTINGS.get(name, (3, 300))
        _registry[name] = CircuitBreaker(name, redis_client, failure_threshold=threshold, reset_timeout=timeout)
    return _registry[name]


def get_all_breakers():
    """Return all registered circuit breakers."""
    return dict(_registry)


def init_breakers(redis_client):
    """(Re)create the breakers for every external provider."""
    breakers = {
        name: CircuitBreaker(name, redis_client, failure_threshold=threshold, reset_timeout=timeout)
        for name, (threshold, timeout) in BREAKER_SETTINGS.items()
    }
    _registry.update(breakers)
    return breakers
