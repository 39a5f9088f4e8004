"""
Per-client rate limiting and request metrics for the API gateway.

Both keep their state in process memory behind a lock, so a gateway run as
several processes limits and counts each process separately.
"""

import math
import threading
import time


class TokenBucket:
    """Holds up to `capacity` tokens, refilled continuously at `rate` tokens per second"""

    def __init__(self, capacity, rate, now):
        self.capacity = capacity
        self.rate = rate
        self.tokens = float(capacity)
        self.updated = now

    def refill(self, now):
        self.tokens = min(self.capacity, self.tokens + (now - self.updated) * self.rate)
        self.updated = now

    def take(self, now):
        self.refill(now)
        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False

    def seconds_until_token(self):
        if self.tokens >= 1:
            return 0
        return math.ceil((1 - self.tokens) / self.rate)


class RateLimiter:
    def __init__(self, requests_per_minute=60, burst=10, idle_timeout=600, clock=time.monotonic):
        if requests_per_minute <= 0 or burst <= 0:
            raise ValueError('requests_per_minute and burst must be positive')
        self.requests_per_minute = requests_per_minute
        self.burst = burst
        self.idle_timeout = idle_timeout
        self.clock = clock

        self._buckets = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    @classmethod
    def from_config(cls, config):
        return cls(
            requests_per_minute=config['RATE_LIMIT_REQUESTS_PER_MIN'],
            burst=config['RATE_LIMIT_BURST'],
            idle_timeout=config['RATE_LIMIT_IDLE_TIMEOUT'],
        )

    def allow(self, key):
        """Spend one token from the key's bucket; False when it is empty"""
        with self._lock:
            now = self.clock()
            if now - self._last_cleanup >= self.idle_timeout:
                self._cleanup(now)

            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(self.burst, self.requests_per_minute / 60.0, now)
                self._buckets[key] = bucket
            return bucket.take(now)

    def retry_after(self, key):
        """Whole seconds until the key's bucket holds a token again"""
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                return 0
            bucket.refill(self.clock())
            return bucket.seconds_until_token()

    def _cleanup(self, now):
        for key in [k for k, b in self._buckets.items() if now - b.updated > self.idle_timeout]:
            del self._buckets[key]
        self._last_cleanup = now

    def __len__(self):
        with self._lock:
            return len(self._buckets)


class RequestMetrics:
    """Request counters per '<service>:<method>' key"""

    def __init__(self):
        self._lock = threading.Lock()
        self._routes = {}
        self._active = 0
        self._rate_limited = 0
        self._started = time.time()

    def request_started(self):
        with self._lock:
            self._active += 1

    def request_finished(self, key, status_code, duration):
        with self._lock:
            self._active = max(self._active - 1, 0)
            stats = self._routes.setdefault(key, {'requests': 0, 'errors': 0, 'total_ms': 0.0, 'max_ms': 0.0})
            elapsed_ms = duration * 1000
            stats['requests'] += 1
            stats['total_ms'] += elapsed_ms
            stats['max_ms'] = max(stats['max_ms'], elapsed_ms)
            if status_code >= 400:
                stats['errors'] += 1
            if status_code == 429:
                self._rate_limited += 1

    def snapshot(self):
        with self._lock:
            routes = {
                key: {
                    'requests': stats['requests'],
                    'errors': stats['errors'],
                    'avg_response_ms': round(stats['total_ms'] / stats['requests'], 3),
                    'max_response_ms': round(stats['max_ms'], 3),
                }
                for key, stats in self._routes.items()
            }
            return {
                'uptime_seconds': round(time.time() - self._started, 3),
                'active_requests': self._active,
                'total_requests': sum(stats['requests'] for stats in self._routes.values()),
                'rate_limited': self._rate_limited,
                'routes': routes,
            }
