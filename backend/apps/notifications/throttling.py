from rest_framework.throttling import SimpleRateThrottle


class EmailRateThrottle(SimpleRateThrottle):
    """Limits the e-mail endpoint per client IP (``DEFAULT_THROTTLE_RATES['email']``)."""
    scope = "email"

    def get_cache_key(self, request, view):
        return self.cache_format % {"scope": self.scope, "ident": self.get_ident(request)}
