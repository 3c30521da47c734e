"""
Unit Tests - API Middleware
"""
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from discount_analytics.serving.api.middleware import RateLimitMiddleware


def build_limiter(max_requests=2, window_seconds=60):
    app = FastAPI()
    
    @app.get("/ping")
    async def ping():
        return {"status": "ok"}
    
    return RateLimitMiddleware(app, max_requests=max_requests, window_seconds=window_seconds)


class TestRateLimit:
    """Tests for the sliding window rate limiter"""
    
    async def test_blocks_after_limit(self):
        limiter = build_limiter(max_requests=2)
        
        async with AsyncClient(transport=ASGITransport(app=limiter), base_url="http://test") as client:
            statuses = [(await client.get("/ping")).status_code for _ in range(3)]
        
        assert statuses == [200, 200, 429]
    
    def test_sweep_forgets_idle_clients(self):
        limiter = build_limiter(window_seconds=60)
        limiter._requests["10.0.0.1"] = [100.0]
        limiter._requests["10.0.0.2"] = [100.0, 150.0]
        limiter._requests["10.0.0.3"] = []
        
        limiter.sweep(200.0)
        
        assert list(limiter._requests) == ["10.0.0.2"]
    
    @pytest.mark.parametrize("now,kept", [(159.9, True), (160.0, False)])
    def test_sweep_window_boundary(self, now, kept):
        limiter = build_limiter(window_seconds=60)
        limiter._requests["10.0.0.1"] = [100.0]
        
        limiter.sweep(now)
        
        assert ("10.0.0.1" in limiter._requests) is kept
