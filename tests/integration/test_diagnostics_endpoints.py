"""Integration tests for diagnostics endpoints."""

from unittest.mock import AsyncMock, patch


class TestStatsEndpoint:
    """Test GET /api/stats."""

    def test_reports_cache_state(self, client):
        client.get("/cinemas")

        response = client.get("/api/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["cinemas"]["status"] == "hit"
        assert data["summary"]["tracked_keys"] == 6
        assert "call_limits" in data

    def test_does_not_fetch_upstream(self, client, fake_upstream):
        client.get("/api/stats")
        client.get("/api/cache-inspection")
        client.get("/api/frequency-proof")

        assert fake_upstream.requests == []

    def test_unexpected_error_returns_500(self, client, diagnostics):
        with patch.object(diagnostics, "stats", AsyncMock(side_effect=RuntimeError("boom"))):
            response = client.get("/api/stats")

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}


class TestCacheInspectionEndpoint:
    """Test GET /api/cache-inspection."""

    def test_lists_tracked_entries(self, client):
        client.get("/movies/39")

        response = client.get("/api/cache-inspection")

        assert response.status_code == 200
        entries = {e["key"]: e for e in response.json()["entries"]}
        assert entries["movies_cinema_39"]["exists"] is True
        assert entries["movies_cinema_39"]["record_count"] == 3
        assert entries["cinemas_list"]["exists"] is False

    def test_unexpected_error_returns_500(self, client, diagnostics):
        with patch.object(diagnostics, "cache_inspection", AsyncMock(side_effect=RuntimeError("boom"))):
            response = client.get("/api/cache-inspection")

        assert response.status_code == 500


class TestFrequencyProofEndpoint:
    """Test GET /api/frequency-proof."""

    def test_returns_explanation(self, client):
        response = client.get("/api/frequency-proof")

        assert response.status_code == 200
        data = response.json()
        assert data["limits"]["movies"]["max_calls_per_cinema_per_week"] == 1
        assert len(data["explanation"]) >= 4

    def test_unexpected_error_returns_500(self, client, diagnostics):
        with patch.object(diagnostics, "frequency_proof", side_effect=RuntimeError("boom")):
            response = client.get("/api/frequency-proof")

        assert response.status_code == 500
