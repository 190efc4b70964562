"""Tests for claimcheck.core.response."""

from __future__ import annotations

from claimcheck.core.response import StorageResult, err, ok


class TestStorageResult:
    def test_ok_with_data(self):
        result = ok({"id": "abc"})

        assert result.success is True
        assert result.data == {"id": "abc"}
        assert result.error is None

    def test_ok_void(self):
        assert ok().to_dict() == {"success": True}

    def test_err(self):
        result = err("connection refused")

        assert result.success is False
        assert result.to_dict() == {"success": False, "error": "connection refused"}

    def test_to_dict_keeps_data(self):
        assert StorageResult(True, data=[1, 2]).to_dict() == {"success": True, "data": [1, 2]}
