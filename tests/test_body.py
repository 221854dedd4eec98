"""
Tests for bounded body ingestion.

Covers JSON and URL-encoded decoding, raw payload retention, the size
ceiling, and pass-through of other content types.
"""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from vocali_api.errors import BodyFormatFault
from vocali_api.middleware.body import decode_form, decode_json

ECHO = "/api/v1/transcriptions/echo"


class TestDecoders:
    def test_json_object(self) -> None:
        assert decode_json(b'{"a": 1}') == {"a": 1}

    def test_json_array(self) -> None:
        assert decode_json(b"[1, 2]") == [1, 2]

    def test_empty_json_is_empty_object(self) -> None:
        assert decode_json(b"  ") == {}

    @pytest.mark.parametrize(
        "raw",
        [
            b"{broken",
            b'"just a string"',
            b"42",
            b"\xff\xfe\x00",
            b'{"a": NaN}',
            b"[Infinity]",
            b'{"a": -Infinity}',
            pytest.param(b"[" * 100_000 + b"]" * 100_000, id="deep-nesting"),
        ],
    )
    def test_json_rejects(self, raw: bytes) -> None:
        with pytest.raises(BodyFormatFault):
            decode_json(raw)

    def test_form_repeated_keys_collect(self) -> None:
        assert decode_form(b"lang=en&tag=a&tag=b&tag=c&empty=") == {
            "lang": "en",
            "tag": ["a", "b", "c"],
            "empty": "",
        }

    def test_form_rejects_invalid_utf8(self) -> None:
        with pytest.raises(BodyFormatFault):
            decode_form(b"name=%ff%fe")


class TestBodyIngestion:
    def test_json_body_decoded_and_raw_retained(self, client: TestClient):
        raw = b'{"webhook": "done",  "id": 7}'
        resp = client.post(ECHO, content=raw, headers={"Content-Type": "application/json; charset=utf-8"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["raw"] == raw.decode()
        assert data["body"] == {"webhook": "done", "id": 7}

    def test_form_body_decoded(self, client: TestClient):
        resp = client.post(ECHO, data={"language": "es", "speaker": "2"})
        data = resp.json()["data"]
        assert data["body"] == {"language": "es", "speaker": "2"}
        assert "language=es" in data["raw"]

    def test_other_content_types_untouched(self, client: TestClient):
        resp = client.post(ECHO, content=b"RIFF....WAVE", headers={"Content-Type": "audio/wav"})
        data = resp.json()["data"]
        assert data == {"raw": None, "body": None}

    def test_handler_can_still_read_body(self, client: TestClient):
        resp = client.post(
            "/api/v1/transcriptions",
            content=json.dumps({"audio_url": "s3://bucket/a.wav"}),
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 200
        assert resp.json()["data"] == {"audio_url": "s3://bucket/a.wav", "language": "en"}

    @pytest.mark.parametrize("env", ["production", "development", "test"])
    def test_malformed_json_is_400_without_detail(self, make_client, env: str):
        resp = make_client(node_env=env).post(
            ECHO, content=b'{"audio_url": ', headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["message"] == "Invalid JSON format"
        assert "detail" not in error
        assert "stack" not in error

    @pytest.mark.parametrize(
        "raw",
        [b'{"audio_url": NaN}', pytest.param(b"[" * 100_000 + b"]" * 100_000, id="deep-nesting")],
    )
    def test_non_standard_json_is_400(self, make_client, raw: bytes):
        resp = make_client(node_env="development").post(
            ECHO, content=raw, headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Invalid JSON format"
        assert "recursion" not in resp.text

    def test_oversized_declared_length(self, make_client):
        client = make_client(max_body_bytes=16)
        resp = client.post(ECHO, content=b'{"text": "' + b"a" * 64 + b'"}', headers={"Content-Type": "application/json"})
        assert resp.status_code == 413
        assert resp.json()["error"]["message"] == "Request entity too large"

    def test_oversized_streamed_body(self, make_client):
        client = make_client(max_body_bytes=16)

        def chunks():
            yield b'{"text": "'
            yield b"a" * 64
            yield b'"}'

        resp = client.post(ECHO, content=chunks(), headers={"Content-Type": "application/json"})
        assert resp.status_code == 413

    def test_oversized_body_is_rejected_before_decoding(self, make_client):
        client = make_client(max_body_bytes=4)
        resp = client.post(ECHO, content=b"{broken json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 413

    def test_body_at_limit_is_accepted(self, make_client):
        client = make_client(max_body_bytes=8)
        resp = client.post(ECHO, content=b'{"a": 1}', headers={"Content-Type": "application/json"})
        assert resp.status_code == 200
