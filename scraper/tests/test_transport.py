import pytest
import requests
from adharvest.errors import TransportError
from adharvest.payload import AdEntry, BatchPayload
from adharvest.transport import _make_http, send_batch

PAYLOAD = BatchPayload(advertiser="Acme", ads=[AdEntry(ad_identifier="a1", image_url="u1")])


class FakeResponse:
    def __init__(self, status_code=201, body=None, text=""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 400
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeHTTP:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json, timeout))
        if self.error:
            raise self.error
        return self.response


def test_send_batch_posts_wire_payload_and_returns_count():
    http = FakeHTTP(FakeResponse(201, {"advertiser": "Acme", "platform": "p", "processedAds": 1}))
    assert send_batch("https://api.example", PAYLOAD, session=http, timeout_s=5) == 1
    url, body, timeout = http.calls[0]
    assert url == "https://api.example/api/ads/batch"
    assert body["advertiser"] == "Acme"
    assert body["ads"][0]["adIdentifier"] == "a1"
    assert timeout == 5


def test_send_batch_falls_back_to_sent_count_without_json():
    http = FakeHTTP(FakeResponse(201, None))
    assert send_batch("https://api.example", PAYLOAD, session=http) == 1


def test_send_batch_raises_on_error_status():
    http = FakeHTTP(FakeResponse(400, {"error": "bad"}, text='{"error": "bad"}'))
    with pytest.raises(TransportError) as exc_info:
        send_batch("https://api.example", PAYLOAD, session=http)
    assert exc_info.value.status == 400
    assert "bad" in exc_info.value.body


def test_send_batch_raises_on_network_error():
    http = FakeHTTP(error=requests.ConnectionError("refused"))
    with pytest.raises(TransportError) as exc_info:
        send_batch("https://api.example", PAYLOAD, session=http)
    assert exc_info.value.status is None


def test_make_http_sets_bearer_token():
    s = _make_http("ua/1", "tok")
    assert s.headers["Authorization"] == "Bearer tok"
    assert s.headers["User-Agent"] == "ua/1"
    assert "Authorization" not in _make_http("ua/1", None).headers
