import pytest
import requests

from blast_backend.domain.errors import MappingUnavailable
from blast_backend.infrastructure.identity_source import SupabaseIdentitySource, _total_from_content_range


class FakeResponse:
    def __init__(self, payload, headers=None, status_code=200):
        self.payload = payload
        self.headers = headers or {}
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def make_source(response):
    session = FakeSession(response)
    source = SupabaseIdentitySource("https://db.example.org/", "anon-key", "proteins", session=session)
    return source, session


def test_fetch_page_sends_paging_request():
    source, session = make_source(FakeResponse([{"uniprot_id": "P1"}], {"Content-Range": "0-0/4533"}))

    rows, has_more = source.fetch_page(0, 1000)

    assert rows == [{"uniprot_id": "P1"}]
    assert has_more is True
    url, kwargs = session.requests[0]
    assert url == "https://db.example.org/rest/v1/proteins"
    assert kwargs["params"]["offset"] == 0
    assert kwargs["params"]["limit"] == 1000
    assert kwargs["params"]["select"] == "hsn_id,uniprot_id,gene_name,protein_name"
    assert kwargs["headers"]["apikey"] == "anon-key"
    assert kwargs["headers"]["Authorization"] == "Bearer anon-key"


def test_content_range_ends_paging():
    rows = [{"uniprot_id": f"P{i}"} for i in range(33)]
    source, _ = make_source(FakeResponse(rows, {"Content-Range": "4500-4532/4533"}))

    _, has_more = source.fetch_page(4500, 1000)

    assert has_more is False


def test_full_page_without_content_range_means_more():
    source, _ = make_source(FakeResponse([{"uniprot_id": "P1"}, {"uniprot_id": "P2"}]))

    assert source.fetch_page(0, 2)[1] is True
    assert source.fetch_page(0, 3)[1] is False


def test_unconfigured_source_is_unavailable():
    source = SupabaseIdentitySource("", "", session=FakeSession(FakeResponse([])))

    assert source.configured is False
    with pytest.raises(MappingUnavailable):
        source.fetch_page(0, 10)


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse([], status_code=500),
        requests.ConnectionError("connection refused"),
        FakeResponse(ValueError("not json")),
        FakeResponse({"message": "permission denied"}),
    ],
)
def test_bad_responses_raise_mapping_unavailable(response):
    source, _ = make_source(response)

    with pytest.raises(MappingUnavailable):
        source.fetch_page(0, 10)


@pytest.mark.parametrize(
    "header, expected",
    [("0-999/4533", 4533), ("*/0", 0), ("0-9/*", None), (None, None), ("garbage", None)],
)
def test_total_from_content_range(header, expected):
    assert _total_from_content_range(header) == expected
