"""Tests for catalog clients with a mocked HTTP session."""

from unittest.mock import Mock

import pytest
import requests

from enrich.clients.factory import create_catalog_client
from enrich.clients.google_books import GoogleBooksClient
from enrich.clients.openlibrary import OpenLibraryClient, title_variants


def make_response(payload=None, status_code=200, json_error=None):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.reason = "OK" if response.ok else "Service Unavailable"
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    if response.ok:
        response.raise_for_status.return_value = None
    else:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} error")
    return response


@pytest.fixture
def session():
    mock_session = Mock(spec=requests.Session)
    mock_session.headers = {}
    return mock_session


class TestGoogleBooksClient:
    def make_client(self, session, **kwargs):
        return GoogleBooksClient(timeout=2, max_results=3, requests_per_minute=100, api_key="", session=session, **kwargs)

    def test_build_query(self, session):
        """Test building the Google Books query."""
        client = self.make_client(session)
        assert client.build_query("Dune", "Frank Herbert") == "intitle:Dune inauthor:Frank Herbert"
        assert client.build_query("Dune") == "intitle:Dune"

    def test_search_success(self, session):
        """Test a successful search and its request parameters."""
        session.get.return_value = make_response(
            {
                "items": [
                    {"id": "a", "volumeInfo": {"title": "Dune", "authors": ["Frank Herbert"]}},
                    {"id": "b", "volumeInfo": {}},
                ]
            }
        )
        client = self.make_client(session)

        result = client.search("Dune", "Frank Herbert")

        assert result.provider_available
        assert result.provider == "google-books"
        assert [c.candidate_id for c in result.candidates] == ["a"]
        args, kwargs = session.get.call_args
        assert args[0] == GoogleBooksClient.VOLUMES_URL
        assert kwargs["params"]["q"] == "intitle:Dune inauthor:Frank Herbert"
        assert kwargs["params"]["maxResults"] == 3
        assert "key" not in kwargs["params"]
        assert kwargs["timeout"] == 2

    def test_api_key_is_sent(self, session):
        """Test the API key is sent when set."""
        session.get.return_value = make_response({})
        client = self.make_client(session)
        client.api_key = "secret"
        client.search("Dune")
        assert session.get.call_args.kwargs["params"]["key"] == "secret"

    def test_no_items(self, session):
        """Test a response without items."""
        session.get.return_value = make_response({"totalItems": 0})
        result = self.make_client(session).search("Nothing")
        assert result.provider_available
        assert result.candidates == []

    def test_unexpected_field_shapes(self, session):
        """Odd field shapes cost at most one record, never the search."""
        session.get.return_value = make_response(
            {
                "items": [
                    {"id": "a", "volumeInfo": {"title": "Dune", "imageLinks": ["x"], "authors": "Frank"}},
                    {"id": "b", "volumeInfo": {"title": "Dune Messiah", "industryIdentifiers": {"x": 1}}},
                    "not-a-record",
                ]
            }
        )

        result = self.make_client(session).search("Dune")

        assert result.provider_available
        assert [c.candidate_id for c in result.candidates] == ["a", "b"]
        assert result.candidates[0].cover_url is None
        assert result.candidates[0].authors == []

    def test_http_error_is_unavailable(self, session):
        """Test an HTTP error marks the provider unavailable."""
        session.get.return_value = make_response(status_code=503)
        result = self.make_client(session).search("Dune")
        assert not result.provider_available
        assert "503" in result.error

    def test_timeout_is_unavailable(self, session, caplog):
        """Test a timeout marks the provider unavailable."""
        session.get.side_effect = requests.exceptions.Timeout()
        result = self.make_client(session).search("Dune")
        assert not result.provider_available
        assert "Timed out" in result.error
        assert "timed out" in caplog.text

    def test_connection_error_is_unavailable(self, session):
        """Test a connection error marks the provider unavailable."""
        session.get.side_effect = requests.exceptions.ConnectionError("refused")
        result = self.make_client(session).search("Dune")
        assert not result.provider_available

    def test_bad_json_is_unavailable(self, session):
        """Test an invalid JSON body marks the provider unavailable."""
        session.get.return_value = make_response(json_error=ValueError("bad json"))
        result = self.make_client(session).search("Dune")
        assert not result.provider_available
        assert "Invalid JSON" in result.error

    def test_rate_limit_and_close(self, session):
        """Test rate limit reporting and closing the session."""
        client = self.make_client(session)
        assert session.headers["User-Agent"].startswith("clippings-import/")
        assert client.get_rate_limit() == (100, 60)
        with client:
            pass
        session.close.assert_called_once()


class TestOpenLibraryClient:
    def make_client(self, session):
        return OpenLibraryClient(timeout=2, max_results=3, requests_per_minute=100, session=session)

    def test_sets_user_agent(self, session):
        """Test the User-Agent header is set."""
        self.make_client(session)
        assert session.headers["User-Agent"].startswith("clippings-import/")

    def test_search_success(self, session):
        """Test a successful search and its request parameters."""
        session.get.return_value = make_response(
            {"docs": [{"key": "/works/OL1W", "title": "Dune", "author_name": ["Frank Herbert"]}]}
        )

        result = self.make_client(session).search("Dune", "Frank Herbert")

        assert [c.candidate_id for c in result.candidates] == ["OL1W"]
        params = session.get.call_args.kwargs["params"]
        assert params == {
            "title": "Dune",
            "limit": 3,
            "fields": OpenLibraryClient.SEARCH_FIELDS,
            "author": "Frank Herbert",
        }

    def test_retries_without_subtitle(self, session):
        """Test retrying with the title before the subtitle."""
        session.get.side_effect = [
            make_response({"docs": []}),
            make_response({"docs": [{"key": "/works/OL2W", "title": "Money"}]}),
        ]

        result = self.make_client(session).search("Money: A Suicide Note")

        assert [c.candidate_id for c in result.candidates] == ["OL2W"]
        titles = [call.kwargs["params"]["title"] for call in session.get.call_args_list]
        assert titles == ["Money: A Suicide Note", "Money"]

    def test_no_retry_when_unavailable(self, session):
        """Test no retry when the provider is down."""
        session.get.return_value = make_response(status_code=500)
        result = self.make_client(session).search("Money: A Suicide Note")
        assert not result.provider_available
        assert session.get.call_count == 1

    def test_timeout_is_unavailable(self, session):
        """Test a timeout marks the provider unavailable."""
        session.get.side_effect = requests.exceptions.Timeout()
        assert not self.make_client(session).search("Dune").provider_available


class TestTitleVariants:
    @pytest.mark.parametrize(
        "title, expected",
        [
            ("Dune", ["Dune"]),
            ("Money: A Suicide Note", ["Money: A Suicide Note", "Money"]),
            ("Walden — or Life in the Woods", ["Walden — or Life in the Woods", "Walden"]),
            (": Untitled", [": Untitled"]),
        ],
    )
    def test_variants(self, title, expected):
        """Test title variants tried in order."""
        assert title_variants(title) == expected


class TestFactory:
    def test_default_from_env(self, monkeypatch):
        """Test the provider comes from CATALOG_PROVIDER."""
        monkeypatch.setenv("CATALOG_PROVIDER", "openlibrary")
        client = create_catalog_client()
        assert isinstance(client, OpenLibraryClient)
        client.close()

    def test_explicit(self):
        """Test creating a named provider."""
        client = create_catalog_client("google-books")
        assert isinstance(client, GoogleBooksClient)
        client.close()

    def test_unknown(self):
        """Test an unknown provider is rejected."""
        with pytest.raises(ValueError, match="Unknown catalog provider"):
            create_catalog_client("wikidata")
