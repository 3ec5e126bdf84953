import asyncio

import httpx
import pytest

from flow.exceptions import FlowLayoutError, MalformedTableError, MissingInputError
from storage.sources import (
    RoundTables,
    fetch_round_tables,
    fetch_table_text,
    is_url,
    load_round_tables,
)

VOTES_URL = "https://results.example.org/votes.csv"
TRANSFERS_URL = "https://results.example.org/transfers.csv"


def table_server(tables):
    """MockTransport serving `tables` by URL path, 404 for anything else."""

    def handler(request):
        body = tables.get(request.url.path)
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, text=body)

    return httpx.MockTransport(handler)


class TestIsUrl:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "source, expected",
        [
            ("https://example.org/votes.csv", True),
            ("http://example.org/votes.csv", True),
            ("data/votes.csv", False),
            ("/tmp/votes.csv", False),
            ("ftp://example.org/votes.csv", False),
        ],
    )
    def test_is_url(self, source, expected):
        assert is_url(source) is expected


class TestLocalFiles:
    @pytest.mark.unit
    def test_load_round_tables(self, tmp_path, votes_csv, transfers_csv):
        votes_path = tmp_path / "votes.csv"
        transfers_path = tmp_path / "transfers.csv"
        votes_path.write_text(votes_csv, encoding="utf-8")
        transfers_path.write_text(transfers_csv, encoding="utf-8")

        tables = load_round_tables(str(votes_path), str(transfers_path))

        assert tables == RoundTables(votes_csv, transfers_csv)

    @pytest.mark.unit
    def test_missing_file(self, tmp_path, votes_csv):
        votes_path = tmp_path / "votes.csv"
        votes_path.write_text(votes_csv, encoding="utf-8")

        with pytest.raises(MissingInputError, match="missing.csv"):
            load_round_tables(str(votes_path), str(tmp_path / "missing.csv"))

    @pytest.mark.unit
    def test_file_that_is_not_utf8(self, tmp_path, transfers_csv):
        votes_path = tmp_path / "votes.csv"
        transfers_path = tmp_path / "transfers.csv"
        votes_path.write_bytes(b"\xff\xfeA,1\n")
        transfers_path.write_text(transfers_csv, encoding="utf-8")

        with pytest.raises(MalformedTableError, match="not UTF-8") as exc_info:
            load_round_tables(str(votes_path), str(transfers_path))

        assert isinstance(exc_info.value, FlowLayoutError)

    @pytest.mark.unit
    @pytest.mark.parametrize("votes, transfers", [("", "t.csv"), ("v.csv", None)])
    def test_unconfigured_source(self, votes, transfers):
        with pytest.raises(MissingInputError, match="No source configured"):
            load_round_tables(votes, transfers)


class TestUrlSources:
    @pytest.mark.unit
    def test_fetches_both_tables(self, votes_csv, transfers_csv):
        transport = table_server(
            {"/votes.csv": votes_csv, "/transfers.csv": transfers_csv}
        )

        tables = asyncio.run(
            fetch_round_tables(VOTES_URL, TRANSFERS_URL, transport=transport)
        )

        assert tables.votes_text == votes_csv
        assert tables.transfers_text == transfers_csv

    @pytest.mark.unit
    def test_one_failed_fetch_fails_both(self, votes_csv):
        transport = table_server({"/votes.csv": votes_csv})

        with pytest.raises(MissingInputError, match="transfers.csv"):
            asyncio.run(fetch_round_tables(VOTES_URL, TRANSFERS_URL, transport=transport))

    @pytest.mark.unit
    def test_connection_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(MissingInputError, match="connection refused"):
            asyncio.run(
                fetch_round_tables(
                    VOTES_URL, TRANSFERS_URL, transport=httpx.MockTransport(refuse)
                )
            )

    @pytest.mark.unit
    def test_mixed_sources(self, tmp_path, votes_csv, transfers_csv):
        votes_path = tmp_path / "votes.csv"
        votes_path.write_text(votes_csv, encoding="utf-8")
        transport = table_server({"/transfers.csv": transfers_csv})

        tables = asyncio.run(
            fetch_round_tables(str(votes_path), TRANSFERS_URL, transport=transport)
        )

        assert tables == RoundTables(votes_csv, transfers_csv)

    @pytest.mark.unit
    def test_url_without_client(self):
        with pytest.raises(ValueError, match="HTTP client is required"):
            asyncio.run(fetch_table_text(VOTES_URL))
