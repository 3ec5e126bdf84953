"""
Fetching the votes and transfers tables.

Both tables are fetched concurrently and returned together; if either one
fails, the caller gets a MissingInputError (MalformedTableError for files
that are not UTF-8 text) and no layout work starts.
Sources are local paths or http(s) URLs.
"""

import asyncio
import logging
from pathlib import Path
from typing import NamedTuple, Optional
from urllib.parse import urlparse

import httpx

try:
    from ..flow.exceptions import MalformedTableError, MissingInputError
except ImportError:
    from flow.exceptions import MalformedTableError, MissingInputError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class RoundTables(NamedTuple):
    votes_text: str
    transfers_text: str


def is_url(source: str) -> bool:
    return urlparse(str(source)).scheme in ("http", "https")


async def fetch_table_text(
    source: str, client: Optional[httpx.AsyncClient] = None
) -> str:
    """
    Fetch one table as text.

    Args:
        source: Local file path or http(s) URL
        client: HTTP client used for URLs

    Returns:
        Table text
    """
    if is_url(source):
        if client is None:
            raise ValueError("An HTTP client is required to fetch URL sources")
        try:
            response = await client.get(str(source))
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise MissingInputError(f"Could not fetch {source}: {e}") from e
        logger.debug(f"Fetched {len(response.text)} characters from {source}")
        return response.text

    path = Path(source)
    try:
        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
    except OSError as e:
        raise MissingInputError(f"Could not read {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise MalformedTableError(f"{path} is not UTF-8 text: {e}") from e
    logger.debug(f"Read {len(text)} characters from {path}")
    return text


async def fetch_round_tables(
    votes_source: str,
    transfers_source: str,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> RoundTables:
    """
    Fetch the votes and transfers tables together.

    Args:
        votes_source: Path or URL of the votes-by-round table
        transfers_source: Path or URL of the transfers table
        timeout: Per-request timeout in seconds for URL sources
        transport: Optional httpx transport for URL sources

    Returns:
        RoundTables with both texts
    """
    for name, source in (("votes", votes_source), ("transfers", transfers_source)):
        if not source:
            raise MissingInputError(f"No source configured for the {name} table")

    logger.info(f"Fetching tables: votes={votes_source}, transfers={transfers_source}")

    async with httpx.AsyncClient(
        timeout=timeout, follow_redirects=True, transport=transport
    ) as client:
        votes_text, transfers_text = await asyncio.gather(
            fetch_table_text(votes_source, client),
            fetch_table_text(transfers_source, client),
        )

    return RoundTables(votes_text, transfers_text)


def load_round_tables(
    votes_source: str, transfers_source: str, timeout: float = DEFAULT_TIMEOUT
) -> RoundTables:
    """Blocking wrapper around fetch_round_tables for scripts."""
    return asyncio.run(fetch_round_tables(votes_source, transfers_source, timeout))
