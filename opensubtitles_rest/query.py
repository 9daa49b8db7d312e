"""Search option normalization and query string encoding"""
from typing import Dict, Mapping
from urllib.parse import quote, urlencode


def normalize_options(options: Mapping) -> Dict[str, str]:
    """
    Lower-case every option key and value.

    The API compares option values case-sensitively against lower-cased
    identifiers ('tt0111161', 'episode', 'en,fr'). Keys that collapse to the
    same lower-cased name keep the first key's position and the last value.

    Args:
        options: Mapping of option name to value, e.g. {'IMDB_ID': 'TT0111161', 'Season_Number': 2}

    Returns:
        New dict with string keys and values, in insertion order
    """
    normalized = {}
    for key, value in options.items():
        normalized[str(key).lower()] = str(value).lower()
    return normalized


def build_query_string(options: Mapping) -> str:
    """Percent-encode options (space becomes %20, not '+')"""
    return urlencode(list(options.items()), quote_via=quote)


def add_query_string(path: str, options: Mapping) -> str:
    if not options:
        return path
    return f"{path}?{build_query_string(options)}"
