from opensubtitles_rest.query import add_query_string, build_query_string, normalize_options


def test_normalize_lowercases_keys_and_values():
    options = {'IMDB_ID': 'TT0111161', 'Languages': 'EN,FR', 'Type': 'Episode'}

    assert normalize_options(options) == {'imdb_id': 'tt0111161', 'languages': 'en,fr', 'type': 'episode'}


def test_normalize_converts_non_string_values():
    assert normalize_options({'season_number': 2, 'ai_translated': False}) == {
        'season_number': '2',
        'ai_translated': 'false',
    }


def test_normalize_is_idempotent():
    options = {'Query': 'The Shawshank Redemption', 'Year': 1994, 'moviehash_match': 'Include'}

    once = normalize_options(options)

    assert normalize_options(once) == once
    assert list(normalize_options(once)) == list(once)


def test_normalize_returns_a_new_mapping():
    options = {'Query': 'Alien'}

    normalize_options(options)

    assert options == {'Query': 'Alien'}


def test_normalize_keeps_insertion_order_and_last_value_on_collision():
    normalized = normalize_options({'b': '1', 'A': 'x', 'a': 'y', 'c': '3'})

    assert list(normalized.items()) == [('b', '1'), ('a', 'y'), ('c', '3')]


def test_build_query_string_percent_encodes():
    query = build_query_string({'query': 'the office & co', 'languages': 'en,fr'})

    assert query == 'query=the%20office%20%26%20co&languages=en%2Cfr'


def test_add_query_string():
    assert add_query_string('/subtitles', {}) == '/subtitles'
    assert add_query_string('/subtitles', {'imdb_id': 'tt0111161', 'page': '2'}) == \
        '/subtitles?imdb_id=tt0111161&page=2'
