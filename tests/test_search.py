import pytest

from afm.search import matches


@pytest.mark.parametrize(
    "text, query, expected",
    [
        ("drum_loop.wav", "-kick", True),
        ("kick_drum.wav", "-kick", False),
        ("Kick_Drum.wav", "-KICK", False),
        ("Snare_Top.wav", "/^snare/i", True),
        ("Top_Snare.wav", "/^snare/i", False),
        ("Snare_Top.wav", "/^snare/", True),  # no flags -> case-insensitive
        ("Snare_Top.wav", "/^snare/g", False),  # explicit flags drop the default
        ("anything.wav", "-", True),
        ("Bass_Hit.wav", "bass", True),
        ("Bass_Hit.wav", "BASS hit", True),
        ("Bass_Hit.wav", "bass kick", False),
    ],
)
def test_matches_cases(text, query, expected):
    assert matches(text, query) is expected


@pytest.mark.parametrize("query", ["", "   ", "\t\n"])
def test_blank_query_matches_everything(query):
    assert matches("whatever.aif", query)


def test_invalid_regex_falls_back_to_substring():
    assert matches("weird_/[a/_name.wav", "/[a/")
    assert not matches("plain.wav", "/[a/")


def test_unknown_flag_falls_back_to_substring():
    assert matches("x_/a/q.wav", "/a/q")
    assert not matches("a.wav", "/a/q")


def test_slash_only_at_start_is_plain_term():
    assert matches("/tmp", "/tmp")
    assert not matches("tmp", "/tmp")


@pytest.mark.parametrize(
    "text", ["kick_808.wav", "Snare 808.flac", "hat.wav", "808 kick long.mp3"]
)
@pytest.mark.parametrize("q1, q2", [("kick", "808"), ("-hat", "/8+/"), ("snare", "-kick")])
def test_and_semantics(text, q1, q2):
    assert matches(text, f"{q1} {q2}") == (matches(text, q1) and matches(text, q2))
