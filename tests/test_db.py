import pytest

from familybrief.db import DEFAULT_DATABASE_URL, resolve_database_url


@pytest.mark.parametrize("raw,expected", [
    ("postgresql://u:p@db/brief", "postgresql+psycopg://u:p@db/brief"),
    ("postgres://u:p@db/brief", "postgresql+psycopg://u:p@db/brief"),
    ("sqlite:///./x.db", "sqlite:///./x.db"),
])
def test_resolve_database_url(raw, expected):
    assert resolve_database_url(raw) == expected


def test_defaults_to_local_sqlite(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert resolve_database_url() == DEFAULT_DATABASE_URL
