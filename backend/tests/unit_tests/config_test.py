from apoxer.config import DEFAULT_CORS_ORIGINS, Settings


def test_postgres_urls_use_asyncpg() -> None:
    assert (
        Settings(database_url="postgres://u:p@db/apoxer").database_url
        == "postgresql+asyncpg://u:p@db/apoxer"
    )
    assert (
        Settings(database_url="postgresql://u:p@db/apoxer").database_url
        == "postgresql+asyncpg://u:p@db/apoxer"
    )
    assert Settings(database_url="sqlite+aiosqlite:///x.db").database_url == "sqlite+aiosqlite:///x.db"


def test_cors_origins_parsing() -> None:
    assert Settings(CORS_ORIGINS='["https://apoxer.gg", "https://www.apoxer.gg"]').cors_origins == [
        "https://apoxer.gg",
        "https://www.apoxer.gg",
    ]
    assert Settings(CORS_ORIGINS="https://a.gg, https://b.gg").cors_origins == [
        "https://a.gg",
        "https://b.gg",
    ]
    assert Settings(CORS_ORIGINS="").cors_origins == DEFAULT_CORS_ORIGINS
