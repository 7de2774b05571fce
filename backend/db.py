from psycopg2 import pool as pg_pool

from config import CacheSettings
from errors import ConfigurationError


class ConnectionPool:
    def __init__(self, settings: CacheSettings) -> None:
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL environment variable is not set", config_key="DATABASE_URL")
        self._pool = pg_pool.ThreadedConnectionPool(
            settings.pool_min,
            settings.pool_max,
            dsn=settings.database_url,
            sslmode="require",
            connect_timeout=10,
        )

    def get_connection(self):
        return self._pool.getconn()

    def release_connection(self, conn) -> None:
        if conn:
            self._pool.putconn(conn)

    def close(self) -> None:
        self._pool.closeall()
