"""PostgreSQL foreign-key introspection via information_schema.

Reads the live FK graph so a restore order can be checked against the
actual database rather than only the declared map.

Uses psycopg (v3) for PostgreSQL connections.
"""

import psycopg
from psycopg import Connection


class ForeignKeyIntrospector:
    """Introspects foreign-key dependencies of a PostgreSQL schema.

    Works with any PostgreSQL database (Supabase, RDS, local).

    Usage:
        with ForeignKeyIntrospector(database_url) as introspector:
            foreign_keys = introspector.get_foreign_keys()
            # {"profiles": {"organizations"}, "documents": {...}, ...}
    """

    # Tables to exclude from introspection (system tables)
    EXCLUDED_TABLES = {
        "schema_migrations",
        "pg_stat_statements",
        "spatial_ref_sys",
    }

    def __init__(self, database_url: str):
        """Initialize with database connection URL.

        Args:
            database_url: PostgreSQL connection URL
        """
        self._database_url = database_url
        self._conn: Connection | None = None

    def __enter__(self) -> "ForeignKeyIntrospector":
        """Context manager entry - opens connection."""
        # Append connect_timeout if not already in URL
        url = self._database_url
        if "connect_timeout" not in url:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}connect_timeout=10"

        self._conn = psycopg.connect(url)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - closes connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def get_foreign_keys(self, schema_name: str = "public") -> dict[str, set[str]]:
        """Get the FK dependency graph of a schema.

        Every base table appears as a key, including tables without
        foreign keys.  Self references are omitted.

        Args:
            schema_name: PostgreSQL schema to query (default: public)

        Returns:
            Dict mapping table name to the set of tables it references
        """
        if not self._conn:
            raise RuntimeError("Introspector not connected. Use with statement.")

        result: dict[str, set[str]] = {
            table: set()
            for table in self._get_tables(schema_name)
            if table not in self.EXCLUDED_TABLES
        }

        query = """
            SELECT DISTINCT
                tc.table_name,
                ccu.table_name AS references_table
            FROM information_schema.table_constraints tc
            JOIN information_schema.constraint_column_usage ccu
                ON tc.constraint_name = ccu.constraint_name
                AND tc.table_schema = ccu.constraint_schema
            WHERE tc.table_schema = %s
              AND tc.constraint_type = 'FOREIGN KEY'
        """
        with self._conn.cursor() as cur:
            cur.execute(query, (schema_name,))
            for table_name, ref_table in cur.fetchall():
                if table_name not in result or ref_table == table_name:
                    continue
                result[table_name].add(ref_table)

        return result

    def _get_tables(self, schema_name: str) -> list[str]:
        """Get all table names in schema."""
        query = """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = %s
              AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """
        with self._conn.cursor() as cur:
            cur.execute(query, (schema_name,))
            return [row[0] for row in cur.fetchall()]
