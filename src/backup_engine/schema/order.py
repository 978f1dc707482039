"""Restore-order verification against a foreign-key map.

Pure logic -- no I/O.  The foreign-key map is either the declared
``DEFAULT_FOREIGN_KEYS`` or one read from a live database with
``ForeignKeyIntrospector``.

Usage:
    from backup_engine.backup.defaults import DEFAULT_FOREIGN_KEYS, DEFAULT_TABLE_ORDER
    from backup_engine.schema.order import check_restore_order

    result = check_restore_order(DEFAULT_TABLE_ORDER, DEFAULT_FOREIGN_KEYS)
    if not result.valid:
        print(result.format_report())
"""

from collections.abc import Iterable, Mapping

from backup_engine.schema.models import OrderCheckResult, OrderViolation


def check_restore_order(
    order: Iterable[str],
    foreign_keys: Mapping[str, Iterable[str]],
) -> OrderCheckResult:
    """Verify that every referenced table precedes the tables referencing it.

    Args:
        order: Restore order (parents expected first).
        foreign_keys: Mapping of child table to the tables it references.

    Returns:
        ``OrderCheckResult`` with:

        - ``valid``: ``True`` if no child precedes one of its parents
        - ``violations``: each ``(parent, child)`` pair in the wrong order
        - ``missing_tables``: tables of the FK map absent from ``order``
          (warning only)

    Examples:
        >>> check_restore_order(["a", "b"], {"b": {"a"}}).valid
        True
        >>> check_restore_order(["b", "a"], {"b": {"a"}}).violations[0].parent
        'a'
    """
    position = {table: i for i, table in enumerate(order)}
    violations: list[OrderViolation] = []
    missing: set[str] = set()

    for child, parents in foreign_keys.items():
        if child not in position:
            missing.add(child)
            continue
        for parent in sorted(parents):
            if parent == child:
                continue
            if parent not in position:
                missing.add(parent)
                continue
            if position[parent] > position[child]:
                violations.append(
                    OrderViolation(
                        parent=parent,
                        child=child,
                        message=f"{child} references {parent} but is restored first",
                    )
                )

    return OrderCheckResult(
        valid=not violations,
        violations=violations,
        missing_tables=sorted(missing),
    )


def sort_tables(foreign_keys: Mapping[str, Iterable[str]], tables: list[str]) -> list[str]:
    """Topological sort of tables based on FK dependencies.

    Returns tables in forward order: parent tables first, child tables
    last.  Ties keep the order of ``tables``.  Cycles are broken at the
    point they are detected.

    Args:
        foreign_keys: FK dependency graph (table -> referenced tables).
        tables: Table names to sort.

    Returns:
        Tables sorted so that parent tables come before child tables.
    """
    relevant = {t: set(foreign_keys.get(t, ())) & set(tables) for t in tables}

    sorted_tables: list[str] = []
    visited: set[str] = set()
    visiting: set[str] = set()  # For cycle detection

    def visit(table: str) -> None:
        if table in visited or table in visiting:
            return
        visiting.add(table)
        for dep in sorted(relevant.get(table, set()), key=tables.index):
            visit(dep)
        visiting.discard(table)
        visited.add(table)
        sorted_tables.append(table)

    for table in tables:
        visit(table)

    return sorted_tables
