"""Pydantic models for restore-order verification."""

from pydantic import BaseModel, Field


class OrderViolation(BaseModel):
    """A child table restored before a table it references."""

    parent: str
    child: str
    message: str = ""


class OrderCheckResult(BaseModel):
    """Result of checking a restore order against a foreign-key map."""

    valid: bool
    violations: list[OrderViolation] = Field(default_factory=list)
    missing_tables: list[str] = Field(default_factory=list)  # Warning only

    @property
    def error_count(self) -> int:
        """Count of ordering violations."""
        return len(self.violations)

    def format_report(self) -> str:
        """Format check result as human-readable report."""
        if self.valid and not self.missing_tables:
            return "Restore order valid"

        lines = ["Restore order valid" if self.valid else "Restore order check failed:"]

        if self.violations:
            lines.append(f"\n  Children before parents ({len(self.violations)}):")
            for v in self.violations:
                lines.append(f"    - {v.child} before {v.parent}")

        if self.missing_tables:
            lines.append(
                f"\n  Tables not in restore order (warning): "
                f"{', '.join(self.missing_tables)}"
            )

        return "\n".join(lines)
