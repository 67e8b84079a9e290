from dataclasses import dataclass


@dataclass(frozen=True)
class Dependency:
    """A single pinned dependency as recorded in a Godeps manifest."""

    import_path: str
    revision: str
    comment: str = ""
