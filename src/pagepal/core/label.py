"""Label - the display title a caller uses to address a book."""

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class Label:
    """Opaque, string-ordered title of a book."""

    value: str = ""

    def __str__(self) -> str:
        return self.value

    def __bool__(self) -> bool:
        return bool(self.value.strip())
