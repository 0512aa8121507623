"""
Optimization categories - the closed set of mutation unit tags.
"""

from enum import Enum


class Category(str, Enum):
    """One optimization category; each maps to exactly one MutationUnit."""
    CPU = "CPU"
    MEMORY = "MEMORY"
    GRAPHICS = "GRAPHICS"
    NETWORK = "NETWORK"
    WINDOWS_SHELL = "WINDOWS_SHELL"
    SERVICES = "SERVICES"
    POWER = "POWER"
    STORAGE = "STORAGE"
    GAME_SPECIFIC = "GAME_SPECIFIC"

    @classmethod
    def parse(cls, text: str) -> "Category":
        """
        Parse user input such as "cpu", "windows-shell" or "Game Specific".

        Raises:
            ValueError: if the text names no category
        """
        normalized = text.strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(c.label for c in cls)
            raise ValueError(f"Unknown category '{text}'. Valid categories: {valid}") from None

    @property
    def label(self) -> str:
        return self.value.lower().replace("_", "-")
