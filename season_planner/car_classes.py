"""
Car-class resolution from free-text week descriptions.

Combo series describe each week as text that embeds car names
(e.g. "Talladega Superspeedway - Ferrari 296 GT3, BMW M4 GT3"). The class is
found by substring search over the class table.
"""

from typing import List, Optional, Sequence

from .dataset import CarClassEntry


class CarClassResolver:
    """Maps text to car classes and mentioned cars using the class table."""

    def __init__(self, entries: Sequence[CarClassEntry]):
        # Table order decides ties; substring hits are not disambiguated
        self._entries: List[CarClassEntry] = list(entries)

    def class_of(self, text: str) -> Optional[str]:
        """
        Find the car class implied by a week description.

        Args:
            text: Raw week text.

        Returns:
            Name of the first class (in table order) with a member car
            occurring in the text, or None if nothing matches.
        """
        if not text:
            return None

        for entry in self._entries:
            if any(car in text for car in entry.cars):
                return entry.class_name
        return None

    def cars_mentioned(self, text: str) -> List[str]:
        """
        List every known car occurring in the text.

        Args:
            text: Raw week text.

        Returns:
            Car names in table order, then class list order, without duplicates.
        """
        if not text:
            return []

        found: List[str] = []
        for entry in self._entries:
            for car in entry.cars:
                if car in text and car not in found:
                    found.append(car)
        return found
