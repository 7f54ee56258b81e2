"""Which model series the usage charts plot, one entry per chart line."""

from __future__ import annotations

from .models import ALL_MODELS, NO_MODEL


class ChartLineSelection:
    """An ordered, gap-free list of chart line slots.

    Each slot holds a model name, ``ALL_MODELS`` or the ``NO_MODEL``
    placeholder that new slots start with. ``sync`` fills placeholders from
    the models currently present in the usage data.
    """

    def __init__(self, max_count: int = 9, visible_count: int = 3):
        self.max_count = max(1, int(max_count))
        self.selections: list[str] = [NO_MODEL] * self._clamp(visible_count)
        self.initialized = False

    def _clamp(self, count) -> int:
        return min(max(int(count), 1), self.max_count)

    @property
    def visible_count(self) -> int:
        return len(self.selections)

    def resize(self, count: int) -> int:
        """Grow with placeholders or truncate to ``count`` slots (1..max_count)."""
        count = self._clamp(count)
        if count > len(self.selections):
            self.selections.extend([NO_MODEL] * (count - len(self.selections)))
        else:
            del self.selections[count:]
        return count

    def add_line(self) -> bool:
        if len(self.selections) >= self.max_count:
            return False
        self.selections.append(NO_MODEL)
        return True

    def remove_line(self, index: int) -> bool:
        """Drop slot ``index``; later slots shift left. The last slot stays."""
        if len(self.selections) <= 1 or not 0 <= index < len(self.selections):
            return False
        del self.selections[index]
        return True

    def set_selection(self, index: int, value: str | None) -> bool:
        """Point one slot at a model. Returns True if anything changed."""
        if not 0 <= index < len(self.selections):
            return False
        value = value or NO_MODEL
        if self.selections[index] == value:
            return False
        self.selections[index] = value
        return True

    def sync(self, model_names: list[str]) -> list[str]:
        """Re-validate every slot against the models in the latest data.

        The first time models are seen, placeholders and unknown names are
        assigned the next unused model. Afterwards an unknown name becomes
        ``ALL_MODELS`` so a user's choice is never swapped for another model;
        only placeholders are still auto-filled.
        """
        if not model_names and not self.initialized:
            return list(self.selections)

        valid = set(model_names)
        used = {value for value in self.selections if value in valid}
        unused = iter([name for name in model_names if name not in used])

        def next_model() -> str:
            return next(unused, ALL_MODELS)

        for i, value in enumerate(self.selections):
            if value == ALL_MODELS or value in valid:
                continue
            if value == NO_MODEL or not self.initialized:
                self.selections[i] = next_model()
            else:
                self.selections[i] = ALL_MODELS

        if model_names:
            self.initialized = True
        return list(self.selections)

    def active_selections(self) -> list[tuple[int, str]]:
        """(slot index, model) for every slot that should be drawn."""
        return [(i, value) for i, value in enumerate(self.selections)
                if value and value != NO_MODEL]
