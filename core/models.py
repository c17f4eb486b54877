# core/models.py
from dataclasses import dataclass
from enum import Enum

LOADING_TEXT = "loading..."
NOT_FOUND_TEXT = "no category found"
PARSE_ERROR_TEXT = "parse error"
FETCH_ERROR_TEXT = "fetch error"


class ResolutionKind(str, Enum):
    """State of a single category label."""

    LOADING = "loading"
    CACHE = "cache"
    FETCHED = "fetched"
    NOT_FOUND = "not_found"
    ERROR = "error"

    @classmethod
    def parse(cls, value: str | None) -> "ResolutionKind":
        """Map an attribute value read back from the page; unknown values count as errors."""
        try:
            return cls(value or cls.LOADING.value)
        except ValueError:
            return cls.ERROR


@dataclass(frozen=True)
class Resolution:
    kind: ResolutionKind
    category: str

    @property
    def ready(self) -> bool:
        return self.kind is not ResolutionKind.LOADING

    @property
    def usable(self) -> bool:
        return self.kind in (ResolutionKind.CACHE, ResolutionKind.FETCHED)


LOADING = Resolution(ResolutionKind.LOADING, LOADING_TEXT)


@dataclass
class ProductRow:
    """
    One rendered cart row that has been claimed by the synchronizer.
    label_id is the handle of the injected label; it is unique per page view,
    so a reset never lets an old resolution write into a new label.
    """
    label_id: str
    name: str
    url: str


@dataclass(frozen=True)
class LabelSnapshot:
    label_id: str
    row_id: str | None
    text: str
    kind: ResolutionKind


@dataclass(frozen=True)
class ReadinessCounters:
    total: int = 0
    ready: int = 0

    @property
    def all_ready(self) -> bool:
        return self.total > 0 and self.ready == self.total
