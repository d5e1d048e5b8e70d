"""Bank directory lookup and search.

The dataset is loaded once from ``data/banks.json`` and never mutated.
Search is case-insensitive substring matching after folding known
interchangeable Han character variants (e.g. 臺/台), so a query typed with
either form finds banks spelled with the other.
"""

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable

from showmethemoney.config import BANKS_DATA_PATH

logger = logging.getLogger(__name__)

# variant -> canonical form, applied to queries and candidates alike
VARIANT_FOLDS: dict[str, str] = {
    "臺": "台",
    "滙": "匯",
}


def fold_variants(text: str) -> str:
    """Lower-case *text* and fold character variants, preserving length.

    Length is preserved so that match offsets in the folded string are
    valid offsets into the original.
    """
    chars = []
    for char in text:
        lowered = char.lower()
        if len(lowered) != 1:
            lowered = char
        chars.append(VARIANT_FOLDS.get(lowered, lowered))
    return "".join(chars)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BankRecord:
    """One entry of the static bank dataset."""

    code: str
    local_name: str
    english_name: str | None = None
    aliases: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BankRecord":
        """Build a record from a ``{no, name, en-name?, aliases?}`` entry."""
        return cls(
            code=str(data["no"]),
            local_name=str(data["name"]),
            english_name=data.get("en-name") or None,
            aliases=tuple(data.get("aliases") or ()),
        )

    def display_name(self, language: str = "zh") -> str:
        if language.lower().startswith("en") and self.english_name:
            return self.english_name
        return self.local_name


@dataclass(frozen=True)
class SearchResult:
    """A search hit. ``matched_alias`` explains hits the display name can't."""

    bank: BankRecord
    matched_alias: str | None = None


@dataclass(frozen=True)
class HighlightRun:
    text: str
    is_match: bool


@dataclass(frozen=True)
class InputResolution:
    """Outcome of resolving free text typed into the bank selector."""

    selected: BankRecord | None
    display_text: str


def display_label(bank: BankRecord, language: str = "zh") -> str:
    """Label shown in the selector once *bank* is chosen, e.g. ``822 中國信託商業銀行``."""
    return f"{bank.code} {bank.display_name(language)}"


def highlight_spans(text: str, query: str) -> list[HighlightRun]:
    """Split *text* into runs, marking the ones that match *query*.

    Matching is case-insensitive and variant-folded, same as :meth:`BankDirectory.search`.
    """
    if not query or not text:
        return [HighlightRun(text, False)]

    folded_text = fold_variants(text)
    folded_query = fold_variants(query)
    runs: list[HighlightRun] = []
    pos = 0
    while True:
        start = folded_text.find(folded_query, pos)
        if start < 0:
            break
        end = start + len(folded_query)
        if start > pos:
            runs.append(HighlightRun(text[pos:start], False))
        runs.append(HighlightRun(text[start:end], True))
        pos = end
    if pos < len(text):
        runs.append(HighlightRun(text[pos:], False))
    return runs


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BankDirectory:
    """Immutable, ordered collection of banks keyed by code."""

    records: tuple[BankRecord, ...]
    _by_code: dict[str, BankRecord] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_code: dict[str, BankRecord] = {}
        for record in self.records:
            if record.code in by_code:
                logger.warning("Duplicate bank code %s in dataset, keeping first", record.code)
                continue
            by_code[record.code] = record
        object.__setattr__(self, "_by_code", by_code)

    @classmethod
    def from_records(cls, records: Iterable[BankRecord]) -> "BankDirectory":
        return cls(tuple(records))

    @classmethod
    def from_json(cls, path: Path) -> "BankDirectory":
        """Load the dataset from *path*; an unreadable file yields an empty directory."""
        try:
            with path.open("r", encoding="utf-8") as fp:
                entries = json.load(fp)
            records = [BankRecord.from_dict(entry) for entry in entries]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error("Failed to load bank dataset from %s: %s", path, e)
            return cls(())
        logger.debug("Loaded %d banks from %s", len(records), path)
        return cls(tuple(records))

    def __len__(self) -> int:
        return len(self.records)

    def find_by_code(self, code: str) -> BankRecord | None:
        return self._by_code.get(code)

    def search(self, query: str, language: str = "zh") -> list[SearchResult]:
        """Find banks whose code, names or aliases contain *query*.

        An empty query returns every bank in dataset order; otherwise hits
        are sorted by bank code.
        """
        if not query:
            return [SearchResult(bank) for bank in self.records]

        term = fold_variants(query)
        results: list[SearchResult] = []
        for bank in self.records:
            display_matches = term in fold_variants(bank.display_name(language))
            name_matches = term in fold_variants(bank.local_name)
            en_matches = bool(bank.english_name) and term in fold_variants(bank.english_name)
            alias_match = next(
                (alias for alias in bank.aliases if term in fold_variants(alias)),
                None,
            )
            code_matches = term in fold_variants(bank.code)

            if not (display_matches or name_matches or en_matches or alias_match or code_matches):
                continue

            matched_alias = None
            if not display_matches:
                matched_alias = (
                    alias_match
                    or (bank.english_name if en_matches else None)
                    or (bank.local_name if name_matches else None)
                )
            results.append(SearchResult(bank, matched_alias))

        results.sort(key=lambda r: r.bank.code)
        return results

    def resolve_input(self, text: str, language: str = "zh") -> InputResolution:
        """Resolve what the user typed to a selected bank, if any.

        Typing clears any previous selection; a bank is selected again only
        when the text is exactly its code or its display label.
        """
        candidate = text.strip()
        bank = self.find_by_code(candidate)
        if bank is None:
            bank = next(
                (b for b in self.records if display_label(b, language) == candidate),
                None,
            )
        return InputResolution(selected=bank, display_text=text)


@lru_cache(maxsize=1)
def get_directory() -> BankDirectory:
    """Return the process-wide directory, loading the packaged dataset once."""
    return BankDirectory.from_json(BANKS_DATA_PATH)
