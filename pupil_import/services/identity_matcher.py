from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..models import Row
from ..models.validation_error import (
    RELIABILITY_LABELS,
    STRATEGY_LABELS,
    ErrorKind,
    IdentityMatch,
    MatchStrategy,
    Reliability,
    Severity,
    ValidationError,
)
from .normalizer import cell_text, format_ahv, normalize_key, normalize_phone_digits

"""Parent identity consolidation.

Decides when two parent-slot occurrences with different stored ids denote the
same real person. Four passes run in decreasing reliability order:

    A    match_by_identifier                AHV number            HIGH   error
    B    match_by_name_address              surname+first+street  MEDIUM error
    C-a  match_by_parent_pair               sorted parent pair    LOW    warning
    C-b  match_by_name_with_disambiguation  name + phone/partner  LOW    warning

Each pass is a function (occurrences, state) -> state'. A (row, id column) that
a pass has flagged is resolved and lower passes never report it again. Within
a match key the first id seen (row order, then slot order) is the correct one;
errors are attached to the losing occurrence.

Known tradeoff: C-b treats a shared other-parent name as proof of identity, so
two unrelated families whose parents share both first and last names are
reported as one. There is no confidence score beyond the tier.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ParentSlot",
    "DEFAULT_PARENT_SLOTS",
    "SlotOccurrence",
    "ParentEntry",
    "MatchState",
    "collect_occurrences",
    "match_by_identifier",
    "match_by_name_address",
    "match_by_parent_pair",
    "match_by_name_with_disambiguation",
    "find_identity_inconsistencies",
]

SAME_ADDRESS_WARNING = (
    "Gleicher Name und gleiche Adresse können auch zwei verschiedene Personen sein "
    "(z.B. Elternteil und erwachsenes Kind)"
)
NAME_ONLY_WARNING = "Übereinstimmung nur über den Namen, bitte prüfen"


@dataclass(frozen=True)
class ParentSlot:
    """Column layout of one parent slot (e.g. ERZ1 -> P_ERZ1_*)."""
    label: str
    id_column: str
    surname_column: str
    first_name_column: str
    ahv_column: str | None = None
    street_column: str | None = None
    phone_columns: tuple[str, ...] = ()

    @staticmethod
    def lehreroffice(number: int) -> ParentSlot:
        prefix = f"P_ERZ{number}_"
        return ParentSlot(
            label=f"ERZ{number}",
            id_column=f"{prefix}ID",
            surname_column=f"{prefix}Name",
            first_name_column=f"{prefix}Vorname",
            ahv_column=f"{prefix}AHV",
            street_column=f"{prefix}Strasse",
            phone_columns=(f"{prefix}TelefonPrivat", f"{prefix}TelefonGeschaeft", f"{prefix}Mobil"),
        )


DEFAULT_PARENT_SLOTS: tuple[ParentSlot, ...] = (ParentSlot.lehreroffice(1), ParentSlot.lehreroffice(2))


def _phone_key(raw: str) -> str:
    digits = normalize_phone_digits(raw)
    if digits.startswith("0041"):
        digits = digits[4:]
    elif digits.startswith("41") and len(digits) == 11:
        digits = digits[2:]
    elif digits.startswith("0"):
        digits = digits[1:]
    return digits if len(digits) >= 7 else ""


@dataclass(frozen=True)
class SlotOccurrence:
    """The values of one parent slot in one row."""
    row: int  # 1-based
    slot: ParentSlot
    id: str
    ahv: str
    surname: str
    first_name: str
    street: str
    phones: frozenset[str]
    other_names: frozenset[str]  # name keys of the other slots of the same row

    @property
    def name_key(self) -> str:
        if not self.surname or not self.first_name:
            return ""
        return f"{normalize_key(self.surname)}|{normalize_key(self.first_name)}"

    @property
    def street_key(self) -> str:
        return normalize_key(self.street)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.surname}".strip()


@dataclass(frozen=True)
class ParentEntry:
    """First-seen occurrence of a match key."""
    chosen_id: str
    first_row: int
    display_identifier: str
    slot_label: str


@dataclass(frozen=True)
class MatchState:
    """Accumulator threaded through the passes."""
    errors: tuple[ValidationError, ...] = ()
    resolved: frozenset[tuple[int, str]] = frozenset()
    reported: frozenset[tuple[int, str, str]] = frozenset()

    def is_resolved(self, row: int, column: str) -> bool:
        return (row, column) in self.resolved

    def with_findings(self, findings: Sequence[ValidationError]) -> MatchState:
        errors = list(self.errors)
        resolved = set(self.resolved)
        reported = set(self.reported)
        for err in findings:
            display = err.match.display_identifier if err.match else ""
            if (err.row, err.column) in resolved or (err.row, err.column, display) in reported:
                continue
            errors.append(err)
            resolved.add((err.row, err.column))
            reported.add((err.row, err.column, display))
        return MatchState(errors=tuple(errors), resolved=frozenset(resolved), reported=frozenset(reported))


def collect_occurrences(
    rows: Sequence[Row], slots: Sequence[ParentSlot] = DEFAULT_PARENT_SLOTS
) -> list[list[SlotOccurrence]]:
    """Extract the parent slots of every row (row order, then slot order)."""
    result: list[list[SlotOccurrence]] = []
    for index, row in enumerate(rows):
        names: dict[str, str] = {}
        raw: list[tuple[ParentSlot, dict[str, str]]] = []
        for slot in slots:
            values = {
                "id": cell_text(row.get(slot.id_column)),
                "ahv": cell_text(row.get(slot.ahv_column)) if slot.ahv_column else "",
                "surname": cell_text(row.get(slot.surname_column)),
                "first_name": cell_text(row.get(slot.first_name_column)),
                "street": cell_text(row.get(slot.street_column)) if slot.street_column else "",
            }
            raw.append((slot, values))
            if values["surname"] and values["first_name"]:
                names[slot.label] = f"{normalize_key(values['surname'])}|{normalize_key(values['first_name'])}"
        occurrences: list[SlotOccurrence] = []
        for slot, values in raw:
            if not any(values.values()):
                continue
            phones = frozenset(
                key for key in (_phone_key(cell_text(row.get(col))) for col in slot.phone_columns) if key
            )
            others = frozenset(name for label, name in names.items() if label != slot.label)
            occurrences.append(
                SlotOccurrence(row=index + 1, slot=slot, phones=phones, other_names=others, **values)
            )
        result.append(occurrences)
    return result


def _render_message(occ: SlotOccurrence, match: IdentityMatch, reference_row: int, reference_id: str) -> str:
    message = (
        f"Inkonsistente ID: '{occ.id}' ({match.slot_label}), dieselbe Person "
        f"({match.display_identifier}) hat in Zeile {reference_row} ({match.reference_slot_label}) "
        f"die ID '{reference_id}' [Strategie: {STRATEGY_LABELS[match.strategy]}, "
        f"Zuverlässigkeit: {RELIABILITY_LABELS[match.reliability]}]"
    )
    if match.warning_text:
        message += f" Hinweis: {match.warning_text}"
    return message


def _inconsistency(
    occ: SlotOccurrence,
    entry: ParentEntry,
    strategy: MatchStrategy,
    reliability: Reliability,
    severity: Severity,
    warning_text: str | None = None,
) -> ValidationError:
    match = IdentityMatch(
        strategy=strategy,
        reliability=reliability,
        display_identifier=entry.display_identifier,
        slot_label=occ.slot.label,
        reference_slot_label=entry.slot_label,
        warning_text=warning_text,
    )
    return ValidationError(
        row=occ.row,
        column=occ.slot.id_column,
        value=occ.id,
        message=_render_message(occ, match, entry.first_row, entry.chosen_id),
        kind=ErrorKind.IDENTITY,
        severity=severity,
        reference_row=entry.first_row,
        reference_value=entry.chosen_id,
        match=match,
    )


def _identifier_key(ahv: str) -> str:
    digits = normalize_phone_digits(ahv)
    return digits if len(digits) == 13 else normalize_key(ahv)


def match_by_identifier(occurrences: Sequence[Sequence[SlotOccurrence]], state: MatchState) -> MatchState:
    """Strategy A: same AHV number, different id."""
    seen: dict[str, ParentEntry] = {}
    findings: list[ValidationError] = []
    for row_occurrences in occurrences:
        for occ in row_occurrences:
            if not occ.id or not occ.ahv:
                continue
            key = _identifier_key(occ.ahv)
            entry = seen.get(key)
            if entry is None:
                seen[key] = ParentEntry(occ.id, occ.row, format_ahv(occ.ahv) or occ.ahv, occ.slot.label)
                continue
            if entry.chosen_id == occ.id or state.is_resolved(occ.row, occ.slot.id_column):
                continue
            findings.append(_inconsistency(occ, entry, MatchStrategy.AHV, Reliability.HIGH, Severity.ERROR))
    logger.debug(f"identity/AHV: {len(findings)} inconsistencies")
    return state.with_findings(findings)


def match_by_name_address(occurrences: Sequence[Sequence[SlotOccurrence]], state: MatchState) -> MatchState:
    """Strategy B: same diacritic-normalized surname, first name and street."""
    seen: dict[str, ParentEntry] = {}
    findings: list[ValidationError] = []
    for row_occurrences in occurrences:
        for occ in row_occurrences:
            if not occ.id or not occ.name_key or not occ.street_key:
                continue
            key = f"{occ.name_key}|{occ.street_key}"
            entry = seen.get(key)
            if entry is None:
                display = f"{occ.display_name}, {occ.street}"
                seen[key] = ParentEntry(occ.id, occ.row, display, occ.slot.label)
                continue
            if entry.chosen_id == occ.id or state.is_resolved(occ.row, occ.slot.id_column):
                continue
            findings.append(
                _inconsistency(
                    occ, entry, MatchStrategy.NAME_ADDRESS, Reliability.MEDIUM, Severity.ERROR,
                    warning_text=SAME_ADDRESS_WARNING,
                )
            )
    logger.debug(f"identity/name+address: {len(findings)} inconsistencies")
    return state.with_findings(findings)


def match_by_parent_pair(occurrences: Sequence[Sequence[SlotOccurrence]], state: MatchState) -> MatchState:
    """Strategy C-a: both parents of a row named; the sorted pair is the key.

    Sorting makes the key independent of which parent sits in which slot.
    """
    seen: dict[str, dict[str, ParentEntry]] = {}
    findings: list[ValidationError] = []
    for row_occurrences in occurrences:
        named = [occ for occ in row_occurrences if occ.name_key]
        if len(named) < 2:
            continue
        pair = named[:2]
        pair_key = "||".join(sorted(occ.name_key for occ in pair))
        display = " & ".join(occ.display_name for occ in pair)
        by_name = seen.get(pair_key)
        if by_name is None:
            seen[pair_key] = {
                occ.name_key: ParentEntry(occ.id, occ.row, display, occ.slot.label) for occ in pair if occ.id
            }
            continue
        known_ids = {entry.chosen_id for entry in by_name.values()}
        for occ in pair:
            if not occ.id:
                continue
            entry = by_name.get(occ.name_key)
            if entry is None:
                # first id seen for this parent of the pair
                by_name[occ.name_key] = ParentEntry(occ.id, occ.row, display, occ.slot.label)
                continue
            if occ.id in known_ids or state.is_resolved(occ.row, occ.slot.id_column):
                continue
            findings.append(
                _inconsistency(
                    occ, entry, MatchStrategy.PARENT_PAIR, Reliability.LOW, Severity.WARNING,
                    warning_text=NAME_ONLY_WARNING,
                )
            )
    logger.debug(f"identity/parent pair: {len(findings)} inconsistencies")
    return state.with_findings(findings)


@dataclass
class _Person:
    """One presumed real person within a same-name group (C-b working set)."""
    entry: ParentEntry
    aliases: set[str] = field(default_factory=set)
    streets: set[str] = field(default_factory=set)
    phones: set[str] = field(default_factory=set)
    other_names: set[str] = field(default_factory=set)

    def absorb(self, occ: SlotOccurrence) -> None:
        if occ.id != self.entry.chosen_id:
            self.aliases.add(occ.id)
        if occ.street_key:
            self.streets.add(occ.street_key)
        self.phones.update(occ.phones)
        self.other_names.update(occ.other_names)

    def is_same_person(self, occ: SlotOccurrence) -> bool:
        if occ.street_key and self.streets:
            if occ.street_key in self.streets:
                # same name and same address is name+address territory
                return False
            return bool(occ.phones & self.phones) or bool(occ.other_names & self.other_names)
        # address unknown on one side: nothing contradicts the name match
        return True


def match_by_name_with_disambiguation(
    occurrences: Sequence[Sequence[SlotOccurrence]], state: MatchState
) -> MatchState:
    """Strategy C-b: same name, different id, disambiguated by phone or partner.

    Occurrences already resolved by a higher strategy are skipped. With two
    different known addresses the pair is only reported when a phone number
    or the other parent's name is shared; otherwise they are two people.
    """
    groups: dict[str, list[_Person]] = {}
    findings: list[ValidationError] = []
    for row_occurrences in occurrences:
        for occ in row_occurrences:
            if not occ.id or not occ.name_key or state.is_resolved(occ.row, occ.slot.id_column):
                continue
            people = groups.setdefault(occ.name_key, [])
            owner = next((p for p in people if p.entry.chosen_id == occ.id), None)
            if owner is not None:
                owner.absorb(occ)
                continue
            target = next((p for p in people if occ.id in p.aliases), None)
            if target is None:
                target = next((p for p in people if p.is_same_person(occ)), None)
            if target is None:
                person = _Person(entry=ParentEntry(occ.id, occ.row, occ.display_name, occ.slot.label))
                person.absorb(occ)
                people.append(person)
                continue
            findings.append(
                _inconsistency(
                    occ, target.entry, MatchStrategy.NAME_ONLY, Reliability.LOW, Severity.WARNING,
                    warning_text=NAME_ONLY_WARNING,
                )
            )
            target.absorb(occ)
    logger.debug(f"identity/name only: {len(findings)} inconsistencies")
    return state.with_findings(findings)


PASSES = (
    match_by_identifier,
    match_by_name_address,
    match_by_parent_pair,
    match_by_name_with_disambiguation,
)


def find_identity_inconsistencies(
    rows: Sequence[Row], slots: Sequence[ParentSlot] = DEFAULT_PARENT_SLOTS
) -> list[ValidationError]:
    """Run all strategies with fresh working maps and return the findings."""
    occurrences = collect_occurrences(rows, slots)
    state = MatchState()
    for match_pass in PASSES:
        state = match_pass(occurrences, state)
    return list(state.errors)
