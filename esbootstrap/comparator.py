"""
Compares two mapping trees.

The comparison is symmetric: a field that is missing on either side is a difference, so this tells
us whether a live mapping is fully reconciled with a projected one, not whether one is compatible
with the other. Nested fields are compared recursively; for all other fields we only compare the
field type (not e.g. date formats).
"""

import logging

from esbootstrap.models import IndexFieldKind, MappingNode, PathedDifference


def compare(reference: MappingNode, candidate: MappingNode) -> tuple[bool, list[PathedDifference]]:
    differences: list[PathedDifference] = []
    _compare_properties(reference.properties, candidate.properties, (), differences)
    return not differences, differences


def mappings_equal(reference: MappingNode, candidate: MappingNode) -> bool:
    return compare(reference, candidate)[0]


def _compare_properties(
    reference: dict[str, MappingNode],
    candidate: dict[str, MappingNode],
    path: tuple[str, ...],
    differences: list[PathedDifference],
) -> None:
    for key, ref in reference.items():
        field_path = path + (key,)
        cand = candidate.get(key)
        if cand is None:
            _record(differences, PathedDifference(path=field_path, kind="missing_on_candidate"))
        elif ref.kind == IndexFieldKind.NESTED and cand.kind == IndexFieldKind.NESTED:
            _compare_properties(ref.properties, cand.properties, field_path, differences)
        elif ref.kind != cand.kind:
            _record(
                differences,
                PathedDifference(path=field_path, kind="kind_mismatch", reference=ref.kind, candidate=cand.kind),
            )

    for key in candidate:
        if key not in reference:
            _record(differences, PathedDifference(path=path + (key,), kind="missing_on_reference"))


def _record(differences: list[PathedDifference], difference: PathedDifference) -> None:
    logging.info(f"Mapping difference at {difference}")
    differences.append(difference)
