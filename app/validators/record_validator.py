"""
app/validators/record_validator.py

Batch validation for bulk content imports.

Validation never writes: it partitions the submitted records into valid,
invalid and warned rows and leaves ledger bookkeeping to the caller.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

from app.domain.content_import import ContentRecordInput, RowIssues, ValidationResult
from app.schemas.content_record import PydanticRecordSchemaValidator, RecordSchemaValidator

CodeExists = Callable[[str], bool]


class RecordValidator:
    """
    Validates a batch of raw records against the shape rules, the allowed
    classification ranges and the identity codes already in use.
    """

    def __init__(
        self,
        *,
        schema_validator: RecordSchemaValidator | None = None,
        module_id_range: tuple[int, int] = (0, 20),
        micro_skill_id_range: tuple[int, int] = (1, 74),
    ) -> None:
        self._schema_validator = schema_validator or PydanticRecordSchemaValidator()
        self._module_id_range = module_id_range
        self._micro_skill_id_range = micro_skill_id_range

    def validate_records(
        self,
        records: Sequence[Any],
        *,
        code_exists: CodeExists,
    ) -> ValidationResult:
        """
        Partition records by row (1-indexed).

        A duplicate explicit code, whether already stored or declared by an
        earlier row of the same batch, only produces a warning: the row stays
        valid and its code is cleared so the processor generates a new one.
        """

        result = ValidationResult()
        claimed_codes: dict[str, int] = {}

        for index, raw in enumerate(records):
            row = index + 1
            if not isinstance(raw, Mapping):
                result.invalid.append(RowIssues(row=row, messages=("Record must be an object.",)))
                continue

            errors = list(self._schema_validator.validate(raw))
            module_id = _coerce_int(raw.get("module_id"))
            micro_skill_id = _coerce_int(raw.get("micro_skill_id"))
            errors.extend(self._range_errors(module_id=module_id, micro_skill_id=micro_skill_id))

            if errors or module_id is None or micro_skill_id is None:
                result.invalid.append(RowIssues(row=row, messages=tuple(errors)))
                continue

            warnings: list[str] = []
            identity_code = _clean_code(raw.get("question_code"))
            if identity_code is not None:
                if identity_code in claimed_codes:
                    warnings.append(
                        f"Question code {identity_code} duplicates row {claimed_codes[identity_code]}"
                        " - will generate new code"
                    )
                    identity_code = None
                elif code_exists(identity_code):
                    warnings.append(f"Question code {identity_code} already exists - will generate new code")
                    identity_code = None
                else:
                    claimed_codes[identity_code] = row

            result.valid.append(
                ContentRecordInput(
                    row=row,
                    module_id=module_id,
                    micro_skill_id=micro_skill_id,
                    payload=dict(raw.get("question_data") or {}),
                    attributes=dict(raw.get("metadata") or {}),
                    identity_code=identity_code,
                    lifecycle_state=_clean_code(raw.get("status")),
                )
            )
            if warnings:
                result.warnings.append(RowIssues(row=row, messages=tuple(warnings)))

        return result

    def _range_errors(self, *, module_id: int | None, micro_skill_id: int | None) -> list[str]:
        errors: list[str] = []
        module_min, module_max = self._module_id_range
        skill_min, skill_max = self._micro_skill_id_range
        if module_id is None or not module_min <= module_id <= module_max:
            errors.append("Invalid module_id")
        if micro_skill_id is None or not skill_min <= micro_skill_id <= skill_max:
            errors.append("Invalid micro_skill_id")
        return errors


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _clean_code(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
