from typing import Any

from recordflow.schemas import FieldFailure, MapResult, ValidationResult


class ContactMapper:
    def try_map(self, record: dict[str, Any]) -> MapResult:
        age_raw = record.get("age")
        try:
            age_value = int(age_raw)
        except (TypeError, ValueError):
            return MapResult(ok=False, failures=(FieldFailure("age", "age must be an integer", "not_an_integer"),))

        return MapResult(
            ok=True,
            record={
                "record_key": str(record.get("record_key", "")).strip(),
                "full_name": str(record.get("full_name", "")).strip(),
                "email": str(record.get("email", "")).strip().lower(),
                "age": age_value,
                "source": str(record.get("source", "unknown")).strip().lower(),
            },
        )


class ContactValidator:
    min_age = 18
    max_age = 120

    def try_validate(self, record: dict[str, Any]) -> ValidationResult:
        failures: list[FieldFailure] = []

        if not record["record_key"]:
            failures.append(FieldFailure("record_key", "record_key is required", "required"))
        if not record["full_name"]:
            failures.append(FieldFailure("full_name", "full_name is required", "required"))

        email = record["email"]
        if "@" not in email or "." not in email:
            failures.append(FieldFailure("email", "email format is invalid", "invalid_format"))

        if record["age"] < self.min_age or record["age"] > self.max_age:
            failures.append(
                FieldFailure("age", f"age must be between {self.min_age} and {self.max_age}", "out_of_range")
            )

        return ValidationResult(ok=not failures, failures=tuple(failures))


class ContactFormatter:
    def format(self, record: dict[str, Any]) -> dict[str, Any]:
        age = record["age"]
        age_group = "18-34" if age <= 34 else "35-54" if age <= 54 else "55+"
        return {**record, "age_group": age_group}


def is_partner_contact(record: dict[str, Any]) -> bool:
    return record.get("source") == "partner"
