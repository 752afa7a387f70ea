"""Custom registration forms attached to normal events."""

from felicity.services.errors import InvalidRequestError

FIELD_TYPES = ("TEXT", "TEXTAREA", "DROPDOWN", "CHECKBOX", "RADIO", "FILE")
CHOICE_TYPES = ("DROPDOWN", "CHECKBOX", "RADIO")


def normalize_custom_form(fields: list[dict] | None) -> list[dict] | None:
    if fields is None:
        return None

    normalized = []
    for index, field in enumerate(fields):
        name = str(field.get("fieldName") or "").strip()
        field_type = str(field.get("fieldType") or "").strip().upper()
        if not name:
            raise InvalidRequestError(f"Custom form field #{index + 1} must have a name")
        if field_type not in FIELD_TYPES:
            raise InvalidRequestError(f'Custom form field "{name}" has invalid type')

        options = None
        if field_type in CHOICE_TYPES:
            raw = field.get("options")
            if isinstance(raw, str):
                raw = raw.split(",")
            options = [str(opt).strip() for opt in raw or [] if str(opt).strip()]
            if not options:
                raise InvalidRequestError(f'Custom form field "{name}" requires options')

        order = field.get("order")
        normalized.append(
            {
                "fieldName": name,
                "fieldType": field_type,
                "options": options,
                "required": bool(field.get("required")),
                "order": order if isinstance(order, int) else index,
            }
        )
    return sorted(normalized, key=lambda f: f["order"])


def missing_required_fields(form: list[dict] | None, response: dict | None) -> list[str]:
    response = response or {}
    missing = []
    for field in form or []:
        if not field.get("required"):
            continue
        answer = response.get(field["fieldName"])
        if answer is None or answer == "" or answer == []:
            missing.append(field["fieldName"])
    return missing
