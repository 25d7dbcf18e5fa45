from typing import Any, Optional

from flask import request

from insight_hub.errors import ValidationError


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def require_int(data: dict, key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer.", field=key)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    if value is None or value == "":
        raise ValidationError(f"Missing required field: {key}.", field=key)
    raise ValidationError(f"{key} must be an integer.", field=key)


def optional_int(data: dict, key: str) -> Optional[int]:
    if data.get(key) is None:
        return None
    return require_int(data, key)


def require_bool(data: dict, key: str) -> bool:
    value = data.get(key)
    if value is None:
        raise ValidationError(f"Missing required field: {key}.", field=key)
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a boolean.", field=key)
    return value


def require_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required field: {key}.", field=key)
    return value.strip()


def optional_str(data: dict, key: str) -> Optional[str]:
    value: Any = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string.", field=key)
    return value.strip() or None
