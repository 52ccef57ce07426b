# cimawatch/config_api.py
"""
Handlers behind the GET/POST configuration endpoints. They return
``(status_code, json_body)`` so any HTTP layer can serve them.
"""
import re
import sqlite3
from typing import Any, Dict, Tuple

from . import storage
from .codes import normalize_code
from .logger import get_logger
from .models import DEFAULT_HOSPITAL_NAME, Subscription

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ValidationError(ValueError):
    """Configuration rejected; the message names the offending values."""


def validate_config(payload: Dict[str, Any]) -> Subscription:
    if not isinstance(payload, dict):
        raise ValidationError("Cuerpo de la petición inválido")

    emails = payload.get("emails")
    if not isinstance(emails, list) or not emails:
        raise ValidationError("Se requiere al menos un email")

    catalog = payload.get("catalogCNs")
    if not isinstance(catalog, list) or not catalog:
        raise ValidationError("Se requiere un catálogo con códigos nacionales")

    invalid = [e for e in emails if not isinstance(e, str) or not EMAIL_RE.match(e)]
    if invalid:
        raise ValidationError(f"Emails inválidos: {', '.join(str(e) for e in invalid)}")

    codes = list(dict.fromkeys(c for c in (normalize_code(v) for v in catalog) if c))
    if not codes:
        raise ValidationError("Se requiere un catálogo con códigos nacionales")

    hospital = str(payload.get("hospitalName") or "").strip() or DEFAULT_HOSPITAL_NAME
    return Subscription(emails=list(emails), catalog_codes=codes, hospital_name=hospital)


def handle_get_config() -> Tuple[int, Dict[str, Any]]:
    try:
        storage.ensure_db()
        sub = storage.load_latest_subscription()
    except (sqlite3.Error, OSError) as e:
        logger.error("Failed to load configuration: %s", e)
        return 500, {"error": "Error interno del servidor"}

    if sub is None:
        return 200, {"emails": [], "hospitalName": DEFAULT_HOSPITAL_NAME}

    return 200, {
        "emails": sub.emails or [],
        "hospitalName": sub.hospital_name or DEFAULT_HOSPITAL_NAME,
    }


def handle_save_config(payload: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
    try:
        sub = validate_config(payload)
    except ValidationError as e:
        logger.info("Rejected configuration: %s", e)
        return 400, {"error": str(e)}

    try:
        storage.ensure_db()
        saved = storage.save_subscription(sub)
    except (sqlite3.Error, OSError) as e:
        logger.error("Failed to save configuration: %s", e)
        return 500, {"error": "Error al guardar la configuración"}

    return 200, {
        "success": True,
        "message": "Configuración guardada correctamente",
        "data": {
            "id": saved.id,
            "emails": saved.emails,
            "catalogCNs": saved.catalog_codes,
            "hospitalName": saved.hospital_name,
        },
    }
