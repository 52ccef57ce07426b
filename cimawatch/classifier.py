# cimawatch/classifier.py
"""
Criticality of a shortage from the AEMPS observation text.

Rules, in order:
  1. an inactive shortage is never critical;
  2. any alleviation phrase (a substitute exists) -> alleviated, even when a
     critical phrase also appears;
  3. any critical phrase -> critical;
  4. anything else, including no observation at all -> critical.
"""
import enum
import re

from .models import ShortageRecord


class Verdict(enum.Enum):
    CRITICAL = "critical"
    ALLEVIATED = "alleviated"


ALLEVIATION_PHRASES = (
    "existe/n otro/s",
    "existen otros",
    "existe otro",
    "tratamientos alternativos",
    "el médico",
    "tratamientos comercializados",
    "principio activo",
    "principios activos",
    "misma vía de administración",
    "de administracion",
    "de administración",
)

CRITICAL_PHRASES = (
    "medicamento extranjero",
    "distribución controlada",
    "suministro controlado",
)

_WS_RE = re.compile(r"\s+")


def normalize_observation(text: str | None) -> str:
    if not text:
        return ""
    return _WS_RE.sub(" ", str(text).lower())


def classify(record: ShortageRecord) -> Verdict:
    if record.active is False:
        return Verdict.ALLEVIATED

    obs = normalize_observation(record.observation)

    if any(p in obs for p in ALLEVIATION_PHRASES):
        return Verdict.ALLEVIATED

    if any(p in obs for p in CRITICAL_PHRASES):
        return Verdict.CRITICAL

    return Verdict.CRITICAL


def is_critical(record: ShortageRecord) -> bool:
    return classify(record) is Verdict.CRITICAL
