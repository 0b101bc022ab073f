"""Map loosely-structured claim payloads onto the training schema.

Callers may send either the UI field names (``provider_id``,
``diagnosis_code``, ...) or the canonical training names (``Provider``,
``ClmDiagnosisCode_1``, ...). Each canonical field is described by a
:class:`FieldRule`: an ordered list of candidate raw keys, each with its own
parser, and a default used when none of them is present.

Normalization never raises. Garbage input degrades to ``"Unknown"`` / 0
valued features instead of failing the request.
"""

import math
import re
from typing import Any, Callable, Dict, Iterable, Mapping, NamedTuple, Tuple

UNKNOWN = "Unknown"
NO_PROCEDURE = "00000"

_ICD_PATTERN = re.compile(r"[A-Z][0-9][0-9A-Z.]*", re.IGNORECASE)
_CPT_PATTERN = re.compile(r"(?<![0-9])[0-9]{5}(?![0-9])")
_NON_AMOUNT_CHARS = re.compile(r"[^0-9.]")


def to_text(value: Any) -> str:
    """Stringify a JSON value the way the training export did."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return _float_text(value)
    return str(value)


def _float_text(value: float) -> str:
    """Shortest round-trip digits laid out like JavaScript's Number#toString."""
    if value == 0:
        return "0"
    mantissa, _, exponent = repr(abs(value)).partition("e")
    whole, _, fraction = mantissa.partition(".")
    digits = (whole + fraction).lstrip("0")
    point = len(whole) + int(exponent or 0) - (len(whole + fraction) - len(digits))
    digits = digits.rstrip("0")
    size = len(digits)
    if size <= point <= 21:
        text = digits + "0" * (point - size)
    elif 0 < point <= 21:
        text = digits[:point] + "." + digits[point:]
    elif -6 < point <= 0:
        text = "0." + "0" * -point + digits
    else:
        power = point - 1
        head = digits[0] + ("." + digits[1:] if size > 1 else "")
        sign = "+" if power >= 0 else "-"
        text = f"{head}e{sign}{abs(power)}"
    return ("-" if value < 0 else "") + text


def to_number(value: Any) -> float:
    """
    Permissive numeric coercion.

    Finite numbers pass through, booleans become 0/1, strings are stripped
    and parsed. Anything else, or anything that parses to NaN/inf, is 0.
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    elif isinstance(value, str):
        text = value.strip()
        # float() also accepts digit separators and non-ASCII digits
        if not text or "_" in text or not text.isascii():
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_amount(value: Any) -> float:
    """Parse currency-like strings such as ``"$1,250.00"``."""
    if isinstance(value, str):
        value = _NON_AMOUNT_CHARS.sub("", value)
    return to_number(value)


def extract_icd(value: Any) -> str:
    """Return the first ICD-like token (``E11.9``), upper-cased."""
    match = _ICD_PATTERN.search(to_text(value).strip())
    return match.group(0).upper() if match else UNKNOWN


def extract_cpt(value: Any) -> str:
    """Return the first standalone five digit procedure code."""
    match = _CPT_PATTERN.search(to_text(value).strip())
    return match.group(0) if match else NO_PROCEDURE


def _text(value: Any) -> str:
    return to_text(value).strip()


def _duration(value: Any) -> float:
    return max(1.0, to_number(value))


Parser = Callable[[Any], Any]


class FieldRule(NamedTuple):
    """Resolution rule for one canonical field."""
    name: str
    sources: Tuple[Tuple[str, Parser], ...]
    default: Any


def _text_field(name: str, *aliases: Tuple[str, Parser], default: str = UNKNOWN) -> FieldRule:
    return FieldRule(name, ((name, _text),) + aliases, default)


def _number_field(name: str, *aliases: Tuple[str, Parser], default: float = 0.0) -> FieldRule:
    return FieldRule(name, ((name, to_number),) + aliases, float(default))


CHRONIC_CONDITIONS = (
    "Alzheimer",
    "Heartfailure",
    "KidneyDisease",
    "Cancer",
    "ObstrPulmonary",
    "Depression",
    "Diabetes",
    "IschemicHeart",
    "Osteoporasis",
    "rheumatoidarthritis",
    "stroke",
)

FIELD_RULES: Tuple[FieldRule, ...] = (
    _text_field("Provider", ("provider_id", _text)),
    _number_field("InscClaimAmtReimbursed", ("claim_amount", parse_amount)),
    _text_field("AttendingPhysician", ("referring_physician", _text)),
    _text_field("OperatingPhysician"),
    _text_field("OtherPhysician"),
    _text_field(
        "ClmAdmitDiagnosisCode",
        ("ClmDiagnosisCode_1", _text),
        ("diagnosis_code", extract_icd),
    ),
    _number_field("DeductibleAmtPaid", ("deductible_amount", parse_amount)),
    _text_field("DiagnosisGroupCode", ("service_location", _text)),
    _text_field("ClmDiagnosisCode_1", ("diagnosis_code", extract_icd)),
    *(_text_field(f"ClmDiagnosisCode_{i}") for i in range(2, 11)),
    _text_field("ClmProcedureCode_1", ("procedure_code", extract_cpt), default=NO_PROCEDURE),
    *(_text_field(f"ClmProcedureCode_{i}") for i in range(2, 6)),
    _text_field("Gender", ("gender", _text)),
    _text_field("Race", ("race", _text)),
    _text_field("RenalDiseaseIndicator", ("renal", _text)),
    _text_field("State", ("state", _text)),
    _text_field("County", ("county", _text)),
    _number_field("NoOfMonths_PartACov", default=12),
    _number_field("NoOfMonths_PartBCov", default=12),
    *(_number_field(f"ChronicCond_{name}") for name in CHRONIC_CONDITIONS),
    _number_field("IPAnnualReimbursementAmt"),
    _number_field("IPAnnualDeductibleAmt"),
    _number_field("OPAnnualReimbursementAmt"),
    _number_field("OPAnnualDeductibleAmt"),
    _number_field("AgeAtClaim", ("patient_age", to_number)),
    _number_field("ClaimDuration", ("service_frequency", _duration), default=1),
    _number_field("ClaimsPerProvider", default=1),
    _number_field("ClaimsPerBene", default=1),
)

CANONICAL_FIELDS: Tuple[str, ...] = tuple(rule.name for rule in FIELD_RULES)


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def resolve_field(raw: Mapping[str, Any], rule: FieldRule) -> Any:
    """Apply one rule: first usable candidate wins, else the default."""
    for key, parser in rule.sources:
        value = raw.get(key)
        if _is_missing(value):
            continue
        parsed = parser(value)
        if not _is_missing(parsed):
            return parsed
    return rule.default


def normalize_record(
    raw: Mapping[str, Any],
    extra_fields: Iterable[str] = (),
) -> Dict[str, Any]:
    """
    Build a canonical record from a raw claim payload.

    Args:
        raw: Arbitrary JSON object from the caller
        extra_fields: Bundle features outside the canonical schema; these
            are copied from ``raw`` unchanged (``None`` when absent)

    Returns:
        Dictionary with every canonical field populated
    """
    record: Dict[str, Any] = {rule.name: resolve_field(raw, rule) for rule in FIELD_RULES}
    for name in extra_fields:
        if name not in record:
            record[name] = raw.get(name)
    return record


def unmapped_fields(feature_names: Iterable[str]) -> Tuple[str, ...]:
    """Feature names the canonical schema does not produce."""
    known = set(CANONICAL_FIELDS)
    return tuple(name for name in feature_names if name not in known)
