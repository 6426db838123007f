"""
Filter request normalization.

Client filter payloads are loosely typed: widgets send empty strings for
"no selection", numbers arrive as strings, and unknown keys show up after UI
changes. The builders here turn such payloads into a predicate, a tuple of
tagged clauses AND-ed together, and ``compile_predicate`` renders it into
SQLAlchemy expressions for a given model.

Field paths are plain column names (``symbol``) or dotted JSON paths into a
document column (``analysis_data.consensus.signal``).
"""
import logging
import math
import uuid
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple, Union

from sqlalchemy import and_, or_

from ledger_api.models import CLOSED, OPEN, POSITION_TYPES

logger = logging.getLogger(__name__)

POSITION_FILTER_KEYS = ("symbol", "position_type", "minPnl", "maxPnl")
ANALYSIS_FILTER_KEYS = ("symbol", "signal", "trend", "recommendation")

ANALYSIS_FIELDS = {
    "symbol": "analysis_data.symbol",
    "signal": "analysis_data.consensus.signal",
    "trend": "analysis_data.ai_analysis.current_trend",
    "recommendation": "analysis_data.ai_analysis.recommendation",
    "summary": "analysis_data.ai_analysis.summary",
}


@dataclass(frozen=True)
class SubstringMatch:
    field: str
    substring: str


@dataclass(frozen=True)
class ExactMatch:
    field: str
    value: Any


@dataclass(frozen=True)
class NotEqual:
    field: str
    value: Any


@dataclass(frozen=True)
class RangeMatch:
    field: str
    minimum: Optional[float] = None
    maximum: Optional[float] = None


@dataclass(frozen=True)
class AnyOf:
    clauses: Tuple["Clause", ...]


@dataclass(frozen=True)
class IdentityMatch:
    value: str


Clause = Union[SubstringMatch, ExactMatch, NotEqual, RangeMatch, AnyOf, IdentityMatch]
Predicate = Tuple[Clause, ...]


def parse_number(value: Any) -> Optional[float]:
    """Parses a client-supplied bound. Anything unparseable is None, never an error."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def clean_text(value: Any) -> Optional[str]:
    """Returns a stripped string for scalar filter values, None for empty or non-scalar ones."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return None


def canonical_record_id(value: Any) -> Optional[str]:
    """Record ids are stored as lowercase dashed UUID text; any other UUID spelling maps onto that."""
    if not isinstance(value, str):
        return None
    try:
        return str(uuid.UUID(value.strip()))
    except ValueError:
        return None


def is_record_id(value: Any) -> bool:
    return canonical_record_id(value) is not None


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _warn_unknown(filters: Mapping[str, Any], known: Tuple[str, ...]):
    unknown = sorted(k for k in filters if k not in known)
    if unknown:
        logger.debug(f"Ignoring unrecognized filter keys: {unknown}")


def status_clause(status: Any) -> Optional[Clause]:
    normalized = clean_text(status)
    if normalized is None:
        return None
    normalized = normalized.upper()
    if normalized == OPEN:
        return NotEqual("status", CLOSED)
    if normalized == CLOSED:
        return ExactMatch("status", CLOSED)
    return None


def build_position_predicate(status: Any = None, filters: Optional[Mapping[str, Any]] = None) -> Predicate:
    filters = filters or {}
    _warn_unknown(filters, POSITION_FILTER_KEYS)
    clauses: List[Clause] = []

    by_status = status_clause(status)
    if by_status is not None:
        clauses.append(by_status)

    symbol = clean_text(filters.get("symbol"))
    if symbol:
        clauses.append(SubstringMatch("symbol", symbol))

    position_type = clean_text(filters.get("position_type"))
    if position_type and position_type.upper() in POSITION_TYPES:
        clauses.append(ExactMatch("position_type", position_type.upper()))

    min_pnl = parse_number(filters.get("minPnl"))
    max_pnl = parse_number(filters.get("maxPnl"))
    if min_pnl is not None or max_pnl is not None:
        clauses.append(RangeMatch("pnl", min_pnl, max_pnl))

    return tuple(clauses)


def build_analysis_predicate(search_term: Any = None, filters: Optional[Mapping[str, Any]] = None) -> Predicate:
    filters = filters or {}
    _warn_unknown(filters, ANALYSIS_FILTER_KEYS)

    term = clean_text(search_term)
    record_id = canonical_record_id(term)
    if record_id:
        return (IdentityMatch(record_id),)

    clauses: List[Clause] = []
    if term:
        clauses.append(AnyOf((
            SubstringMatch(ANALYSIS_FIELDS["symbol"], term),
            SubstringMatch(ANALYSIS_FIELDS["summary"], term),
        )))

    symbol = clean_text(filters.get("symbol"))
    if symbol:
        clauses.append(SubstringMatch(ANALYSIS_FIELDS["symbol"], symbol))

    for key in ("signal", "trend", "recommendation"):
        value = clean_text(filters.get(key))
        if value:
            clauses.append(ExactMatch(ANALYSIS_FIELDS[key], value))

    return tuple(clauses)


def resolve_field(model, path: str):
    head, _, rest = path.partition(".")
    column = getattr(model, head)
    if not rest:
        return column
    return column[tuple(rest.split("."))].as_string()


def _compile(clause: Clause, model):
    if isinstance(clause, IdentityMatch):
        return model.id == clause.value
    if isinstance(clause, AnyOf):
        return or_(*[_compile(c, model) for c in clause.clauses])

    expr = resolve_field(model, clause.field)
    if isinstance(clause, SubstringMatch):
        return expr.ilike(f"%{escape_like(clause.substring)}%", escape="\\")
    if isinstance(clause, ExactMatch):
        return expr == clause.value
    if isinstance(clause, NotEqual):
        return or_(expr != clause.value, expr.is_(None))
    if isinstance(clause, RangeMatch):
        bounds = []
        if clause.minimum is not None:
            bounds.append(expr >= clause.minimum)
        if clause.maximum is not None:
            bounds.append(expr <= clause.maximum)
        return and_(*bounds)
    raise TypeError(f"Unsupported clause: {clause!r}")


def compile_predicate(predicate: Predicate, model) -> list:
    return [_compile(clause, model) for clause in predicate]
