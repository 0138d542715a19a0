"""Named-parameter binding for query templates.

Templates use `:name` placeholders. They are bound through SQLAlchemy's
`text()` construct, whose dialect compiler rewrites them into the driver's
native paramstyle (qmark, pyformat, numeric...). Sequence values become
expanding parameters so `col IN :ids` receives one bind per element.
"""
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import bindparam, text
from sqlalchemy.sql.elements import TextClause

from dbgateway.common.errors import QueryError

# Same lexical rule SQLAlchemy applies to text(); `::type` casts are skipped.
_NAMED_PARAM = re.compile(r"(?<![:\w\x5c]):(\w+)(?!:)")


def placeholder_names(template: str) -> List[str]:
    """Returns placeholder names in order of first appearance."""
    seen: Dict[str, None] = {}
    for match in _NAMED_PARAM.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def _is_expanding(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def bind_named_parameters(
    template: str, params: Optional[Mapping[str, Any]] = None
) -> Tuple[TextClause, Dict[str, Any]]:
    """Builds an executable statement and its bind values.

    Args:
        template: SQL with `:name` placeholders.
        params: Values keyed by placeholder name. Keys without a placeholder
            are ignored.

    Returns:
        The compiled-on-execute statement and the bind values it needs.

    Raises:
        QueryError: If the template is empty or a placeholder has no value.
    """
    if not template or not template.strip():
        raise QueryError("Query template is empty")

    params = params or {}
    names = placeholder_names(template)
    missing = [name for name in names if name not in params]
    if missing:
        raise QueryError(f"Unresolved query parameter(s): {', '.join(missing)}")

    values: Dict[str, Any] = {}
    expanding = []
    for name in names:
        value = params[name]
        if _is_expanding(value):
            expanding.append(bindparam(name, expanding=True))
            value = list(value)
        values[name] = value

    stmt = text(template)
    if expanding:
        stmt = stmt.bindparams(*expanding)
    return stmt, values
