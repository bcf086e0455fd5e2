"""
Query-string driven reads: filtering, projection, sorting, pagination.

``advanced_results`` turns the raw query-string pairs of a list request into
a Mongo find and returns the success envelope::

    GET /bootcamps?careers[in]=Business&average_cost[lte]=10000
        &select=name,careers&sort=-name&page=2&limit=10

Reserved keys (select, sort, page, limit) drive the read itself; any other
key is a filter. ``field[op]=value`` uses one of the comparison operators in
``OPERATORS``; ``in`` takes a comma separated list.

Values are cast to the type of the field they filter: fields the collection
schema declares as strings (``weeks``, ``location.zipcode``, ``phone``) keep
the raw text, everything else goes through ``coerce``. Private fields can be
neither filtered nor sorted on.
"""

import re
from functools import lru_cache
from typing import (
    AbstractSet, Any, Dict, FrozenSet, Iterable, List, Literal, Optional, Sequence, Tuple, Type, Union,
    get_args, get_origin,
)

from pydantic import BaseModel, EmailStr
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

from database import PRIVATE_FIELDS, sanitize, to_obj_id
from errors import ValidationFailure

RESERVED = {"select", "sort", "page", "limit"}
OPERATORS = {"gt", "gte", "lt", "lte", "in"}
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 25
DEFAULT_SORT = [("created_at", DESCENDING)]

_KEY_RE = re.compile(r"^(?P<field>[\w.]+)\[(?P<op>\w+)\]$")
_INT_RE = re.compile(r"^-?(0|[1-9]\d*)$")
_FLOAT_RE = re.compile(r"^-?(0|[1-9]\d*)\.\d+$")

# (reference field, collection, projected fields)
Populate = Tuple[str, str, Sequence[str]]


def coerce(value: str) -> Any:
    if value in ("true", "false"):
        return value == "true"
    if _INT_RE.match(value):
        return int(value)
    if _FLOAT_RE.match(value):
        return float(value)
    return value


def _unwrap(annotation: Any) -> Any:
    # Optional[X] -> X, List[X] -> X
    origin = get_origin(annotation)
    if origin is Union:
        args = [a for a in get_args(annotation) if a is not type(None)]
        return _unwrap(args[0]) if len(args) == 1 else annotation
    if origin is list:
        return _unwrap(get_args(annotation)[0])
    return annotation


def _is_text(annotation: Any) -> bool:
    if annotation is str or annotation is EmailStr:
        return True
    return get_origin(annotation) is Literal and all(isinstance(a, str) for a in get_args(annotation))


@lru_cache(maxsize=None)
def text_fields(model: Type[BaseModel], prefix: str = "") -> FrozenSet[str]:
    """Dotted paths of the string-typed fields of a schema, nested models included."""
    fields = set()
    for name, info in model.model_fields.items():
        annotation = _unwrap(info.annotation)
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            fields |= text_fields(annotation, f"{prefix}{name}.")
        elif _is_text(annotation):
            fields.add(prefix + name)
    return frozenset(fields)


def _ensure_public(field: str) -> None:
    if field.split(".")[0] in PRIVATE_FIELDS:
        raise ValidationFailure(f"Cannot query on field '{field}'")


def build_filter(params: Iterable[Tuple[str, str]], text: AbstractSet[str] = frozenset()) -> Dict[str, Any]:
    def cast(field: str, value: str) -> Any:
        return value if field in text else coerce(value)

    query: Dict[str, Any] = {}
    for key, value in params:
        if key in RESERVED:
            continue
        if key.startswith("$"):
            raise ValidationFailure(f"Invalid filter key '{key}'")
        match = _KEY_RE.match(key)
        if not match:
            _ensure_public(key)
            query[key] = cast(key, value)
            continue
        field, op = match.group("field"), match.group("op")
        if op not in OPERATORS:
            raise ValidationFailure(f"Unsupported filter operator '{op}' on {field}")
        _ensure_public(field)
        condition = query.setdefault(field, {})
        if not isinstance(condition, dict):
            # plain equality already given for this field
            condition = query[field] = {"$eq": condition}
        if op == "in":
            values = [cast(field, v.strip()) for v in value.split(",") if v.strip()]
            condition.setdefault("$in", []).extend(values)
        else:
            condition[f"${op}"] = cast(field, value)
    return query


def build_projection(select: Optional[str]) -> Optional[Dict[str, int]]:
    if not select:
        return None
    fields = [f.strip() for f in select.split(",") if f.strip()]
    return {f: 1 for f in fields} or None


def build_sort(sort: Optional[str]) -> List[Tuple[str, int]]:
    if not sort:
        return list(DEFAULT_SORT)
    order = []
    for field in (f.strip() for f in sort.split(",")):
        if not field:
            continue
        name, direction = (field[1:], DESCENDING) if field.startswith("-") else (field, ASCENDING)
        _ensure_public(name)
        order.append((name, direction))
    return order or list(DEFAULT_SORT)


def _positive_int(raw: Optional[str], name: str, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationFailure(f"Query parameter '{name}' must be an integer")
    if value < 1:
        raise ValidationFailure(f"Query parameter '{name}' must be at least 1")
    return value


def populate_documents(database, docs: List[Dict], populate: Sequence[Populate]) -> List[Dict]:
    """Replace reference ids with the referenced documents, projected."""
    for field, collection_name, fields in populate:
        ids = {d[field] for d in docs if d.get(field)}
        if not ids:
            continue
        projection = {f: 1 for f in fields} if fields else None
        found = database[collection_name].find({"_id": {"$in": [to_obj_id(i) for i in ids]}}, projection)
        by_id = {str(ref["_id"]): sanitize(ref) for ref in found}
        for d in docs:
            if d.get(field) in by_id:
                d[field] = by_id[d[field]]
    return docs


def advanced_results(
    collection: Collection,
    params: Iterable[Tuple[str, str]],
    populate: Optional[Sequence[Populate]] = None,
    schema: Optional[Type[BaseModel]] = None,
) -> Dict[str, Any]:
    params = list(params)
    single = {k: v for k, v in params if k in RESERVED}

    query = build_filter(params, text_fields(schema) if schema else frozenset())
    projection = build_projection(single.get("select"))
    order = build_sort(single.get("sort"))
    page = _positive_int(single.get("page"), "page", DEFAULT_PAGE)
    limit = _positive_int(single.get("limit"), "limit", DEFAULT_LIMIT)
    start_index = (page - 1) * limit
    end_index = page * limit

    total = collection.count_documents(query)
    cursor = collection.find(query, projection).sort(order).skip(start_index).limit(limit)
    data = [sanitize(d) for d in cursor]
    if populate:
        populate_documents(collection.database, data, populate)

    pagination: Dict[str, Any] = {"total": total}
    if end_index < total:
        pagination["next"] = {"page": page + 1, "limit": limit}
    if start_index > 0:
        pagination["prev"] = {"page": page - 1, "limit": limit}

    return {"success": True, "count": len(data), "pagination": pagination, "data": data}
