"""Query compilation: filters, ordering and pagination, shaping, aggregates."""

from .aggregates import AGGREGATE_KEYS, assemble, parse_aggregates
from .filters import build_unique_where, build_where, unique_key_in
from .group_by import run_group_by, validate_group_by
from .model_info import ModelInfo, RelationInfo, get_model_info
from .ordering import build_find_statement, fetch_rows, parse_order_by
from .shaping import shape_records, validate_shape

__all__ = [
    "AGGREGATE_KEYS",
    "ModelInfo",
    "RelationInfo",
    "assemble",
    "build_find_statement",
    "build_unique_where",
    "build_where",
    "fetch_rows",
    "get_model_info",
    "parse_aggregates",
    "parse_order_by",
    "run_group_by",
    "shape_records",
    "unique_key_in",
    "validate_group_by",
    "validate_shape",
]
