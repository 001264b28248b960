"""
Typed intermediate representation of the SQL subset the extractor consumes

The grammar adapter translates the parser's token tree into these nodes, so the
extractor never has to guess at the shape of third-party objects.
"""
from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class ColumnRef:
    column: str
    table: Optional[str] = None

    node_type: ClassVar[str] = 'column_ref'


@dataclass(frozen=True)
class Literal:
    kind: str  # string | number | bool | null
    value: Any = None

    node_type: ClassVar[str] = 'literal'


@dataclass(frozen=True)
class BinaryExpr:
    operator: str
    left: 'Expression'
    right: 'Expression'

    node_type: ClassVar[str] = 'binary_expr'


@dataclass(frozen=True)
class UnaryExpr:
    operator: str
    operand: 'Expression'

    node_type: ClassVar[str] = 'unary_expr'


@dataclass(frozen=True)
class AggregateCall:
    name: str
    args: Tuple['Expression', ...] = ()

    node_type: ClassVar[str] = 'aggr_func'


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: Tuple['Expression', ...] = ()

    node_type: ClassVar[str] = 'function'


@dataclass(frozen=True)
class ExpressionList:
    items: Tuple['Expression', ...] = ()

    node_type: ClassVar[str] = 'expr_list'


@dataclass(frozen=True)
class RawExpression:
    """Anything the adapter recognises syntactically but does not model."""
    text: str

    node_type: ClassVar[str] = 'raw'


Expression = Union[
    ColumnRef, Literal, BinaryExpr, UnaryExpr, AggregateCall,
    FunctionCall, ExpressionList, RawExpression,
]


@dataclass(frozen=True)
class FromItem:
    """One FROM-clause entry: a table (or subquery) with its join qualifier."""
    table: Optional[str] = None
    schema: Optional[str] = None
    alias: Optional[str] = None
    join: Optional[str] = None
    on: Optional[Expression] = None
    subquery: Optional[str] = None

    node_type: ClassVar[str] = 'from_item'


@dataclass(frozen=True)
class SelectColumn:
    expr: Expression
    alias: Optional[str] = None

    node_type: ClassVar[str] = 'select_column'


@dataclass(frozen=True)
class Statement:
    kind: str
    columns: Tuple[SelectColumn, ...] = ()
    from_items: Tuple[FromItem, ...] = ()
    where: Optional[Expression] = None

    node_type: ClassVar[str] = 'statement'


def node_to_dict(node: Any) -> Any:
    """Generic dump of an IR node (and its children) as plain JSON-ready data"""
    if isinstance(node, tuple):
        return [node_to_dict(item) for item in node]
    if not hasattr(node, 'node_type'):
        return node
    result: Dict[str, Any] = {'type': node.node_type}
    for field in fields(node):
        result[field.name] = node_to_dict(getattr(node, field.name))
    return result
