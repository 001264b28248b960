"""
Structural Extractor
Converts SELECT query text into tables, joins, filters and projections with layout positions
"""
import json
from typing import List, Optional

from sql_visualizer.ast_nodes import (
    AggregateCall,
    BinaryExpr,
    ColumnRef,
    Expression,
    Literal,
    Statement,
    node_to_dict,
)
from sql_visualizer.debug import DebugLogger
from sql_visualizer.exceptions import ParseError
from sql_visualizer.grammar import DEFAULT_JOIN, SqlGrammar
from sql_visualizer.models import (
    Filter,
    Join,
    ParsedQuery,
    Position,
    Projection,
    Table,
)

PARSE_ERROR_PREFIX = 'Failed to parse SQL: '
UNKNOWN_TABLE = 'unknown'

# Layout grid
TABLE_SPACING = 300
JOIN_OFFSET_X = 150
JOIN_ROW_Y = 200
FILTER_SPACING = 250
FILTER_ROW_Y = 400
PROJECTION_SPACING = 200
PROJECTION_ROW_Y = 50

LOGICAL_OPERATORS = ('AND', 'OR')


def normalize_join_type(join: str) -> str:
    """
    Classify a join qualifier such as 'LEFT JOIN' into a join type

    Returns:
        LEFT, RIGHT, FULL or CROSS when the qualifier mentions it, else INNER
    """
    upper = join.upper()
    for join_type in ('LEFT', 'RIGHT', 'FULL', 'CROSS'):
        if join_type in upper:
            return join_type
    return 'INNER'


def flatten_conditions(condition: Optional[Expression]) -> List[Expression]:
    """Leaves of an AND/OR tree, left to right"""
    if condition is None:
        return []
    if isinstance(condition, BinaryExpr) and condition.operator in LOGICAL_OPERATORS:
        return flatten_conditions(condition.left) + flatten_conditions(condition.right)
    return [condition]


def stringify_condition(node: Expression) -> str:
    if isinstance(node, BinaryExpr):
        return '{} {} {}'.format(
            stringify_condition(node.left), node.operator, stringify_condition(node.right)
        )
    if isinstance(node, ColumnRef):
        return '{}.{}'.format(node.table, node.column) if node.table else node.column
    if isinstance(node, Literal) and node.kind in ('string', 'number'):
        return str(node.value)
    return json.dumps(node_to_dict(node))


class QueryExtractor:
    """Stateless SELECT-to-graph extractor over an injected grammar"""

    def __init__(self, grammar: Optional[SqlGrammar] = None):
        self.grammar = grammar or SqlGrammar()

    def parse(self, query: str) -> ParsedQuery:
        """
        Extract the structural graph of the first statement in `query`

        Returns:
            ParsedQuery with tables, joins, filters and projections positioned on the layout grid

        Raises:
            ParseError: message always starts with 'Failed to parse SQL: '
        """
        try:
            statements = self.grammar.astify(query)
        except Exception as exc:
            raise ParseError(PARSE_ERROR_PREFIX + (str(exc) or 'Unknown error')) from exc

        statement = statements[0] if statements else None
        if not isinstance(statement, Statement):
            raise ParseError(PARSE_ERROR_PREFIX + 'Invalid query structure')
        if statement.kind.lower() != 'select':
            raise ParseError(PARSE_ERROR_PREFIX + 'Only SELECT statements are supported')

        parsed = ParsedQuery(
            tables=tuple(self._extract_tables(statement)),
            joins=tuple(self._extract_joins(statement)),
            filters=tuple(self._extract_filters(statement)),
            projections=tuple(self._extract_projections(statement)),
            raw_query=query,
        )
        DebugLogger.log(
            'Extracted {} tables, {} joins, {} filters, {} projections',
            len(parsed.tables), len(parsed.joins), len(parsed.filters), len(parsed.projections),
        )
        return parsed

    def _extract_tables(self, statement: Statement) -> List[Table]:
        tables = []
        for index, item in enumerate(statement.from_items):
            if not item.table:
                continue
            tables.append(Table(
                id='table-{}-{}'.format(item.table, index),
                name=item.table,
                alias=item.alias,
                columns=(),
                position=Position(x=index * TABLE_SPACING, y=0),
            ))
        return tables

    def _extract_joins(self, statement: Statement) -> List[Join]:
        joins = []
        for index, item in enumerate(statement.from_items):
            if not item.join or item.join == DEFAULT_JOIN:
                continue
            # both sides come from the joined item itself
            side = item.table or UNKNOWN_TABLE
            joins.append(Join(
                id='join-{}'.format(index),
                type=normalize_join_type(item.join),
                left_table=side,
                right_table=side,
                condition=stringify_condition(item.on) if item.on is not None else '',
                position=Position(x=index * TABLE_SPACING + JOIN_OFFSET_X, y=JOIN_ROW_Y),
            ))
        return joins

    def _extract_filters(self, statement: Statement) -> List[Filter]:
        return [
            Filter(
                id='filter-{}'.format(index),
                table=UNKNOWN_TABLE,
                condition=stringify_condition(leaf),
                position=Position(x=index * FILTER_SPACING, y=FILTER_ROW_Y),
            )
            for index, leaf in enumerate(flatten_conditions(statement.where))
        ]

    def _extract_projections(self, statement: Statement) -> List[Projection]:
        projections = []
        for index, column in enumerate(statement.columns):
            position = Position(x=index * PROJECTION_SPACING, y=PROJECTION_ROW_Y)
            expr = column.expr

            if isinstance(expr, ColumnRef):
                projections.append(Projection(
                    id='projection-{}'.format(index),
                    column=expr.column or '*',
                    table=expr.table,
                    alias=column.alias,
                    position=position,
                ))
            elif isinstance(expr, AggregateCall):
                argument = expr.args[0] if expr.args else None
                is_column = isinstance(argument, ColumnRef)
                projections.append(Projection(
                    id='projection-{}'.format(index),
                    column=argument.column if is_column else '*',
                    table=argument.table if is_column else None,
                    alias=column.alias,
                    aggregation=expr.name,
                    position=position,
                ))
        return projections
