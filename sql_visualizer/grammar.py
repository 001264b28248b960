"""
SQL Grammar Adapter
Turns sqlparse token trees into the typed IR consumed by the extractor
"""
import dataclasses
from typing import List, Optional, Sequence, Tuple

import sqlparse
from sqlparse import sql
from sqlparse import tokens as T
from sqlparse.exceptions import SQLParseError
from sqlparse.utils import remove_quotes

from sql_visualizer.ast_nodes import (
    AggregateCall,
    BinaryExpr,
    ColumnRef,
    Expression,
    ExpressionList,
    FromItem,
    FunctionCall,
    Literal,
    RawExpression,
    SelectColumn,
    Statement,
    UnaryExpr,
)
from sql_visualizer.debug import DebugLogger
from sql_visualizer.exceptions import SQLSyntaxError

DEFAULT_JOIN = 'INNER JOIN'

AGGREGATE_FUNCTIONS = {
    'COUNT', 'SUM', 'AVG', 'MIN', 'MAX',
    'GROUP_CONCAT', 'STRING_AGG', 'ARRAY_AGG',
}

CLAUSE_KEYWORDS = {
    'SELECT', 'FROM', 'ON', 'USING', 'WHERE', 'GROUP BY', 'HAVING',
    'ORDER BY', 'LIMIT', 'OFFSET', 'UNION', 'UNION ALL', 'INTERSECT',
    'EXCEPT', 'WINDOW', 'FETCH', 'FOR', 'INTO', 'QUALIFY',
}

SET_OPERATORS = {'UNION', 'UNION ALL', 'INTERSECT', 'EXCEPT'}

PREDICATE_KEYWORDS = {'IS', 'NOT', 'IN', 'BETWEEN', 'LIKE', 'ILIKE'}

# Clauses that must be followed by at least one token
REQUIRED_CLAUSES = {
    'select': 'Expected column list after SELECT',
    'from': 'Expected table after FROM',
    'join': 'Expected table after JOIN',
    'on': 'Expected condition after ON',
}


def _is_clause_keyword(token) -> bool:
    if not token.is_keyword:
        return False
    keyword = _normalize_keyword(token)
    return keyword in CLAUSE_KEYWORDS or keyword.endswith('JOIN')


def _normalize_keyword(token) -> str:
    return ' '.join(token.normalized.upper().split())


def _keyword_is(token, *values: str) -> bool:
    return token.is_keyword and _normalize_keyword(token) in values


def _is_noise(token) -> bool:
    return (
        token.is_whitespace
        or token.ttype in T.Comment
        or isinstance(token, sql.Comment)
        or token.match(T.Punctuation, ';')
    )


def _significant(tokens) -> List:
    return [token for token in tokens if not _is_noise(token)]


def _near(token) -> SQLSyntaxError:
    return SQLSyntaxError("Syntax error at or near '{}'".format(str(token).strip()))


def normalize_join_keyword(keyword: str) -> str:
    """
    Canonical spelling of a JOIN qualifier

    OUTER is dropped and a bare JOIN means INNER JOIN, so
    'left outer join' -> 'LEFT JOIN' and 'join' -> 'INNER JOIN'.
    """
    words = [word for word in keyword.upper().split() if word != 'OUTER']
    qualifier = ' '.join(words)
    return DEFAULT_JOIN if qualifier == 'JOIN' else qualifier


class SqlGrammar:
    """Narrow adapter over sqlparse for the SELECT subset the visualizer draws"""

    def astify(self, text: str) -> List[Statement]:
        """
        Parse query text into IR statements

        Returns:
            One Statement per non-empty statement in the text, in source order

        Raises:
            SQLSyntaxError: when the text holds no statement or cannot be read
        """
        try:
            parsed = sqlparse.parse(text or '')
        except SQLParseError as exc:
            raise SQLSyntaxError(str(exc)) from exc

        statements = []
        for statement in parsed:
            if not _significant(statement.tokens):
                continue
            statements.append(self._statement(statement))

        if not statements:
            raise SQLSyntaxError('Empty query')

        DebugLogger.log('Grammar produced {} statement(s)', len(statements))
        return statements

    def _statement(self, statement: sql.Statement) -> Statement:
        statement_type = statement.get_type()
        if statement_type == 'UNKNOWN':
            raise _near(statement.token_first(skip_cm=True))

        kind = statement_type.split()[0].lower()
        if kind != 'select':
            DebugLogger.log('Skipping body of {} statement', kind)
            return Statement(kind=kind)
        return self._select(statement)

    def _select(self, statement: sql.Statement) -> Statement:
        columns: List[SelectColumn] = []
        from_items: List[FromItem] = []
        where: Optional[Expression] = None

        clause: Optional[str] = None
        clause_size = 0
        # select and from lists alternate between items and commas
        expect_item = True
        join_keyword: Optional[str] = None
        on_tokens: List = []

        def close_clause():
            if clause in REQUIRED_CLAUSES and clause_size == 0:
                raise SQLSyntaxError(REQUIRED_CLAUSES[clause])
            if clause in ('select', 'from') and expect_item:
                raise SQLSyntaxError("Syntax error at or near ','")
            if clause == 'on':
                condition = self._condition(on_tokens)
                from_items[-1] = dataclasses.replace(from_items[-1], on=condition)
                on_tokens.clear()

        for token in _significant(statement.tokens):
            if isinstance(token, sql.Where):
                close_clause()
                where_tokens = _significant(token.tokens[1:])
                if not where_tokens:
                    raise SQLSyntaxError('Expected condition after WHERE')
                DebugLogger.log('WHERE clause with {} token(s)', len(where_tokens))
                where = self._condition(where_tokens)
                clause, clause_size = 'other', 0
                continue

            if _is_clause_keyword(token):
                keyword = _normalize_keyword(token)
                if keyword == 'ON' and clause != 'joined':
                    raise _near(token)
                close_clause()
                if keyword in SET_OPERATORS:
                    DebugLogger.log('Stopping at {}; only the first select is drawn', keyword)
                    clause = None
                    break

                if keyword == 'SELECT':
                    clause = 'select'
                elif keyword == 'FROM':
                    clause = 'from'
                elif keyword.endswith('JOIN'):
                    clause = 'join'
                    join_keyword = normalize_join_keyword(keyword)
                elif keyword == 'ON':
                    clause = 'on'
                elif keyword == 'USING':
                    clause = 'using'
                else:
                    clause = 'other'
                clause_size = 0
                expect_item = True
                DebugLogger.log('Entering {} clause', keyword)
                continue

            is_comma = token.match(T.Punctuation, ',')
            if clause == 'select':
                if clause_size == 0 and _keyword_is(token, 'DISTINCT', 'ALL'):
                    continue
                expect_item = self._list_position(token, expect_item)
                columns.extend(self._select_columns(token))
            elif clause == 'from':
                expect_item = self._list_position(token, expect_item)
                from_items.extend(self._from_items(token))
            elif clause == 'join':
                items = self._list_items(token)
                from_items.append(self._from_item(items[0], join=join_keyword))
                clause = 'joined'
                if len(items) > 1:
                    # `JOIN b, c`: the FROM list continues after the joined item
                    from_items.extend(self._from_item(item) for item in items[1:])
                    clause, expect_item = 'from', False
            elif clause == 'on':
                if is_comma:
                    close_clause()
                    clause, clause_size, expect_item = 'from', 1, True
                    continue
                items = self._list_items(token)
                on_tokens.append(items[0])
                if len(items) > 1:
                    # `ON a = b, c`: the condition ends at the first comma
                    clause_size += 1
                    close_clause()
                    from_items.extend(self._from_item(item) for item in items[1:])
                    clause, clause_size, expect_item = 'from', 1, False
                    continue
            elif clause in ('joined', 'using'):
                if is_comma:
                    clause, clause_size, expect_item = 'from', 1, True
                    continue
                # USING takes exactly one column list
                if clause == 'joined' or clause_size:
                    raise _near(token)
            clause_size += 1

        close_clause()
        DebugLogger.log(
            'SELECT with {} column(s), {} FROM item(s), where={}',
            len(columns), len(from_items), where is not None,
        )
        return Statement(
            kind='select',
            columns=tuple(columns),
            from_items=tuple(from_items),
            where=where,
        )

    @staticmethod
    def _list_position(token, expect_item: bool) -> bool:
        """
        Check a token of a comma separated list against its position

        Returns:
            Whether the next token must be a list item
        """
        is_comma = bool(token.match(T.Punctuation, ','))
        if is_comma == expect_item:
            raise _near(token)
        return is_comma

    @staticmethod
    def _list_items(token) -> List:
        if isinstance(token, sql.IdentifierList):
            return list(token.get_identifiers())
        return [token]

    # FROM clause

    def _from_items(self, token) -> List[FromItem]:
        if isinstance(token, sql.IdentifierList):
            return [self._from_item(item) for item in token.get_identifiers()]
        if token.match(T.Punctuation, ','):
            return []
        return [self._from_item(token)]

    def _from_item(self, token, join: Optional[str] = None) -> FromItem:
        if isinstance(token, sql.Parenthesis):
            return FromItem(join=join, subquery=str(token))

        if isinstance(token, sql.Identifier):
            first = token.token_first(skip_cm=True)
            if isinstance(first, (sql.Parenthesis, sql.Function)):
                return FromItem(alias=token.get_alias(), join=join, subquery=str(first))
            return FromItem(
                table=token.get_real_name(),
                schema=token.get_parent_name(),
                alias=token.get_alias(),
                join=join,
            )

        if token.ttype in T.Name or token.ttype in T.String.Symbol or token.ttype is T.Keyword:
            return FromItem(table=remove_quotes(token.value), join=join)

        raise _near(token)

    # SELECT list

    def _select_columns(self, token) -> List[SelectColumn]:
        if isinstance(token, sql.IdentifierList):
            return [self._select_column(item) for item in token.get_identifiers()]
        if token.match(T.Punctuation, ','):
            return []
        return [self._select_column(token)]

    def _select_column(self, token) -> SelectColumn:
        if isinstance(token, sql.Identifier):
            return SelectColumn(expr=self._expression(token), alias=token.get_alias())
        return SelectColumn(expr=self._expression(token))

    # Conditions

    def _condition(self, tokens: Sequence) -> Expression:
        """OR binds looser than AND; both fold left."""
        disjuncts = [self._conjunction(part) for part in self._split(tokens, 'OR')]
        return self._fold('OR', disjuncts)

    def _conjunction(self, tokens: Sequence) -> Expression:
        conjuncts = [self._predicate(part) for part in self._split(tokens, 'AND')]
        return self._fold('AND', conjuncts)

    @staticmethod
    def _fold(operator: str, operands: List[Expression]) -> Expression:
        result = operands[0]
        for operand in operands[1:]:
            result = BinaryExpr(operator, result, operand)
        return result

    @staticmethod
    def _split(tokens: Sequence, keyword: str) -> List[List]:
        parts: List[List] = [[]]
        in_between = False
        for token in tokens:
            if _keyword_is(token, 'BETWEEN', 'NOT BETWEEN'):
                in_between = True
            elif _keyword_is(token, keyword):
                # the AND of BETWEEN x AND y belongs to the predicate
                if keyword == 'AND' and in_between:
                    in_between = False
                else:
                    parts.append([])
                    continue
            parts[-1].append(token)
        return parts

    def _predicate(self, tokens: Sequence) -> Expression:
        if not tokens:
            raise SQLSyntaxError('Incomplete condition')

        first = tokens[0]
        if _keyword_is(first, 'NOT', 'EXISTS'):
            return UnaryExpr(_normalize_keyword(first), self._predicate(tokens[1:]))
        if len(tokens) == 1:
            return self._expression(first)

        for index, token in enumerate(tokens):
            if token.ttype is T.Operator.Comparison:
                return self._binary(tokens[:index], token, tokens[index + 1:])

        for index, token in enumerate(tokens[1:], start=1):
            if _keyword_is(token, *PREDICATE_KEYWORDS):
                return self._keyword_predicate(tokens[:index], tokens[index:])
            if _keyword_is(token, 'NOT NULL'):
                raise _near(token)

        return self._operation(tokens)

    def _keyword_predicate(self, left_tokens: Sequence, rest: Sequence) -> Expression:
        left = self._operand(left_tokens)
        keyword = _normalize_keyword(rest[0])
        negated = keyword == 'NOT'
        if negated:
            rest = rest[1:]
            if not rest:
                raise SQLSyntaxError('Incomplete condition')
            keyword = _normalize_keyword(rest[0]) if rest[0].is_keyword else ''

        operand_tokens = rest[1:]
        if keyword == 'IS':
            if operand_tokens and _keyword_is(operand_tokens[0], 'NOT NULL'):
                return BinaryExpr('IS NOT', left, Literal('null'))
            if operand_tokens and _keyword_is(operand_tokens[0], 'NOT'):
                return BinaryExpr('IS NOT', left, self._operand(operand_tokens[1:]))
            return BinaryExpr('IS', left, self._operand(operand_tokens))

        prefix = 'NOT ' if negated else ''
        if keyword == 'IN':
            values = self._operand(operand_tokens)
            if not isinstance(values, (ExpressionList, RawExpression)):
                values = ExpressionList((values,))
            return BinaryExpr(prefix + 'IN', left, values)

        if keyword == 'BETWEEN':
            bounds = self._split(operand_tokens, 'AND')
            if len(bounds) != 2:
                raise _near(rest[0])
            low, high = (self._operand(bound) for bound in bounds)
            return BinaryExpr(prefix + 'BETWEEN', left, ExpressionList((low, high)))

        if keyword in ('LIKE', 'ILIKE'):
            return BinaryExpr(prefix + keyword, left, self._operand(operand_tokens))

        raise _near(rest[0])

    def _binary(self, left_tokens: Sequence, operator, right_tokens: Sequence) -> BinaryExpr:
        op = ' '.join(operator.value.upper().split())
        return BinaryExpr(op, self._operand(left_tokens), self._operand(right_tokens))

    def _comparison(self, token: sql.Comparison) -> Expression:
        parts = _significant(token.tokens)
        for index, part in enumerate(parts):
            if part.ttype is T.Operator.Comparison:
                return self._binary(parts[:index], part, parts[index + 1:])
        return RawExpression(str(token))

    # Expressions

    def _operand(self, tokens: Sequence) -> Expression:
        if not tokens:
            raise SQLSyntaxError('Missing operand')
        if len(tokens) == 1:
            return self._expression(tokens[0])
        return self._operation(tokens)

    def _operation(self, tokens: Sequence) -> Expression:
        """Fold `a + b - c` style sequences; anything else stays raw."""
        if tokens[-1].ttype in T.Operator:
            raise _near(tokens[-1])
        operands = tokens[0::2]
        operators = tokens[1::2]
        well_formed = (
            len(tokens) % 2 == 1
            and all(op.ttype in T.Operator or op.ttype is T.Wildcard for op in operators)
        )
        if not well_formed:
            return RawExpression(' '.join(str(token).strip() for token in tokens))

        result = self._expression(operands[0])
        for operator, operand in zip(operators, operands[1:]):
            result = BinaryExpr(operator.value.strip(), result, self._expression(operand))
        return result

    def _expression(self, token) -> Expression:
        if isinstance(token, sql.Identifier):
            return self._identifier(token)
        if isinstance(token, sql.Function):
            return self._function(token)
        if isinstance(token, sql.Comparison):
            return self._comparison(token)
        if isinstance(token, sql.Parenthesis):
            return self._parenthesis(token)
        if isinstance(token, sql.Operation):
            return self._operation(_significant(token.tokens))
        if isinstance(token, sql.IdentifierList):
            return ExpressionList(tuple(self._expression(item) for item in token.get_identifiers()))
        if token.is_group:
            return RawExpression(str(token))

        ttype = token.ttype
        if ttype in T.Operator:
            raise _near(token)
        if ttype in T.Number:
            return Literal('number', self._number(token))
        if ttype in T.String.Single:
            return Literal('string', remove_quotes(token.value))
        if ttype in T.Name.Placeholder:
            return RawExpression(token.value)
        if ttype in T.Name or ttype in T.String.Symbol:
            return ColumnRef(remove_quotes(token.value))
        if ttype is T.Wildcard:
            return ColumnRef('*')
        if _keyword_is(token, 'NULL'):
            return Literal('null')
        if _keyword_is(token, 'TRUE', 'FALSE'):
            return Literal('bool', _normalize_keyword(token) == 'TRUE')
        return RawExpression(token.value)

    def _identifier(self, token: sql.Identifier) -> Expression:
        first = token.token_first(skip_cm=True)
        if first.is_group or first.ttype in T.Number or first.ttype in T.String.Single:
            # aliased expression: `COUNT(x) AS n`, `(a + b) total`, `1 AS one`
            return self._expression(first)
        return ColumnRef(column=token.get_real_name() or '*', table=token.get_parent_name())

    def _function(self, token: sql.Function) -> Expression:
        name = token.get_real_name() or str(token.tokens[0])
        parenthesis = token.token_next_by(i=sql.Parenthesis)[1]
        args = self._arguments(parenthesis) if parenthesis is not None else ()
        if name.upper() in AGGREGATE_FUNCTIONS:
            return AggregateCall(name=name.upper(), args=args)
        return FunctionCall(name=name, args=args)

    def _arguments(self, parenthesis: sql.Parenthesis) -> Tuple[Expression, ...]:
        inner = self._inner(parenthesis)
        if inner and _keyword_is(inner[0], 'DISTINCT', 'ALL'):
            inner = inner[1:]
        if not inner:
            return ()
        if len(inner) == 1 and isinstance(inner[0], sql.IdentifierList):
            return tuple(self._expression(item) for item in inner[0].get_identifiers())
        return (self._condition(inner),)

    def _parenthesis(self, token: sql.Parenthesis) -> Expression:
        inner = self._inner(token)
        if not inner:
            return ExpressionList(())
        if inner[0].match(T.Keyword.DML, 'SELECT'):
            return RawExpression(str(token))
        if len(inner) == 1 and isinstance(inner[0], sql.IdentifierList):
            return ExpressionList(tuple(self._expression(item) for item in inner[0].get_identifiers()))
        return self._condition(inner)

    @staticmethod
    def _inner(parenthesis: sql.Parenthesis) -> List:
        tokens = list(parenthesis.tokens)
        if tokens and tokens[0].match(T.Punctuation, '('):
            tokens = tokens[1:]
        if tokens and tokens[-1].match(T.Punctuation, ')'):
            tokens = tokens[:-1]
        return _significant(tokens)

    @staticmethod
    def _number(token):
        value = token.value
        if token.ttype is T.Number.Hexadecimal:
            return int(value, 16)
        if token.ttype is T.Number.Float:
            return float(value)
        return int(value)
