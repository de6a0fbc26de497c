"""
Optional filters for list and report queries.

Endpoints declare their filters as ``FilterSpec`` tuples; ``apply_filters``
appends one predicate per filter that is present in the request. Values are
always passed to SQLAlchemy as bound parameters.
"""
from collections import namedtuple
from datetime import datetime, time, timedelta

from sqlalchemy import func

FilterSpec = namedtuple('FilterSpec', ['param', 'column', 'op'], defaults=['eq'])


def _escape_like(value):
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def _start_of_day(value):
    return datetime.combine(value, time.min)


OPERATORS = {
    'eq': lambda column, value: column == value,
    'iexact': lambda column, value: func.lower(column) == value.lower(),
    'contains': lambda column, value: column.ilike(f'%{_escape_like(value)}%', escape='\\'),
    'ge': lambda column, value: column >= value,
    'le': lambda column, value: column <= value,
    # Day bounds for DateTime columns, both inclusive
    'from_day': lambda column, value: column >= _start_of_day(value),
    'to_day': lambda column, value: column < _start_of_day(value + timedelta(days=1)),
}


def apply_filters(query, specs, values):
    """Append a WHERE predicate for every spec whose parameter has a value"""
    for spec in specs:
        value = values.get(spec.param)
        if value is None or value == '':
            continue
        query = query.filter(OPERATORS[spec.op](spec.column, value))
    return query
