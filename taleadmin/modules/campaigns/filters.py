"""
Filter Trees
============

A filter tree narrows a campaign audience. A node is either a condition

    {"field": "emailStatus", "operator": "eq", "value": "ready"}

or a group

    {"logic": "and" | "or", "conditions": [node, ...]}

`matches(tree, record, fields)` evaluates a tree against one plain record.
It knows nothing about storage: callers map rows to records keyed by the
camelCase field names below.

Conditions that cannot apply (a field the pool does not have, an unknown
operator, a malformed value) are dropped rather than failing the record.
A group whose children are all dropped is dropped too, and an empty or
missing tree matches everything.
"""

USER_FIELDS = frozenset({
    'createdAt', 'lastLoginAt', 'preferredLocale', 'notificationPreference', 'gender', 'literaryAge',
})

LEAD_FIELDS = frozenset({'language', 'emailStatus', 'lastEmailSentAt'})

OPERATORS = ('eq', 'ne', 'gt', 'gte', 'lt', 'lte', 'between', 'in', 'not_in', 'is_null')


def is_group(node):
    return isinstance(node, dict) and 'logic' in node and 'conditions' in node


def _compare(left, right, op):
    try:
        if op == 'gt':
            return left > right
        if op == 'gte':
            return left >= right
        if op == 'lt':
            return left < right
        return left <= right
    except TypeError:
        # e.g. comparing a number column against a string value
        return False


def evaluate_condition(condition, record, fields):
    """True/False for an applicable condition, None when it must be dropped"""
    field = condition.get('field')
    operator = condition.get('operator')
    value = condition.get('value')

    if field not in fields or operator not in OPERATORS:
        return None

    actual = record.get(field)

    if operator == 'is_null':
        wants_null = value is True or value is None
        return (actual is None) == wants_null

    if operator in ('between', 'in', 'not_in'):
        if not isinstance(value, (list, tuple)):
            return None
        if operator == 'between' and len(value) != 2:
            return None

    # Same as SQL: any comparison against NULL is not true
    if actual is None:
        return False

    if operator == 'eq':
        return actual == value
    if operator == 'ne':
        return actual != value
    if operator == 'between':
        low, high = value
        return _compare(actual, low, 'gte') and _compare(actual, high, 'lte')
    if operator == 'in':
        return actual in value
    if operator == 'not_in':
        return actual not in value
    return _compare(actual, value, operator)


def evaluate(node, record, fields):
    """Evaluate any node; None means the node does not apply to this pool"""
    if not is_group(node):
        return evaluate_condition(node, record, fields)

    results = [evaluate(child, record, fields) for child in node.get('conditions') or []]
    results = [r for r in results if r is not None]
    if not results:
        return None
    if node.get('logic') == 'and':
        return all(results)
    return any(results)


def matches(filter_tree, record, fields):
    """True when the record satisfies the tree (or the tree constrains nothing)"""
    if not filter_tree:
        return True
    result = evaluate(filter_tree, record, fields)
    return True if result is None else result

