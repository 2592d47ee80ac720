from flask import request

from rentflow.errors import ValidationError


def page_args(default_per_page=20, max_per_page=100):
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', type=int) or request.args.get('page_size', default_per_page, type=int)
    if page < 1 or per_page < 1:
        raise ValidationError('page and per_page must be positive')
    return page, min(per_page, max_per_page)


def apply_sort(query, columns, default):
    """Order ``query`` by the ``sort_by``/``sort_order`` request args"""
    sort_by = (request.args.get('sort_by') or default).lower()
    if sort_by not in columns:
        raise ValidationError(f"sort_by must be one of: {', '.join(sorted(columns))}", field='sort_by')
    sort_order = (request.args.get('sort_order') or 'desc').lower()
    if sort_order not in ('asc', 'desc'):
        raise ValidationError('sort_order must be asc or desc', field='sort_order')

    column = columns[sort_by]
    return query.order_by(column.asc() if sort_order == 'asc' else column.desc())


def paginated(query, key, serialize, default_per_page=20):
    page, per_page = page_args(default_per_page)
    results = query.paginate(page=page, per_page=per_page, error_out=False)
    return {
        key: [serialize(item) for item in results.items],
        'total': results.total,
        'page': results.page,
        'pages': results.pages,
        'per_page': per_page,
    }
