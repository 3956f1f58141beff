import logging
from collections.abc import Mapping

from . import stackmobjson as json
from .constants import (API_HOST, DEFAULT_USER_OBJECT_NAME, REQUEST_TIMEOUT,
    HEADER_CASCADE_DELETE, HEADER_SELECT, HEADER_ORDER_BY, HEADER_RANGE,
    RELATED_SUCCEEDED_KEY)
from .exceptions import StackMobException, SchemaException
from .executor import AsyncExecutor, Operation
from .request import Credentials, RequestBuilder
from .schema import SchemaCache
from .utils import (check_type, check_id, check_field, check_callbacks,
    check_collection, check_primitives, build_query, join_ids)


log = logging.getLogger('stackmob.client')

NO_BODY = object()


def build_order_by(order_by):
    orders = []
    for order in order_by:
        if isinstance(order, str):
            orders.append(order if ':' in order else '%s:asc' % (order))
        else:
            field, direction = order
            if direction is True:
                direction = 'asc'
            elif direction is False:
                direction = 'desc'
            orders.append('%s:%s' % (field, direction))
    return ','.join(orders)

def build_range(range):
    start, end = range
    if start < 0 or end < start:
        raise ValueError("Invalid range %r" % (range,))
    return 'objects=%d-%d' % (start, end)


class ResourceClient(object):
    """Asynchronous access to an application's schemas.

    Every operation validates its arguments before any I/O, raising
    `ValueError` or `TypeError` straight away, then runs in the
    background and reports back through exactly one of ``success`` or
    ``failure``. The returned `Operation` can be used to wait for it.

    """

    def __init__(self, api_key, api_secret, app_name=None, api_version=0,
        user_object_name=DEFAULT_USER_OBJECT_NAME, host=API_HOST,
        http=None, timeout=REQUEST_TIMEOUT):
        self.credentials = Credentials.create(api_key, api_secret,
            api_version)
        self.app_name = app_name
        self.user_object_name = check_type(user_object_name,
            'user_object_name')
        self.builder = RequestBuilder(self.credentials, host)
        self.executor = AsyncExecutor(http, timeout)
        self.schema = SchemaCache(self.builder, self.executor)

    def __repr__(self):
        return '<%s [%s]>' % (type(self).__name__, self.app_name)

    def execute(self, req, operation, handler=None, body=NO_BODY,
        expected_status=None, cookies=None, failure=None):
        send_body = None
        if body is not NO_BODY:
            send_body = lambda stream: json.dump_to(stream, body)

        def handle(stream):
            if handler is None:
                operation.succeed()
            else:
                handler(stream, operation)

        self.executor.execute(req, handle, failure or operation.fail,
            send_body=send_body, expected_status=expected_status,
            cookies=cookies)
        return operation

    @staticmethod
    def handle_object_result(stream, operation):
        operation.succeed(json.load_from(stream))

    @staticmethod
    def handle_list_result(stream, operation):
        result = json.load_from(stream)
        if result is None:
            result = []
        elif not isinstance(result, list):
            raise StackMobException("Expected a list but got %s" %
                (type(result).__name__))
        operation.succeed(result)

    def create(self, type_name, value, success, failure):
        check_type(type_name)
        if value is None:
            raise ValueError("value is required")
        check_callbacks(success, failure)

        req = self.builder.build(type_name, 'POST')
        return self.execute(req, Operation(success, failure),
            self.handle_object_result, body=value)

    def handle_create_related_result(self, stream, operation, parent_type,
        field):
        result = json.load_from(stream)

        if isinstance(result, Mapping) and RELATED_SUCCEEDED_KEY in result:
            operation.succeed(list(result[RELATED_SUCCEEDED_KEY]))
            return

        # older servers answer with the created objects themselves
        created = result if isinstance(result, list) else [result]

        def handle_primary_key(primary_key):
            try:
                ids = [obj[primary_key] for obj in created]
            except (KeyError, TypeError):
                msg = "Created %s has no %s" % (field, primary_key)
                operation.fail(SchemaException(msg))
            else:
                operation.succeed(ids)

        self.schema.get_primary_key_field(parent_type, handle_primary_key,
            operation.fail, related_field=field)

    def create_related(self, parent_type, parent_id, field, items, success,
        failure):
        check_type(parent_type, 'parent_type')
        parent_id = check_id(parent_id, 'parent_id')
        check_field(field)
        items = check_collection(items, 'items')
        check_callbacks(success, failure)

        def handler(stream, operation):
            self.handle_create_related_result(stream, operation,
                parent_type, field)

        req = self.builder.build(parent_type, 'POST',
            '/'.join([parent_id, field]))
        return self.execute(req, Operation(success, failure), handler,
            body=items)

    def update(self, type_name, id, value, success, failure):
        check_type(type_name)
        id = check_id(id)
        if value is None:
            raise ValueError("value is required")
        check_callbacks(success, failure)

        req = self.builder.build(type_name, 'PUT', id)
        return self.execute(req, Operation(success, failure),
            self.handle_object_result, body=value)

    def append(self, parent_type, parent_id, field, values, success,
        failure):
        """Append ``values`` (strings, numbers or booleans) to the array
        field ``field`` of ``parent_type/parent_id``."""
        check_type(parent_type, 'parent_type')
        parent_id = check_id(parent_id, 'parent_id')
        check_field(field)
        values = check_primitives(values)
        check_callbacks(success, failure)

        req = self.builder.build(parent_type, 'PUT',
            '/'.join([parent_id, field]))
        return self.execute(req, Operation(success, failure),
            self.handle_object_result, body=values)

    def increment(self, type_name, id, field, success, failure, amount=1):
        check_type(type_name)
        id = check_id(id)
        check_field(field)
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise TypeError("amount must be a number")
        check_callbacks(success, failure)

        req = self.builder.build(type_name, 'PUT', id)
        return self.execute(req, Operation(success, failure),
            self.handle_object_result, body={'%s[inc]' % (field): amount})

    def decrement(self, type_name, id, field, success, failure, amount=1):
        return self.increment(type_name, id, field, success, failure,
            amount=-amount)

    def get_all(self, type_name, success, failure):
        check_type(type_name)
        check_callbacks(success, failure)

        req = self.builder.build(type_name, 'GET')
        return self.execute(req, Operation(success, failure),
            self.handle_list_result)

    def get(self, type_name, id, success, failure):
        check_type(type_name)
        id = check_id(id)
        check_callbacks(success, failure)

        req = self.builder.build(type_name, 'GET', id)
        return self.execute(req, Operation(success, failure),
            self.handle_object_result)

    def build_find_headers(self, fields=None, order_by=None, range=None):
        headers = {}

        if fields:
            fields = [check_field(f) for f in check_collection(fields,
                'fields')]
            headers[HEADER_SELECT] = ','.join(fields)

        if order_by:
            headers[HEADER_ORDER_BY] = build_order_by(order_by)

        if range is not None:
            headers[HEADER_RANGE] = build_range(range)

        return headers

    def find(self, type_name, filters, success, failure, fields=None,
        order_by=None, range=None):
        """Query ``type_name``.

        ``filters`` is either ``(key, value)`` pairs, as a mapping or a
        sequence of tuples, or a sequence of pre-built expressions such
        as ``'age[gt]=20'``. ``fields`` limits the returned fields,
        ``order_by`` takes field names or ``(field, 'asc'|'desc')`` pairs
        and ``range`` is an inclusive ``(start, end)`` object range.

        """
        check_type(type_name)
        if filters is None:
            raise ValueError("filters is required")
        check_callbacks(success, failure)

        query = build_query(filters)
        headers = self.build_find_headers(fields, order_by, range)
        req = self.builder.build(type_name, 'GET', query=query,
            headers=headers)
        return self.execute(req, Operation(success, failure),
            self.handle_list_result)

    def delete(self, type_name, id, success, failure):
        check_type(type_name)
        id = check_id(id)
        check_callbacks(success, failure)

        req = self.builder.build(type_name, 'DELETE', id)
        return self.execute(req, Operation(success, failure))

    def delete_from(self, parent_type, parent_id, field, values, success,
        failure, cascade=False):
        """Remove ``values`` from the relationship or array field
        ``field``. With ``cascade`` the referenced objects are deleted as
        well."""
        check_type(parent_type, 'parent_type')
        parent_id = check_id(parent_id, 'parent_id')
        check_field(field)
        values = check_primitives(values)
        if all(v is None for v in values):
            raise ValueError("Can not have empty values")
        check_callbacks(success, failure)

        headers = {}
        if cascade:
            headers[HEADER_CASCADE_DELETE] = 'true'

        req = self.builder.build(parent_type, 'DELETE',
            '/'.join([parent_id, field, join_ids(values)]), headers=headers)
        return self.execute(req, Operation(success, failure),
            self.handle_object_result)
