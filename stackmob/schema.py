import logging
import threading

from . import stackmobjson as json
from .constants import (API_LISTAPI_PATH, SCHEMA_PROPERTIES_KEY,
    SCHEMA_IDENTITY_KEY, SCHEMA_REF_KEY)
from .exceptions import SchemaException


log = logging.getLogger('stackmob.schema')


def is_identity(column):
    if not hasattr(column, 'get'):
        return False

    value = column.get(SCHEMA_IDENTITY_KEY)
    if isinstance(value, str):
        return value.lower() == 'true'
    return value is True

def find_identity_column(properties):
    """Return the first property, in declared order, flagged as the
    type's identity column."""
    for (key, column) in properties.items():
        if is_identity(column):
            return key
    return None


class SchemaCache(object):
    """Fetches the application's API description once and answers
    primary key questions from it.

    The first caller triggers the fetch; callers that arrive while it is
    in flight wait on that same fetch. A failed fetch is not cached.

    """

    def __init__(self, builder, executor):
        self.builder = builder
        self.executor = executor
        self._lock = threading.Lock()
        self._schema = None
        self._waiters = None

    @property
    def schema(self):
        return self._schema

    def get_schema(self, success, failure):
        with self._lock:
            schema = self._schema
            if schema is None:
                fetch = self._waiters is None
                if fetch:
                    self._waiters = []
                self._waiters.append((success, failure))

        if schema is not None:
            success(schema)
        elif fetch:
            self.fetch()

    def fetch(self):
        log.debug("Fetching schema")
        req = self.builder.build(API_LISTAPI_PATH, 'GET')
        self.executor.execute(req, self.handle_fetch_result,
            self.handle_fetch_error)

    def handle_fetch_result(self, stream):
        schema = json.load_from(stream)
        if not hasattr(schema, 'get'):
            raise SchemaException("Schema is not an object")

        with self._lock:
            self._schema = schema
            waiters, self._waiters = self._waiters, None

        for (success, failure) in waiters:
            try:
                success(schema)
            except Exception:
                log.exception("Schema waiter raised")

    def handle_fetch_error(self, error):
        log.debug("Schema fetch failed: %s", error)
        with self._lock:
            waiters, self._waiters = self._waiters or [], None

        for (success, failure) in waiters:
            try:
                failure(error)
            except Exception:
                log.exception("Schema waiter raised")

    @staticmethod
    def get_properties(schema, type_name):
        if not isinstance(type_name, str) or type_name not in schema:
            raise SchemaException("API not found for %s" % (type_name,))

        api = schema[type_name]
        if not hasattr(api, 'get'):
            raise SchemaException("API for %s is not an object" % (type_name))

        properties = api.get(SCHEMA_PROPERTIES_KEY) or {}
        if not hasattr(properties, 'items'):
            raise SchemaException("Properties of %s are not an object" %
                (type_name))
        return properties

    @classmethod
    def resolve_primary_key(cls, schema, type_name, related_field=None):
        properties = cls.get_properties(schema, type_name)

        if related_field is not None:
            column = properties.get(related_field)
            if not hasattr(column, 'get') or SCHEMA_REF_KEY not in column:
                msg = "%s.%s is not a relationship"
                raise SchemaException(msg % (type_name, related_field))

            type_name = column[SCHEMA_REF_KEY]
            properties = cls.get_properties(schema, type_name)

        primary_key = find_identity_column(properties)
        if primary_key is None:
            raise SchemaException("Primary key not found for %s" %
                (type_name))

        return primary_key

    def get_primary_key_field(self, type_name, success, failure,
        related_field=None):
        def handle_schema(schema):
            try:
                primary_key = self.resolve_primary_key(schema, type_name,
                    related_field)
            except Exception as e:
                failure(e)
            else:
                success(primary_key)

        self.get_schema(handle_schema, failure)
