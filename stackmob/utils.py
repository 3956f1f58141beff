import logging
from collections.abc import Mapping
from numbers import Number
from urllib.parse import quote

import requests

from . import stackmobjson as json
from .constants import PRIMITIVE_TYPES
from .exceptions import StackMobException


log = logging.getLogger('stackmob.utils')

# characters left alone in pre-built filter expressions
URI_RESERVED = ";/?:@&=+$,[]!*'()"


def check_name(value, name='type'):
    if value is None:
        raise ValueError("%s is required" % (name))

    if isinstance(value, Number) and not isinstance(value, bool):
        value = str(value)

    if not isinstance(value, str):
        raise TypeError("%s must be a string" % (name))

    if not value.strip():
        raise ValueError("Can not have an empty %s" % (name))

    return value

def check_type(value, name='type'):
    return check_name(value, name)

def check_id(value, name='id'):
    return check_name(value, name)

def check_field(value, name='field'):
    return check_name(value, name)

def check_callback(callback, name):
    if not callable(callback):
        raise TypeError("%s callback is required" % (name))
    return callback

def check_callbacks(success, failure):
    check_callback(success, 'success')
    check_callback(failure, 'failure')

def check_collection(values, name='values'):
    if values is None:
        raise ValueError("%s is required" % (name))

    if isinstance(values, (str, bytes, Mapping)):
        raise TypeError("%s must be a sequence" % (name))

    return list(values)

def check_primitives(values, name='values'):
    values = check_collection(values, name)
    for value in values:
        if value is not None and not isinstance(value, PRIMITIVE_TYPES):
            msg = "%s may only hold strings, numbers and booleans"
            raise TypeError(msg % (name))
    return values

def format_value(value):
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)

def join_ids(values):
    return ''.join(format_value(v) for v in values if v is not None)

def build_query(filters):
    """Build a query string from either ``(key, value)`` pairs (a mapping
    or a sequence of tuples) or pre-built filter expressions such as
    ``'age[gt]=20'``."""
    if not filters:
        return ''

    if isinstance(filters, Mapping):
        filters = list(filters.items())
    elif isinstance(filters, str):
        filters = [filters]
    else:
        filters = list(filters)

    if all(isinstance(f, str) for f in filters):
        return '&'.join(quote(f, safe=URI_RESERVED) for f in filters)

    parts = []
    for key, value in filters:
        parts.append('%s=%s' % (quote(format_value(key), safe=''),
            quote(format_value(value), safe='')))
    return '&'.join(parts)

def generate_exception(error):
    """Translate an error raised while executing a request into the
    error handed to failure callbacks.

    Server errors with a JSON object body are folded into a single
    `StackMobException` whose message lists the body's ``key: value``
    pairs. Anything that cannot be translated is returned unchanged.

    """
    # already translated, or nothing to fold in
    if isinstance(error, StackMobException) and (error.response is None or
        error.reason is not None):
        return error

    response = getattr(error, 'response', None)
    if response is None:
        return error

    try:
        detail = json.load(response.content)
        if not isinstance(detail, Mapping):
            return error

        lines = ['%s: %s' % (k, v) for (k, v) in detail.items()]
        e = StackMobException('\n'.join([str(error)] + lines),
            code=response.status_code, reason=detail, response=response)
    except (TypeError, ValueError, AttributeError) as parse_error:
        log.debug("Could not translate %r: %s", error, parse_error)
        return error

    e.__cause__ = error
    return e

def raise_for_status(response, expected_status=None):
    if expected_status is not None:
        if response.status_code != expected_status:
            msg = "Expected status %d but got %d for url: %s"
            raise StackMobException(msg % (expected_status,
                response.status_code, response.url),
                code=response.status_code, response=response)
    elif not 200 <= response.status_code < 300:
        msg = "%s %s for url: %s" % (response.status_code, response.reason,
            response.url)
        raise requests.HTTPError(msg, response=response)
