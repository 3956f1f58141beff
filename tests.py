import datetime
from http.client import responses
import json
import threading
import unittest
from unittest import mock

import requests

import stackmob
from stackmob import constants
from stackmob import stackmobjson
from stackmob.exceptions import StackMobException, SchemaException
from stackmob.executor import AsyncExecutor, Operation
from stackmob.request import (Credentials, RequestBuilder, AUTH_OAUTH,
    AUTH_SESSION)
from stackmob.schema import SchemaCache
from stackmob.session import (STATE_LOGGED_IN, STATE_LOGGED_OUT,
    STATE_LOGGING_IN)
from stackmob.utils import build_query, generate_exception


API_URL = 'https://api.mob1.stackmob.com'
PUSH_URL = 'https://push.mob1.stackmob.com'
TIMEOUT = 5

SCHEMA = {
    'user': {
        'properties': {
            'email': {'type': 'string'},
            'username': {'type': 'string', 'identity': True},
            'password': {'type': 'string'},
        }
    },
    'messages': {
        'properties': {
            'message': {'type': 'string'},
            'messages_id': {'type': 'string', 'identity': 'true'},
            'comments': {'type': 'array', '$ref': 'comment'},
            'tags': {'type': 'array'},
        }
    },
    'comment': {
        'properties': {
            'text': {'type': 'string'},
            'comment_id': {'type': 'string', 'identity': 'True'},
        }
    },
    'orphan': {
        'properties': {
            'text': {'type': 'string'},
        }
    },
}


def make_response(status=200, content=None, url=API_URL, cookies=None):
    response = requests.Response()
    response.status_code = status
    response.reason = responses.get(status, '')
    response.url = url

    if content is not None and not isinstance(content, (bytes, str)):
        content = json.dumps(content)
    if isinstance(content, str):
        content = content.encode('utf-8')

    response._content = content or b''
    response._content_consumed = True

    for (name, value) in (cookies or {}).items():
        response.cookies.set(name, value, domain='api.mob1.stackmob.com')

    return response

def mock_http(*responses):
    """A stand-in for `requests.Session` answering with ``responses`` in
    order. Exceptions in ``responses`` are raised instead."""
    http = mock.Mock(spec=requests.Session)
    http.request.side_effect = list(responses)
    return http

def request_args(http, index=0):
    args, kwargs = http.request.call_args_list[index]
    return args[0], args[1], kwargs

def request_body(http, index=0):
    return json.loads(request_args(http, index)[2]['data'].decode('utf-8'))

def create_client(*responses, **kwargs):
    cls = kwargs.pop('cls', stackmob.SessionClient)
    http = mock_http(*responses)
    client = cls('key', 'secret', 'test-app', 0, http=http, **kwargs)
    return client, http


class Recorder(object):
    """Records callback invocations"""

    def __init__(self):
        self.results = []
        self.errors = []

    def success(self, *result):
        self.results.append(result)

    def failure(self, error):
        self.errors.append(error)


class FakeClock(object):
    def __init__(self, now=1000000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RequestBuilderTestCase(unittest.TestCase):
    def setUp(self):
        self.builder = RequestBuilder(Credentials.create('key', 'secret', 2))

    def test_url(self):
        req = self.builder.build('messages', 'get')
        self.assertEqual(req.url, API_URL + '/messages')
        self.assertEqual(req.method, 'GET')

    def test_url_with_id_and_sub_path(self):
        req = self.builder.build('messages', 'GET', '42')
        self.assertEqual(req.url, API_URL + '/messages/42')

        req = self.builder.build('messages', 'GET', '42/comments')
        self.assertEqual(req.url, API_URL + '/messages/42/comments')

    def test_url_with_query(self):
        req = self.builder.build('messages', 'GET', query='a=1&b=2')
        self.assertEqual(req.url, API_URL + '/messages?a=1&b=2')

    def test_blank_id_and_query_are_omitted(self):
        req = self.builder.build('messages', 'GET', '  ', '')
        self.assertEqual(req.url, API_URL + '/messages')

    def test_push_subdomain(self):
        req = self.builder.build('push_users_universal', 'POST',
            subdomain='push')
        self.assertEqual(req.url, PUSH_URL + '/push_users_universal')

    def test_accept_header(self):
        req = self.builder.build('messages', 'GET')
        self.assertEqual(req.headers['Accept'],
            'application/vnd.stackmob+json; version=2')

    def test_oauth_signature(self):
        req = self.builder.build('messages', 'GET')
        self.assertEqual(req.auth, AUTH_OAUTH)
        self.assertTrue(req.is_signed)
        self.assertIsNone(req.cookies)

        auth = req.headers['Authorization']
        self.assertTrue(auth.startswith('OAuth '))
        self.assertIn('oauth_consumer_key="key"', auth)
        self.assertIn('oauth_signature_method="HMAC-SHA1"', auth)
        self.assertIn('oauth_signature=', auth)

    def test_session_requests_are_not_signed(self):
        jar = requests.cookies.RequestsCookieJar()
        req = self.builder.build('user', 'GET', 'logout', cookies=jar)
        self.assertEqual(req.auth, AUTH_SESSION)
        self.assertFalse(req.is_signed)
        self.assertIs(req.cookies, jar)
        self.assertNotIn('Authorization', req.headers)

    def test_extra_headers(self):
        req = self.builder.build('messages', 'GET',
            headers={'X-StackMob-Select': 'a,b'})
        self.assertEqual(req.headers['X-StackMob-Select'], 'a,b')
        self.assertIn('Accept', req.headers)

    def test_invalid_credentials(self):
        with self.assertRaises(ValueError):
            Credentials.create(None, 'secret')
        with self.assertRaises(ValueError):
            Credentials.create('key', None)
        with self.assertRaises(ValueError):
            Credentials.create('key', 'secret', -1)


class QueryTestCase(unittest.TestCase):
    def test_pairs(self):
        query = build_query([('name', 'John Smith'), ('age[gt]', 20)])
        self.assertEqual(query, 'name=John%20Smith&age%5Bgt%5D=20')

    def test_mapping(self):
        query = build_query({'username': 'a&b', 'active': True})
        self.assertEqual(query, 'username=a%26b&active=true')

    def test_expressions(self):
        query = build_query(['age[gt]=20', 'name=John Smith'])
        self.assertEqual(query, 'age[gt]=20&name=John%20Smith')

    def test_empty(self):
        self.assertEqual(build_query([]), '')
        self.assertEqual(build_query({}), '')


class JSONTestCase(unittest.TestCase):
    def test_datetime(self):
        dt = datetime.datetime(2012, 1, 1, 0, 0, 1, 500000)
        self.assertEqual(stackmobjson.dump({'at': dt}),
            '{"at": 1325376001500}')

    def test_to_json(self):
        class Point(object):
            def to_json(self):
                return {'x': 1}

        self.assertEqual(json.loads(stackmobjson.dump({'p': Point(),
            's': frozenset(['a'])})), {'p': {'x': 1}, 's': ['a']})

    def test_empty_body(self):
        self.assertIsNone(stackmobjson.load(b''))
        self.assertIsNone(stackmobjson.load('  '))

    def test_bytes(self):
        self.assertEqual(stackmobjson.load(b'{"a": 1}'), {'a': 1})


class ErrorTranslationTestCase(unittest.TestCase):
    def test_json_error_body(self):
        response = make_response(400, {'error': 'bad field', 'field': 'x'})
        error = requests.HTTPError('400 Bad Request', response=response)
        e = generate_exception(error)

        self.assertIsInstance(e, StackMobException)
        self.assertEqual(e.code, 400)
        self.assertEqual(e.reason, {'error': 'bad field', 'field': 'x'})
        self.assertIs(e.response, response)
        self.assertIn('400 Bad Request', str(e))
        self.assertIn('error: bad field', str(e))
        self.assertIn('field: x', str(e))

    def test_non_json_body_keeps_http_error(self):
        response = make_response(500, 'Internal error')
        error = requests.HTTPError('500', response=response)
        self.assertIs(generate_exception(error), error)

    def test_no_response_keeps_error(self):
        error = requests.ConnectionError('refused')
        self.assertIs(generate_exception(error), error)


class OperationTestCase(unittest.TestCase):
    def test_success_once(self):
        r = Recorder()
        op = Operation(r.success, r.failure)
        op.succeed('a')
        op.succeed('b')
        op.fail(ValueError())

        self.assertEqual(r.results, [('a',)])
        self.assertEqual(r.errors, [])
        self.assertEqual(op.wait(TIMEOUT), 'a')
        self.assertTrue(op.done())

    def test_failure_once(self):
        r = Recorder()
        op = Operation(r.success, r.failure)
        error = StackMobException('boom')
        op.fail(error)
        op.succeed('a')

        self.assertEqual(r.errors, [error])
        self.assertEqual(r.results, [])
        self.assertIs(op.error, error)
        with self.assertRaises(StackMobException):
            op.wait(TIMEOUT)

    def test_callback_error_is_not_rerouted(self):
        r = Recorder()

        def success(result):
            raise KeyError(result)

        op = Operation(success, r.failure)
        with self.assertLogs('stackmob.executor', 'ERROR'):
            op.succeed('a')
        op.fail(ValueError())

        self.assertEqual(r.errors, [])
        with self.assertRaises(KeyError):
            op.wait(TIMEOUT)


class AsyncExecutorTestCase(unittest.TestCase):
    def setUp(self):
        self.builder = RequestBuilder(Credentials.create('key', 'secret'))
        self.req = self.builder.build('messages', 'GET')

    def execute(self, http, **kwargs):
        executor = AsyncExecutor(http)
        r = Recorder()
        done = threading.Event()

        def success(stream):
            r.success(stream.read(), stream)
            done.set()

        def failure(error):
            r.failure(error)
            done.set()

        thread = executor.execute(self.req, success, failure, **kwargs)
        thread.join(TIMEOUT)
        self.assertTrue(done.is_set())
        return r

    def test_success(self):
        http = mock_http(make_response(200, {'a': 1}))
        r = self.execute(http)
        self.assertEqual(r.results[0][0], b'{"a": 1}')
        self.assertTrue(r.results[0][1].closed)
        self.assertEqual(r.errors, [])

    def test_request_arguments(self):
        http = mock_http(make_response(200))
        self.execute(http)

        method, url, kwargs = request_args(http)
        self.assertEqual(method, 'GET')
        self.assertEqual(url, API_URL + '/messages')
        self.assertIsNone(kwargs['data'])
        self.assertNotIn('Content-Type', kwargs['headers'])
        self.assertIn('Authorization', kwargs['headers'])

    def test_send_body(self):
        http = mock_http(make_response(200))
        self.execute(http, send_body=lambda s: s.write(b'[1, 2]'))

        method, url, kwargs = request_args(http)
        self.assertEqual(kwargs['data'], b'[1, 2]')
        self.assertEqual(kwargs['headers']['Content-Type'],
            'application/json')

    def test_send_body_error(self):
        def send_body(stream):
            raise TypeError("not serializable")

        http = mock_http(make_response(200))
        r = self.execute(http, send_body=send_body)
        self.assertIsInstance(r.errors[0], TypeError)
        self.assertFalse(http.request.called)

    def test_error_status(self):
        http = mock_http(make_response(404))
        r = self.execute(http)
        self.assertEqual(r.results, [])
        self.assertIsInstance(r.errors[0], requests.HTTPError)
        self.assertEqual(r.errors[0].response.status_code, 404)

    def test_expected_status(self):
        http = mock_http(make_response(200))
        r = self.execute(http, expected_status=201)
        self.assertIsInstance(r.errors[0], StackMobException)
        self.assertEqual(r.errors[0].code, 200)

        http = mock_http(make_response(201, {}))
        r = self.execute(http, expected_status=201)
        self.assertEqual(r.errors, [])

    def test_expected_status_error_detail(self):
        http = mock_http(make_response(200, {'error': 'not created'}))
        r = self.execute(http, expected_status=201)

        e = r.errors[0]
        self.assertIsInstance(e, StackMobException)
        self.assertEqual(e.code, 200)
        self.assertEqual(e.reason, {'error': 'not created'})
        self.assertIn('Expected status 201', str(e))
        self.assertIn('error: not created', str(e))

    def test_connection_error(self):
        http = mock_http(requests.ConnectionError('refused'))
        r = self.execute(http)
        self.assertIsInstance(r.errors[0], requests.ConnectionError)

    def test_success_handler_error(self):
        executor = AsyncExecutor(mock_http(make_response(200)))
        r = Recorder()

        def success(stream):
            raise ValueError("bad body")

        executor.execute(self.req, success, r.failure).join(TIMEOUT)
        self.assertIsInstance(r.errors[0], ValueError)

    def test_cookies_are_captured(self):
        jar = requests.cookies.RequestsCookieJar()
        http = mock_http(make_response(200, cookies={'session': 'abc'}))
        executor = AsyncExecutor(http)
        executor.execute(self.req, lambda s: None, lambda e: None,
            cookies=jar).join(TIMEOUT)
        self.assertEqual(jar.get('session'), 'abc')

    def test_default_session_does_not_keep_cookies(self):
        executor = AsyncExecutor()
        self.assertIsInstance(executor.session.cookies._policy,
            stackmob.executor.BlockAll)


class SchemaCacheTestCase(unittest.TestCase):
    def create_cache(self, *responses):
        http = mock_http(*responses)
        builder = RequestBuilder(Credentials.create('key', 'secret'))
        return SchemaCache(builder, AsyncExecutor(http)), http

    def get_primary_key(self, cache, type_name, related_field=None):
        op = Operation()
        cache.get_primary_key_field(type_name, op.succeed, op.fail,
            related_field=related_field)
        return op.wait(TIMEOUT)

    def test_primary_key(self):
        cache, http = self.create_cache(make_response(200, SCHEMA))
        self.assertEqual(self.get_primary_key(cache, 'user'), 'username')
        self.assertEqual(request_args(http)[1], API_URL + '/listapi')

    def test_identity_string(self):
        cache, http = self.create_cache(make_response(200, SCHEMA))
        self.assertEqual(self.get_primary_key(cache, 'messages'),
            'messages_id')

    def test_related_primary_key(self):
        cache, http = self.create_cache(make_response(200, SCHEMA))
        self.assertEqual(self.get_primary_key(cache, 'messages', 'comments'),
            'comment_id')

    def test_schema_is_cached(self):
        cache, http = self.create_cache(make_response(200, SCHEMA))
        self.get_primary_key(cache, 'user')
        self.get_primary_key(cache, 'messages')
        self.assertEqual(http.request.call_count, 1)

    def test_missing_type(self):
        cache, http = self.create_cache(make_response(200, SCHEMA))
        with self.assertRaises(SchemaException):
            self.get_primary_key(cache, 'nothing')

    def test_missing_identity(self):
        cache, http = self.create_cache(make_response(200, SCHEMA))
        with self.assertRaises(SchemaException):
            self.get_primary_key(cache, 'orphan')

    def test_field_without_ref(self):
        cache, http = self.create_cache(make_response(200, SCHEMA))
        with self.assertRaises(SchemaException):
            self.get_primary_key(cache, 'messages', 'tags')

    def test_malformed_schema(self):
        schema = {
            'messages': 'not-an-object',
            'comment': {'properties': ['text']},
            'post': {'properties': {'refs': {'$ref': ['comment']}}},
        }
        cache, http = self.create_cache(make_response(200, schema))

        with self.assertRaises(SchemaException):
            self.get_primary_key(cache, 'messages')
        with self.assertRaises(SchemaException):
            self.get_primary_key(cache, 'comment')
        with self.assertRaises(SchemaException):
            self.get_primary_key(cache, 'post', 'refs')

    def test_every_waiter_is_notified(self):
        release = threading.Event()

        def respond(*args, **kwargs):
            release.wait(TIMEOUT)
            return make_response(200, {'messages': 'not-an-object'})

        def broken(schema):
            raise RuntimeError("waiter failed")

        cache, http = self.create_cache()
        http.request.side_effect = respond

        first, second = Operation(), Operation()
        cache.get_primary_key_field('messages', first.succeed, first.fail)
        cache.get_schema(broken, lambda e: None)
        cache.get_primary_key_field('messages', second.succeed, second.fail)

        with self.assertLogs('stackmob.schema', 'ERROR'):
            release.set()
            for op in (first, second):
                with self.assertRaises(SchemaException):
                    op.wait(TIMEOUT)

    def test_failed_fetch_is_not_cached(self):
        cache, http = self.create_cache(make_response(500),
            make_response(200, SCHEMA))

        with self.assertRaises(requests.HTTPError):
            self.get_primary_key(cache, 'user')
        self.assertEqual(self.get_primary_key(cache, 'user'), 'username')
        self.assertEqual(http.request.call_count, 2)

    def test_single_flight(self):
        release = threading.Event()

        def respond(*args, **kwargs):
            release.wait(TIMEOUT)
            return make_response(200, SCHEMA)

        cache, http = self.create_cache()
        http.request.side_effect = respond

        ops = [Operation() for i in range(3)]
        for op in ops:
            cache.get_schema(op.succeed, op.fail)

        self.assertFalse(any(op.done() for op in ops))
        release.set()

        for op in ops:
            self.assertEqual(op.wait(TIMEOUT), SCHEMA)
        self.assertEqual(http.request.call_count, 1)


class ValidationTestCase(unittest.TestCase):
    def setUp(self):
        self.client, self.http = create_client()
        self.r = Recorder()

    def assertRejected(self, exc, fn, *args, **kwargs):
        with self.assertRaises(exc):
            fn(*args, **kwargs)
        self.assertFalse(self.http.request.called)

    def test_blank_names(self):
        ok, fail = self.r.success, self.r.failure
        for value in (None, '', '   '):
            self.assertRejected(ValueError, self.client.get, value, '42',
                ok, fail)
            self.assertRejected(ValueError, self.client.get, 'messages',
                value, ok, fail)
            self.assertRejected(ValueError, self.client.append, 'messages',
                '42', value, ['x'], ok, fail)
            self.assertRejected(ValueError, self.client.create, value,
                {}, ok, fail)
            self.assertRejected(ValueError, self.client.delete_from,
                'messages', value, 'tags', ['x'], ok, fail)

    def test_missing_callbacks(self):
        self.assertRejected(TypeError, self.client.get_all, 'messages',
            None, self.r.failure)
        self.assertRejected(TypeError, self.client.get_all, 'messages',
            self.r.success, None)

    def test_missing_collections(self):
        ok, fail = self.r.success, self.r.failure
        self.assertRejected(ValueError, self.client.append, 'messages',
            '42', 'tags', None, ok, fail)
        self.assertRejected(ValueError, self.client.create_related,
            'messages', '42', 'comments', None, ok, fail)
        self.assertRejected(ValueError, self.client.create, 'messages',
            None, ok, fail)
        self.assertRejected(ValueError, self.client.find, 'messages',
            None, ok, fail)

    def test_append_value_types(self):
        self.assertRejected(TypeError, self.client.append, 'messages', '42',
            'tags', [{'a': 1}], self.r.success, self.r.failure)
        self.assertRejected(TypeError, self.client.append, 'messages', '42',
            'tags', 'xy', self.r.success, self.r.failure)

    def test_callbacks_not_invoked(self):
        with self.assertRaises(ValueError):
            self.client.delete('messages', '', self.r.success,
                self.r.failure)
        self.assertEqual(self.r.results, [])
        self.assertEqual(self.r.errors, [])


class ResourceClientTestCase(unittest.TestCase):
    def test_create(self):
        client, http = create_client(make_response(201,
            {'message': 'hi', 'messages_id': '42'}))
        r = Recorder()
        value = {'message': 'hi'}
        op = client.create('messages', value, r.success, r.failure)
        result = op.wait(TIMEOUT)

        self.assertEqual(result['messages_id'], '42')
        self.assertEqual(r.results, [(result,)])
        self.assertEqual(r.errors, [])

        method, url, kwargs = request_args(http)
        self.assertEqual(method, 'POST')
        self.assertEqual(url, API_URL + '/messages')
        self.assertEqual(request_body(http), value)

    def test_get(self):
        client, http = create_client(make_response(200,
            {'message': 'hi', 'messages_id': '42'}))
        op = client.get('messages', '42', Recorder().success,
            Recorder().failure)
        self.assertEqual(op.wait(TIMEOUT)['message'], 'hi')

        method, url, kwargs = request_args(http)
        self.assertEqual(method, 'GET')
        self.assertEqual(url, API_URL + '/messages/42')

    def test_get_not_found(self):
        client, http = create_client(make_response(404))
        r = Recorder()
        op = client.get('messages', '42', r.success, r.failure)

        with self.assertRaises(requests.HTTPError):
            op.wait(TIMEOUT)
        self.assertEqual(r.results, [])
        self.assertEqual(len(r.errors), 1)

    def test_get_server_error_detail(self):
        client, http = create_client(make_response(401,
            {'error': 'login required'}))
        r = Recorder()
        op = client.get('messages', '42', r.success, r.failure)

        with self.assertRaises(StackMobException) as cm:
            op.wait(TIMEOUT)
        self.assertEqual(cm.exception.code, 401)
        self.assertIn('error: login required', str(cm.exception))

    def test_get_all(self):
        client, http = create_client(make_response(200, [{'a': 1},
            {'a': 2}]))
        op = client.get_all('messages', Recorder().success,
            Recorder().failure)
        self.assertEqual(op.wait(TIMEOUT), [{'a': 1}, {'a': 2}])
        self.assertEqual(request_args(http)[1], API_URL + '/messages')

    def test_get_all_object_response(self):
        client, http = create_client(make_response(200, {'a': 1}))
        r = Recorder()
        op = client.get_all('messages', r.success, r.failure)

        with self.assertRaises(StackMobException):
            op.wait(TIMEOUT)
        self.assertEqual(r.results, [])

    def test_find(self):
        client, http = create_client(make_response(200, []))
        op = client.find('messages', {'message': 'hi there'},
            Recorder().success, Recorder().failure,
            fields=['message', 'messages_id'],
            order_by=[('createddate', 'desc'), 'message'], range=(0, 9))
        self.assertEqual(op.wait(TIMEOUT), [])

        method, url, kwargs = request_args(http)
        self.assertEqual(url, API_URL + '/messages?message=hi%20there')
        headers = kwargs['headers']
        self.assertEqual(headers['X-StackMob-Select'], 'message,messages_id')
        self.assertEqual(headers['X-StackMob-OrderBy'],
            'createddate:desc,message:asc')
        self.assertEqual(headers['Range'], 'objects=0-9')

    def test_find_expressions(self):
        client, http = create_client(make_response(200, []))
        client.find('messages', ['age[gt]=20', 'age[lt]=30'],
            Recorder().success, Recorder().failure).wait(TIMEOUT)

        method, url, kwargs = request_args(http)
        self.assertEqual(url, API_URL + '/messages?age[gt]=20&age[lt]=30')
        self.assertNotIn('X-StackMob-Select', kwargs['headers'])

    def test_update(self):
        client, http = create_client(make_response(200,
            {'message': 'bye', 'messages_id': '42'}))
        op = client.update('messages', '42', {'message': 'bye'},
            Recorder().success, Recorder().failure)
        self.assertEqual(op.wait(TIMEOUT)['message'], 'bye')

        method, url, kwargs = request_args(http)
        self.assertEqual(method, 'PUT')
        self.assertEqual(url, API_URL + '/messages/42')

    def test_append(self):
        client, http = create_client(make_response(200,
            {'tags': ['x', 'y']}))
        op = client.append('messages', '42', 'tags', ['x', 'y'],
            Recorder().success, Recorder().failure)
        op.wait(TIMEOUT)

        method, url, kwargs = request_args(http)
        self.assertEqual(method, 'PUT')
        self.assertEqual(url, API_URL + '/messages/42/tags')
        self.assertEqual(request_body(http), ['x', 'y'])

    def test_append_primitive_types(self):
        values = [1, 2.5, True, 'x']
        client, http = create_client(make_response(200, {}))
        client.append('messages', 42, 'tags', values, Recorder().success,
            Recorder().failure).wait(TIMEOUT)
        self.assertEqual(request_body(http), values)
        self.assertEqual(request_args(http)[1], API_URL + '/messages/42/tags')

    def test_increment(self):
        client, http = create_client(make_response(200, {'count': 3}),
            make_response(200, {'count': 1}))
        client.increment('messages', '42', 'count', Recorder().success,
            Recorder().failure, amount=2).wait(TIMEOUT)
        client.decrement('messages', '42', 'count', Recorder().success,
            Recorder().failure, amount=2).wait(TIMEOUT)

        self.assertEqual(request_args(http)[0], 'PUT')
        self.assertEqual(request_body(http, 0), {'count[inc]': 2})
        self.assertEqual(request_body(http, 1), {'count[inc]': -2})

    def test_delete(self):
        client, http = create_client(make_response(200))
        r = Recorder()
        op = client.delete('messages', '42', r.success, r.failure)
        self.assertIsNone(op.wait(TIMEOUT))
        self.assertEqual(r.results, [()])

        method, url, kwargs = request_args(http)
        self.assertEqual(method, 'DELETE')
        self.assertEqual(url, API_URL + '/messages/42')

    def test_delete_from(self):
        client, http = create_client(make_response(200))
        client.delete_from('messages', '42', 'comments', ['a', 'b'],
            Recorder().success, Recorder().failure).wait(TIMEOUT)

        method, url, kwargs = request_args(http)
        self.assertEqual(method, 'DELETE')
        self.assertEqual(url, API_URL + '/messages/42/comments/ab')
        self.assertNotIn('X-StackMob-CascadeDelete', kwargs['headers'])

    def test_delete_from_cascade(self):
        client, http = create_client(make_response(200))
        client.delete_from('messages', '42', 'comments', [1, None, 2],
            Recorder().success, Recorder().failure,
            cascade=True).wait(TIMEOUT)

        method, url, kwargs = request_args(http)
        self.assertEqual(url, API_URL + '/messages/42/comments/12')
        self.assertEqual(kwargs['headers']['X-StackMob-CascadeDelete'],
            'true')

    def test_delete_from_requires_values(self):
        client, http = create_client()
        for values in ([], [None]):
            with self.assertRaises(ValueError):
                client.delete_from('messages', '42', 'comments', values,
                    Recorder().success, Recorder().failure)
        self.assertFalse(http.request.called)

    def test_create_related_malformed_schema(self):
        client, http = create_client(
            make_response(200, {'text': 'one', 'comment_id': '99'}),
            make_response(200, {'messages': 'not-an-object'}))
        r = Recorder()
        op = client.create_related('messages', '42', 'comments',
            [{'text': 'one'}], r.success, r.failure)

        with self.assertRaises(SchemaException):
            op.wait(TIMEOUT)
        self.assertEqual(r.results, [])
        self.assertEqual(len(r.errors), 1)

    def test_create_related_succeeded(self):
        client, http = create_client(make_response(200,
            {'succeeded': ['a', 'b']}))
        r = Recorder()
        op = client.create_related('messages', '42', 'comments',
            [{'text': 'one'}, {'text': 'two'}], r.success, r.failure)

        self.assertEqual(op.wait(TIMEOUT), ['a', 'b'])
        self.assertEqual(r.results, [(['a', 'b'],)])
        self.assertEqual(http.request.call_count, 1)

        method, url, kwargs = request_args(http)
        self.assertEqual(method, 'POST')
        self.assertEqual(url, API_URL + '/messages/42/comments')
        self.assertEqual(request_body(http),
            [{'text': 'one'}, {'text': 'two'}])

    def test_create_related_legacy_response(self):
        client, http = create_client(
            make_response(200, {'text': 'one', 'comment_id': '99'}),
            make_response(200, SCHEMA))
        op = client.create_related('messages', '42', 'comments',
            [{'text': 'one'}], Recorder().success, Recorder().failure)

        self.assertEqual(op.wait(TIMEOUT), ['99'])
        self.assertEqual(http.request.call_count, 2)
        self.assertEqual(request_args(http, 1)[1], API_URL + '/listapi')

    def test_create_related_legacy_response_without_id(self):
        client, http = create_client(make_response(200, {'text': 'one'}),
            make_response(200, SCHEMA))
        op = client.create_related('messages', '42', 'comments',
            [{'text': 'one'}], Recorder().success, Recorder().failure)

        with self.assertRaises(SchemaException):
            op.wait(TIMEOUT)

    def test_create_round_trip(self):
        value = {'message': 'hi', 'count': 3, 'tags': ['a', 'b'],
            'nested': {'ok': True}}
        client, http = create_client(make_response(201, {}))
        client.create('messages', value, Recorder().success,
            Recorder().failure).wait(TIMEOUT)
        self.assertEqual(request_body(http), value)


class SessionClientTestCase(unittest.TestCase):
    def login(self, client, credentials=None):
        credentials = credentials or {'username': 'test', 'password': 'pw'}
        r = Recorder()
        op = client.login(credentials, r.success, r.failure)
        op.wait(TIMEOUT)
        return r

    def test_login(self):
        clock = FakeClock()
        client, http = create_client(make_response(200, SCHEMA),
            make_response(200, {'username': 'test'},
            cookies={'session': 'abc'}), clock=clock)

        self.assertEqual(client.session.state, STATE_LOGGED_OUT)
        r = self.login(client)
        self.assertEqual(r.results, [({'username': 'test'},)])

        method, url, kwargs = request_args(http, 1)
        self.assertEqual(method, 'GET')
        self.assertEqual(url,
            API_URL + '/user/login?username=test&password=pw')
        self.assertIn('Authorization', kwargs['headers'])

        self.assertTrue(client.is_logged_in())
        self.assertEqual(client.logged_in_username, 'test')
        self.assertEqual(client.session.username_field, 'username')
        self.assertEqual(client.session.cookies.get('session'), 'abc')
        self.assertEqual(client.session.state, STATE_LOGGED_IN)

    def test_login_expires(self):
        clock = FakeClock()
        client, http = create_client(make_response(200, SCHEMA),
            make_response(200, {'username': 'test'}), clock=clock)
        self.login(client)

        clock.advance(29 * 60)
        self.assertTrue(client.is_logged_in())
        clock.advance(60)
        self.assertFalse(client.is_logged_in())
        self.assertIsNone(client.logged_in_username)

    def test_login_failure(self):
        client, http = create_client(make_response(200, SCHEMA),
            make_response(401, {'error': 'bad password'}))
        r = self.login_failure(client)
        self.assertEqual(r.errors[0].code, 401)
        self.assertFalse(client.is_logged_in())
        self.assertEqual(client.session.state, STATE_LOGGED_OUT)

    def login_failure(self, client):
        r = Recorder()
        op = client.login({'username': 'test', 'password': 'x'}, r.success,
            r.failure)
        with self.assertRaises(StackMobException):
            op.wait(TIMEOUT)
        return r

    def test_login_schema_failure(self):
        schema = {'user': {'properties': {'username': {}}}}
        client, http = create_client(make_response(200, schema))
        r = Recorder()
        op = client.login({'username': 'test'}, r.success, r.failure)
        with self.assertRaises(SchemaException):
            op.wait(TIMEOUT)
        self.assertEqual(http.request.call_count, 1)

    def test_logging_in_state(self):
        release = threading.Event()
        responses = iter([make_response(200, SCHEMA),
            make_response(200, {'username': 'test'})])

        def respond(*args, **kwargs):
            release.wait(TIMEOUT)
            return next(responses)

        client, http = create_client()
        http.request.side_effect = respond

        r = Recorder()
        op = client.login({'username': 'test'}, r.success, r.failure)
        self.assertEqual(client.session.state, STATE_LOGGING_IN)
        release.set()
        op.wait(TIMEOUT)
        self.assertEqual(client.session.state, STATE_LOGGED_IN)

    def test_login_validation(self):
        client, http = create_client()
        r = Recorder()
        for credentials in (None, {}):
            with self.assertRaises(ValueError):
                client.login(credentials, r.success, r.failure)
        self.assertFalse(http.request.called)

    def test_logout_when_logged_out(self):
        client, http = create_client()
        r = Recorder()
        op = client.logout(r.success, r.failure)
        self.assertTrue(op.done())
        self.assertEqual(r.results, [()])
        self.assertFalse(http.request.called)

    def test_logout(self):
        client, http = create_client(make_response(200, SCHEMA),
            make_response(200, {'username': 'test'},
            cookies={'session': 'abc'}), make_response(200))
        self.login(client)
        jar = client.session.cookies

        r = Recorder()
        client.logout(r.success, r.failure).wait(TIMEOUT)
        self.assertEqual(r.results, [()])

        method, url, kwargs = request_args(http, 2)
        self.assertEqual(url, API_URL + '/user/logout?username=test')
        self.assertNotIn('Authorization', kwargs['headers'])
        self.assertIs(kwargs['cookies'], jar)

        self.assertFalse(client.is_logged_in())
        self.assertIsNone(client.session.username)
        self.assertIsNot(client.session.cookies, jar)
        self.assertEqual(len(client.session.cookies), 0)

    def test_logout_failure_keeps_session(self):
        client, http = create_client(make_response(200, SCHEMA),
            make_response(200, {'username': 'test'}), make_response(500))
        self.login(client)
        jar = client.session.cookies

        r = Recorder()
        op = client.logout(r.success, r.failure)
        with self.assertRaises(requests.HTTPError):
            op.wait(TIMEOUT)
        self.assertTrue(client.is_logged_in())
        self.assertIs(client.session.cookies, jar)

    def test_login_without_username_field(self):
        client, http = create_client(make_response(200, SCHEMA))
        r = Recorder()
        op = client.login({'email': 'a@b.com', 'password': 'pw'}, r.success,
            r.failure)

        with self.assertRaises(SchemaException):
            op.wait(TIMEOUT)
        self.assertEqual(http.request.call_count, 1)
        self.assertFalse(client.is_logged_in())
        self.assertEqual(client.session.state, STATE_LOGGED_OUT)

        op = client.logout(r.success, r.failure)
        self.assertTrue(op.done())
        self.assertEqual(http.request.call_count, 1)

    def test_social_login_without_username(self):
        client, http = create_client(make_response(200, SCHEMA),
            make_response(200, {'fb': {'id': '7'}}))
        r = Recorder()
        op = client.login_with_facebook('token', r.success, r.failure)

        with self.assertRaises(StackMobException):
            op.wait(TIMEOUT)
        self.assertEqual(r.results, [])
        self.assertFalse(client.is_logged_in())
        self.assertEqual(client.session.state, STATE_LOGGED_OUT)

    def test_logout_after_expiry(self):
        clock = FakeClock()
        client, http = create_client(make_response(200, SCHEMA),
            make_response(200, {'username': 'test'},
            cookies={'session': 'abc'}), make_response(200), clock=clock)
        self.login(client)
        clock.advance(31 * 60)

        client.logout(Recorder().success, Recorder().failure).wait(TIMEOUT)
        self.assertEqual(http.request.call_count, 3)
        self.assertEqual(len(client.session.cookies), 0)

    def test_forgot_password(self):
        client, http = create_client(make_response(200))
        r = Recorder()
        client.forgot_password('test', r.success, r.failure).wait(TIMEOUT)
        self.assertEqual(request_args(http)[1],
            API_URL + '/user/forgotPassword?username=test')

    def test_login_with_facebook(self):
        client, http = create_client(make_response(200, SCHEMA),
            make_response(200, {'username': 'fbuser', 'fb': {'id': '7'}}))
        r = Recorder()
        op = client.login_with_facebook('token', r.success, r.failure)

        self.assertEqual(op.wait(TIMEOUT), ('fbuser', {'id': '7'}))
        self.assertEqual(r.results, [('fbuser', {'id': '7'})])
        self.assertEqual(request_args(http, 1)[1],
            API_URL + '/user/facebookLogin?fb_at=token')
        self.assertEqual(client.logged_in_username, 'fbuser')

    def test_login_with_twitter(self):
        client, http = create_client(make_response(200, SCHEMA),
            make_response(200, {'username': 'twuser', 'tw': {'id': '8'}}))
        op = client.login_with_twitter('tk', 'ts', Recorder().success,
            Recorder().failure)

        self.assertEqual(op.wait(TIMEOUT), ('twuser', {'id': '8'}))
        self.assertEqual(request_args(http, 1)[1],
            API_URL + '/user/twitterLogin?tw_tk=tk&tw_ts=ts')

    def test_create_user_with_facebook(self):
        client, http = create_client(make_response(200))
        client.create_user_with_facebook('fbuser', 'token',
            Recorder().success, Recorder().failure).wait(TIMEOUT)

        method, url, kwargs = request_args(http)
        self.assertEqual(url, API_URL +
            '/user/createUserWithFacebook?username=fbuser&fb_at=token')
        self.assertIn('Authorization', kwargs['headers'])

    def test_create_user_with_twitter(self):
        client, http = create_client(make_response(200))
        client.create_user_with_twitter('twuser', 'tk', 'ts',
            Recorder().success, Recorder().failure).wait(TIMEOUT)
        self.assertEqual(request_args(http)[1], API_URL +
            '/user/createUserWithTwitter?username=twuser&tw_tk=tk&tw_ts=ts')

    def test_session_requests(self):
        client, http = create_client(make_response(200),
            make_response(200, {'name': 'Test'}), make_response(200),
            make_response(200), make_response(200, {'screen_name': 't'}),
            make_response(200))

        ok, fail = Recorder().success, Recorder().failure
        client.link_account_to_facebook('token', ok, fail).wait(TIMEOUT)
        info = client.get_facebook_user_info(ok, fail).wait(TIMEOUT)
        client.post_to_facebook('hello world', ok, fail).wait(TIMEOUT)
        client.link_account_to_twitter('tk', 'ts', ok, fail).wait(TIMEOUT)
        twitter = client.get_twitter_user_info(ok, fail).wait(TIMEOUT)
        client.post_to_twitter('hi', ok, fail).wait(TIMEOUT)

        self.assertEqual(info, {'name': 'Test'})
        self.assertEqual(twitter, {'screen_name': 't'})

        urls = [request_args(http, i)[1] for i in range(6)]
        self.assertEqual(urls, [
            API_URL + '/user/linkUserWithFacebook?fb_at=token',
            API_URL + '/user/getFacebookUserInfo',
            API_URL + '/user/postFacebookMessage?message=hello%20world',
            API_URL + '/user/linkUserWithTwitter?tw_tk=tk&tw_ts=ts',
            API_URL + '/user/getTwitterUserInfo',
            API_URL + '/user/twitterStatusUpdate?tw_st=hi',
        ])

        for i in range(6):
            kwargs = request_args(http, i)[2]
            self.assertNotIn('Authorization', kwargs['headers'])
            self.assertIs(kwargs['cookies'], client.session.cookies)


class PushTestCase(unittest.TestCase):
    def test_push_token(self):
        token = stackmob.PushToken.android('reg')
        self.assertEqual(token.type, stackmob.PushTokenType.ANDROID)
        self.assertEqual(token.to_json(), {'type': 'android',
            'token': 'reg'})
        self.assertEqual(stackmob.PushToken('ios', 'x').type,
            stackmob.PushTokenType.IOS)

        with self.assertRaises(ValueError):
            stackmob.PushToken('blackberry', 'x')
        with self.assertRaises(ValueError):
            stackmob.PushToken.ios('  ')

    def test_push_payload(self):
        payload = stackmob.PushPayload(extra='data')
        payload.badge = 2
        payload.sound = 'ding.wav'
        payload.alert = 'Hello'

        self.assertEqual(payload.badge, 2)
        self.assertEqual(payload.sound, 'ding.wav')
        self.assertEqual(payload.alert, 'Hello')
        self.assertEqual(payload, {'badge': 2, 'sound': 'ding.wav',
            'alert': 'Hello', 'extra': 'data'})

        with self.assertRaises(TypeError):
            payload.badge = 'two'

    def test_register_push(self):
        client, http = create_client(make_response(200))
        token = stackmob.PushToken.ios('abc')
        client.register_push('test', token, Recorder().success,
            Recorder().failure).wait(TIMEOUT)

        method, url, kwargs = request_args(http)
        self.assertEqual(method, 'POST')
        self.assertEqual(url, PUSH_URL + '/register_device_token_universal')
        self.assertIn('Authorization', kwargs['headers'])
        self.assertEqual(request_body(http), {'userId': 'test',
            'token': {'type': 'ios', 'token': 'abc'}})

    def test_register_device(self):
        client, http = create_client(make_response(200),
            make_response(200))
        ok, fail = Recorder().success, Recorder().failure
        client.register_device(stackmob.AndroidPushPlatform(), 'test', 'reg',
            ok, fail).wait(TIMEOUT)
        client.register_device(stackmob.IOSPushPlatform(), 'test', 'tok',
            ok, fail).wait(TIMEOUT)

        self.assertEqual(request_body(http, 0)['token'],
            {'type': 'android', 'token': 'reg'})
        self.assertEqual(request_body(http, 1)['token'],
            {'type': 'ios', 'token': 'tok'})

    def test_push_to_users(self):
        client, http = create_client(make_response(200))
        payload = stackmob.PushPayload(alert='hi')
        client.push(payload, Recorder().success, Recorder().failure,
            user_ids=['a', 'b']).wait(TIMEOUT)

        self.assertEqual(request_args(http)[1],
            PUSH_URL + '/push_users_universal')
        self.assertEqual(request_body(http), {'kvPairs': {'alert': 'hi'},
            'userIds': ['a', 'b']})

    def test_push_to_tokens(self):
        client, http = create_client(make_response(200))
        tokens = [stackmob.PushToken.ios('abc')]
        client.push({'badge': 1}, Recorder().success, Recorder().failure,
            tokens=tokens).wait(TIMEOUT)

        self.assertEqual(request_args(http)[1],
            PUSH_URL + '/push_tokens_universal')
        self.assertEqual(request_body(http), {'kvPairs': {'badge': 1},
            'tokens': [{'type': 'ios', 'token': 'abc'}]})

    def test_push_targets(self):
        client, http = create_client()
        r = Recorder()
        with self.assertRaises(ValueError):
            client.push({'alert': 'hi'}, r.success, r.failure)
        with self.assertRaises(ValueError):
            client.push({'alert': 'hi'}, r.success, r.failure,
                user_ids=['a'], tokens=[stackmob.PushToken.ios('abc')])
        with self.assertRaises(TypeError):
            client.push({'alert': 'hi'}, r.success, r.failure,
                tokens=['abc'])
        self.assertFalse(http.request.called)

    def test_broadcast(self):
        client, http = create_client(make_response(200))
        client.broadcast({'alert': 'all'}, Recorder().success,
            Recorder().failure).wait(TIMEOUT)
        self.assertEqual(request_args(http)[1],
            PUSH_URL + '/push_broadcast_universal')
        self.assertEqual(request_body(http), {'kvPairs': {'alert': 'all'}})

    def test_get_tokens_for_users(self):
        tokens = {'a': [{'type': 'ios', 'token': 'abc'}]}
        client, http = create_client(make_response(200, tokens))
        result = client.get_tokens_for_users(['a'], Recorder().success,
            Recorder().failure).wait(TIMEOUT)
        self.assertEqual(result, tokens)
        self.assertEqual(request_body(http), {'userIds': ['a']})

    def test_remove_push_token(self):
        client, http = create_client(make_response(200))
        client.remove_push_token(stackmob.PushToken.android('reg'),
            Recorder().success, Recorder().failure).wait(TIMEOUT)
        self.assertEqual(request_args(http)[1],
            PUSH_URL + '/remove_token_universal')
        self.assertEqual(request_body(http), {'type': 'android',
            'token': 'reg'})


class ApplicationTestCase(unittest.TestCase):
    def setUp(self):
        self.applications = dict(constants.APPLICATIONS)
        self.name = constants.APPLICATION_NAME

    def tearDown(self):
        constants.APPLICATIONS.clear()
        constants.APPLICATIONS.update(self.applications)
        constants.APPLICATION_NAME = self.name

    def test_set_application(self):
        stackmob.set_application('test-stackmob', 'key', 'secret', 1)
        client = stackmob.get_client(http=mock_http())

        self.assertIsInstance(client, stackmob.SessionClient)
        self.assertEqual(client.credentials.api_key, 'key')
        self.assertEqual(client.app_name, 'test-stackmob')
        self.assertEqual(client.credentials.accepts,
            'application/vnd.stackmob+json; version=1')

    def test_update_application(self):
        stackmob.set_application('test-stackmob', 'key', 'secret')
        stackmob.set_application('test-stackmob', api_version=3)
        client = stackmob.get_client('test-stackmob',
            cls=stackmob.ResourceClient)

        self.assertIsInstance(client, stackmob.ResourceClient)
        self.assertEqual(client.credentials.api_secret, 'secret')
        self.assertTrue(client.credentials.accepts.endswith('version=3'))

    def test_requires_credentials(self):
        with self.assertRaises(ValueError):
            stackmob.set_application('test-incomplete', 'key')

    def test_unknown_application(self):
        with self.assertRaises(ValueError):
            stackmob.get_client('test-unknown')


if __name__ == '__main__':
    unittest.main()
