import io
import logging
import threading
from concurrent.futures import Future
from contextlib import closing
from http import cookiejar

import requests

from .constants import HEADER_CONTENT_TYPE, MIME_JSON, REQUEST_TIMEOUT
from .utils import generate_exception, raise_for_status


log = logging.getLogger('stackmob.executor')


class BlockAll(cookiejar.DefaultCookiePolicy):
    """Cookie policy that keeps the transport session from storing
    cookies; each request carries its own jar."""
    netscape = True
    rfc2965 = hide_cookie2 = False

    def set_ok(self, cookie, request):
        return False

    def return_ok(self, cookie, request):
        return False

    def domain_return_ok(self, domain, request):
        return False

    def path_return_ok(self, path, request):
        return False


class Operation(object):
    """Handle for an operation running in the background.

    Wraps the caller's ``success`` and ``failure`` callbacks so that
    exactly one of them fires, exactly once. ``wait()`` blocks until the
    callback has returned and then gives back the delivered result, or
    raises the delivered error.

    """

    def __init__(self, success=None, failure=None):
        self._success = success
        self._failure = failure
        self._lock = threading.Lock()
        self._completed = False
        self._future = Future()

    def __repr__(self):
        state = 'done' if self.done() else 'pending'
        return '<Operation [%s]>' % (state)

    def _complete(self):
        with self._lock:
            if self._completed:
                return False
            self._completed = True
            return True

    def succeed(self, *result):
        if not self._complete():
            log.warning("Ignoring result for completed operation %r", self)
            return

        if len(result) == 0:
            value = None
        elif len(result) == 1:
            value = result[0]
        else:
            value = result

        try:
            if self._success is not None:
                self._success(*result)
        except Exception as e:
            log.exception("success callback raised")
            self._future.set_exception(e)
        else:
            self._future.set_result(value)

    def fail(self, error):
        if not self._complete():
            log.warning("Ignoring error for completed operation %r: %s",
                self, error)
            return

        try:
            if self._failure is not None:
                self._failure(error)
        except Exception as e:
            log.exception("failure callback raised")
            self._future.set_exception(e)
        else:
            self._future.set_exception(error)

    def done(self):
        return self._future.done()

    def wait(self, timeout=None):
        return self._future.result(timeout)

    @property
    def error(self):
        if not self.done():
            return None
        return self._future.exception()

    @property
    def result(self):
        if not self.done() or self._future.exception() is not None:
            return None
        return self._future.result()


class AsyncExecutor(object):
    def __init__(self, session=None, timeout=REQUEST_TIMEOUT, verify=True):
        if session is None:
            session = requests.Session()
            session.cookies.set_policy(BlockAll())

        self.session = session
        self.timeout = timeout
        self.verify = verify

    def execute(self, descriptor, success, failure, send_body=None,
        expected_status=None, cookies=None):
        """Dispatch ``descriptor`` on a background thread.

        ``send_body(stream)`` writes the request body, if any.
        ``success(stream)`` receives the response body, open only for the
        duration of the call. Every error, including one raised by
        ``send_body`` or ``success``, goes to ``failure``. Response cookies
        are merged into ``cookies`` (or the descriptor's own jar).

        """
        args = (descriptor, success, failure, send_body, expected_status,
            cookies)
        thread = threading.Thread(target=self.open, args=args,
            name='stackmob-%s' % (descriptor.method.lower()))
        thread.daemon = True
        thread.start()
        return thread

    def open(self, descriptor, success, failure, send_body=None,
        expected_status=None, cookies=None):
        try:
            headers = dict(descriptor.headers)
            data = None

            if send_body is not None:
                with closing(io.BytesIO()) as stream:
                    send_body(stream)
                    data = stream.getvalue()
                headers[HEADER_CONTENT_TYPE] = MIME_JSON

            log.debug("%s %s", descriptor.method, descriptor.url)
            response = self.session.request(descriptor.method,
                descriptor.url, headers=headers, data=data,
                cookies=descriptor.cookies, timeout=self.timeout,
                verify=self.verify)
            log.debug("%s %s -> %s", descriptor.method, descriptor.url,
                response.status_code)

            raise_for_status(response, expected_status)

            jar = cookies if cookies is not None else descriptor.cookies
            if jar is not None:
                jar.update(response.cookies)

            with closing(io.BytesIO(response.content)) as stream:
                success(stream)
        except Exception as error:
            failure(generate_exception(error))
