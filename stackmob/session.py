import logging
import threading
import time
from collections.abc import Mapping

from requests.cookies import RequestsCookieJar

from . import stackmobjson as json
from .client import ResourceClient
from .constants import (SESSION_TIMEOUT, API_LOGIN_PATH, API_LOGOUT_PATH,
    API_FORGOT_PASSWORD_PATH, API_FACEBOOK_CREATE_PATH,
    API_FACEBOOK_LOGIN_PATH, API_FACEBOOK_LINK_PATH, API_FACEBOOK_INFO_PATH,
    API_FACEBOOK_POST_PATH, API_TWITTER_CREATE_PATH, API_TWITTER_LOGIN_PATH,
    API_TWITTER_LINK_PATH, API_TWITTER_INFO_PATH, API_TWITTER_POST_PATH,
    FACEBOOK_TOKEN_PARAM, FACEBOOK_INFO_KEY, TWITTER_TOKEN_PARAM,
    TWITTER_SECRET_PARAM, TWITTER_STATUS_PARAM, TWITTER_INFO_KEY)
from .exceptions import StackMobException, SchemaException
from .executor import Operation
from .push import PushMixin
from .utils import check_name, check_callbacks, build_query


log = logging.getLogger('stackmob.session')

STATE_LOGGED_OUT = 'logged out'
STATE_LOGGING_IN = 'logging in'
STATE_LOGGED_IN = 'logged in'


def check_credentials(credentials):
    if credentials is None:
        raise ValueError("credentials are required")
    if not isinstance(credentials, Mapping):
        raise TypeError("credentials must be a mapping")
    if not credentials:
        raise ValueError("Can not have empty credentials")

    for key in credentials:
        check_name(key, 'credential name')
    return dict(credentials)


class Session(object):
    """Login state of a `SessionClient`.

    Being logged in is judged locally: the session counts as live for
    ``timeout`` seconds after the last login, whatever the server thinks.

    """

    def __init__(self, clock=time.time, timeout=SESSION_TIMEOUT):
        self.clock = clock
        self.timeout = timeout
        self._lock = threading.Lock()
        self._logins = 0
        self.username = None
        self.username_field = None
        self.login_time = None
        self.cookies = RequestsCookieJar()

    def __repr__(self):
        return '<Session [%s]>' % (self.state)

    def begin_login(self):
        with self._lock:
            self._logins += 1

    def abort_login(self):
        with self._lock:
            self._logins = max(self._logins - 1, 0)

    def start(self, username, username_field):
        with self._lock:
            self._logins = max(self._logins - 1, 0)
            self.username = username
            self.username_field = username_field
            self.login_time = self.clock()
        log.debug("Logged in as %s", username)

    def end(self):
        with self._lock:
            self.username = None
            self.username_field = None
            self.login_time = None
            self.cookies = RequestsCookieJar()
        log.debug("Logged out")

    def is_logged_in(self):
        with self._lock:
            if self.login_time is None:
                return False
            return self.clock() - self.login_time < self.timeout

    @property
    def state(self):
        if self.is_logged_in():
            return STATE_LOGGED_IN
        if self._logins:
            return STATE_LOGGING_IN
        return STATE_LOGGED_OUT


class SessionClient(PushMixin, ResourceClient):
    """A `ResourceClient` that can log a user in and out, work with the
    user's Facebook and Twitter accounts and send push notifications.

    User requests made after login are authenticated by the session
    cookie instead of an OAuth signature.

    """

    def __init__(self, *args, **kwargs):
        clock = kwargs.pop('clock', time.time)
        super(SessionClient, self).__init__(*args, **kwargs)
        self.session = Session(clock)

    def is_logged_in(self):
        return self.session.is_logged_in()

    @property
    def logged_in_username(self):
        return self.session.username if self.is_logged_in() else None

    def build_user_request(self, path, params=None, session=False):
        query = build_query(params) if params else None
        cookies = self.session.cookies if session else None
        return self.builder.build(self.user_object_name, 'GET', path,
            query=query, cookies=cookies)

    def start_login(self, path, params, success, failure, build_result,
        check_field=None):
        """Log in through ``path`` once the user schema's primary key,
        which names the username field, is known.

        ``check_field(username_field)`` may reject the login before it is
        sent. ``build_result(response, username_field)`` returns the
        username and the arguments for ``success``.

        """
        operation = Operation(success, failure)
        self.session.begin_login()

        def fail(error):
            self.session.abort_login()
            operation.fail(error)

        def handler(stream, operation, username_field):
            result = json.load_from(stream)
            if not isinstance(result, Mapping):
                raise StackMobException("Unexpected login response")

            username, args = build_result(result, username_field)
            self.session.start(username, username_field)
            operation.succeed(*args)

        def handle_primary_key(username_field):
            if check_field is not None:
                try:
                    check_field(username_field)
                except SchemaException as e:
                    fail(e)
                    return

            req = self.build_user_request(path, params)
            self.execute(req, operation,
                lambda s, o: handler(s, o, username_field),
                cookies=self.session.cookies, failure=fail)

        self.schema.get_primary_key_field(self.user_object_name,
            handle_primary_key, fail)
        return operation

    def login(self, credentials, success, failure):
        credentials = check_credentials(credentials)
        check_callbacks(success, failure)

        def check_field(username_field):
            if credentials.get(username_field) is None:
                raise SchemaException("Credentials have no %s" %
                    (username_field))

        def build_result(result, username_field):
            return credentials[username_field], (result,)

        return self.start_login(API_LOGIN_PATH, credentials, success,
            failure, build_result, check_field)

    def logout(self, success, failure):
        check_callbacks(success, failure)
        operation = Operation(success, failure)

        if self.session.login_time is None:
            operation.succeed()
            return operation

        def handler(stream, operation):
            # replaced only once the server has ended the session
            self.session.end()
            operation.succeed()

        params = {self.session.username_field: self.session.username}
        req = self.build_user_request(API_LOGOUT_PATH, params, session=True)
        return self.execute(req, operation, handler)

    def forgot_password(self, username, success, failure):
        check_name(username, 'username')
        check_callbacks(success, failure)

        req = self.build_user_request(API_FORGOT_PASSWORD_PATH,
            {'username': username})
        return self.execute(req, Operation(success, failure))

    def social_login(self, path, params, info_key, success, failure):
        def build_result(result, username_field):
            username = result.get(username_field)
            if username is None:
                raise StackMobException("Login response has no %s" %
                    (username_field))
            info = result.get(info_key) or {}
            return username, (username, info)

        return self.start_login(path, params, success, failure,
            build_result)

    def create_user_with_facebook(self, username, access_token, success,
        failure):
        check_name(username, 'username')
        check_name(access_token, 'access_token')
        check_callbacks(success, failure)

        params = [('username', username), (FACEBOOK_TOKEN_PARAM,
            access_token)]
        req = self.build_user_request(API_FACEBOOK_CREATE_PATH, params)
        return self.execute(req, Operation(success, failure))

    def login_with_facebook(self, access_token, success, failure):
        """``success(username, facebook_info)``"""
        check_name(access_token, 'access_token')
        check_callbacks(success, failure)

        params = [(FACEBOOK_TOKEN_PARAM, access_token)]
        return self.social_login(API_FACEBOOK_LOGIN_PATH, params,
            FACEBOOK_INFO_KEY, success, failure)

    def link_account_to_facebook(self, access_token, success, failure):
        check_name(access_token, 'access_token')
        check_callbacks(success, failure)

        params = [(FACEBOOK_TOKEN_PARAM, access_token)]
        req = self.build_user_request(API_FACEBOOK_LINK_PATH, params,
            session=True)
        return self.execute(req, Operation(success, failure))

    def get_facebook_user_info(self, success, failure):
        check_callbacks(success, failure)

        req = self.build_user_request(API_FACEBOOK_INFO_PATH, session=True)
        return self.execute(req, Operation(success, failure),
            self.handle_object_result)

    def post_to_facebook(self, message, success, failure):
        check_name(message, 'message')
        check_callbacks(success, failure)

        req = self.build_user_request(API_FACEBOOK_POST_PATH,
            [('message', message)], session=True)
        return self.execute(req, Operation(success, failure))

    def create_user_with_twitter(self, username, token, secret, success,
        failure):
        check_name(username, 'username')
        check_name(token, 'token')
        check_name(secret, 'secret')
        check_callbacks(success, failure)

        params = [('username', username), (TWITTER_TOKEN_PARAM, token),
            (TWITTER_SECRET_PARAM, secret)]
        req = self.build_user_request(API_TWITTER_CREATE_PATH, params)
        return self.execute(req, Operation(success, failure))

    def login_with_twitter(self, token, secret, success, failure):
        """``success(username, twitter_info)``"""
        check_name(token, 'token')
        check_name(secret, 'secret')
        check_callbacks(success, failure)

        params = [(TWITTER_TOKEN_PARAM, token), (TWITTER_SECRET_PARAM,
            secret)]
        return self.social_login(API_TWITTER_LOGIN_PATH, params,
            TWITTER_INFO_KEY, success, failure)

    def link_account_to_twitter(self, token, secret, success, failure):
        check_name(token, 'token')
        check_name(secret, 'secret')
        check_callbacks(success, failure)

        params = [(TWITTER_TOKEN_PARAM, token), (TWITTER_SECRET_PARAM,
            secret)]
        req = self.build_user_request(API_TWITTER_LINK_PATH, params,
            session=True)
        return self.execute(req, Operation(success, failure))

    def get_twitter_user_info(self, success, failure):
        check_callbacks(success, failure)

        req = self.build_user_request(API_TWITTER_INFO_PATH, session=True)
        return self.execute(req, Operation(success, failure),
            self.handle_object_result)

    def post_to_twitter(self, status, success, failure):
        check_name(status, 'status')
        check_callbacks(success, failure)

        req = self.build_user_request(API_TWITTER_POST_PATH,
            [(TWITTER_STATUS_PARAM, status)], session=True)
        return self.execute(req, Operation(success, failure))
