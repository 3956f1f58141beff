from collections import namedtuple

import requests
from requests_oauthlib import OAuth1

from .constants import (API_SCHEME, API_HOST, API_SUBDOMAIN, API_ACCEPTS,
    HEADER_ACCEPT, HEADER_AUTHORIZATION)


AUTH_OAUTH = 'oauth'
AUTH_SESSION = 'session'


class Credentials(namedtuple('Credentials', 'api_key api_secret accepts')):
    __slots__ = ()

    @classmethod
    def create(cls, api_key, api_secret, api_version=0):
        if api_key is None:
            raise ValueError("api_key is required")
        if api_secret is None:
            raise ValueError("api_secret is required")
        if api_version is None or api_version < 0:
            raise ValueError("API version must be 0 or greater")

        return cls(api_key, api_secret, API_ACCEPTS % (api_version))


class RequestDescriptor(namedtuple('RequestDescriptor',
    'method url headers auth cookies')):
    """A fully built request, ready to hand to the executor.

    ``auth`` is either `AUTH_OAUTH`, in which case ``headers`` hold the
    OAuth ``Authorization`` header, or `AUTH_SESSION`, in which case the
    request is authenticated by the ``cookies`` jar alone.

    """
    __slots__ = ()

    @property
    def is_signed(self):
        return self.auth == AUTH_OAUTH


class RequestBuilder(object):
    def __init__(self, credentials, host=API_HOST, scheme=API_SCHEME):
        self.credentials = credentials
        self.host = host
        self.scheme = scheme

    def build_url(self, resource, id=None, query=None,
        subdomain=API_SUBDOMAIN):
        url = '%s://%s.%s/%s' % (self.scheme, subdomain, self.host, resource)

        if id is not None and str(id).strip():
            url = '/'.join([url, str(id)])

        if query:
            url = '?'.join([url, query])

        return url

    def sign(self, method, url):
        """Return the OAuth 1.0a (HMAC-SHA1, two-legged) Authorization
        header for a bodiless request."""
        auth = OAuth1(self.credentials.api_key,
            client_secret=self.credentials.api_secret,
            signature_type='auth_header')
        prepared = requests.Request(method, url).prepare()
        prepared = auth(prepared)
        value = prepared.headers[HEADER_AUTHORIZATION]

        if isinstance(value, bytes):
            value = value.decode('utf-8')
        return value

    def build(self, resource, method, id=None, query=None, headers=None,
        subdomain=API_SUBDOMAIN, cookies=None):
        method = method.upper()
        url = self.build_url(resource, id, query, subdomain)

        request_headers = {HEADER_ACCEPT: self.credentials.accepts}
        if headers:
            request_headers.update(headers)

        if cookies is None:
            request_headers[HEADER_AUTHORIZATION] = self.sign(method, url)
            auth = AUTH_OAUTH
        else:
            request_headers.pop(HEADER_AUTHORIZATION, None)
            auth = AUTH_SESSION

        return RequestDescriptor(method, url, request_headers, auth, cookies)
