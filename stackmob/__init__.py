"""
StackMob client library
-----------------------

:Copyright (c) 2013-2014 Paul Malyschko
:Licenced under BSD

"""

__title__ = 'stackmob'
__version__ = '0.1.0'
__build__ = 0x000100
__author__ = 'Paul Malyschko'
__licence__ = 'BSD'
__copyright__ = 'Copyright (c) 2013-2014 Paul Malyschko'
__all__ = ['set_application', 'get_client', 'ResourceClient',
    'SessionClient', 'Operation', 'PushToken', 'PushTokenType',
    'PushPayload', 'AndroidPushPlatform', 'IOSPushPlatform',
    'StackMobException', 'SchemaException']


from . import constants
from .client import ResourceClient
from .exceptions import StackMobException, SchemaException
from .executor import Operation
from .push import (PushToken, PushTokenType, PushPayload,
    AndroidPushPlatform, IOSPushPlatform)
from .session import SessionClient

application = None

def set_application(name, api_key=None, api_secret=None, api_version=None,
    app_name=None):
    """Register (or update) the StackMob application details and make it
    the current application"""
    global application

    kwargs = {
        'api_key': api_key,
        'api_secret': api_secret,
        'api_version': api_version,
        'app_name': app_name
    }

    if name not in constants.APPLICATIONS:
        if not all((api_key, api_secret)):
            raise ValueError("Require API key and API secret")

        kwargs['api_version'] = api_version or 0
        kwargs['app_name'] = app_name or name
        constants.APPLICATIONS[name] = kwargs
    else:
        kwargs = {k: v for (k, v) in kwargs.items() if v is not None}
        constants.APPLICATIONS[name].update(**kwargs)

    application = name
    constants.APPLICATION_NAME = name

def get_client(name=None, cls=SessionClient, **kwargs):
    """Build a client for a registered application, the current one by
    default"""
    name = name if name is not None else constants.APPLICATION_NAME

    if name not in constants.APPLICATIONS:
        raise ValueError("No application registered as %r" % (name,))

    app = constants.APPLICATIONS[name]
    return cls(app['api_key'], app['api_secret'], app_name=app['app_name'],
        api_version=app['api_version'], **kwargs)
