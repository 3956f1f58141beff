import enum
from collections import namedtuple

from .constants import (PUSH_SUBDOMAIN, PUSH_REGISTER_PATH, PUSH_USERS_PATH,
    PUSH_TOKENS_PATH, PUSH_BROADCAST_PATH, PUSH_GET_TOKENS_PATH,
    PUSH_REMOVE_TOKEN_PATH, PUSH_PAYLOAD_KEY, PUSH_USER_IDS_KEY,
    PUSH_TOKENS_KEY, PUSH_BADGE, PUSH_SOUND, PUSH_ALERT)
from .executor import Operation
from .utils import check_name, check_callbacks, check_collection


class PushTokenType(enum.Enum):
    ANDROID = 'android'
    IOS = 'ios'


class PushToken(namedtuple('PushToken', 'type token')):
    __slots__ = ()

    def __new__(cls, type, token):
        if not isinstance(type, PushTokenType):
            try:
                type = PushTokenType(type)
            except ValueError:
                raise ValueError("Invalid push token type %r" % (type,))

        token = check_name(token, 'token')
        return super(PushToken, cls).__new__(cls, type, token)

    @classmethod
    def android(cls, registration_id):
        return cls(PushTokenType.ANDROID, registration_id)

    @classmethod
    def ios(cls, device_token):
        return cls(PushTokenType.IOS, device_token)

    def to_json(self):
        return {'type': self.type.value, 'token': self.token}


class PushPayload(dict):
    """Notification contents. ``badge``, ``sound`` and ``alert`` are the
    well known keys; anything else is passed along as is."""

    @property
    def badge(self):
        return self.get(PUSH_BADGE)

    @badge.setter
    def badge(self, badge):
        if isinstance(badge, bool) or not isinstance(badge, int):
            raise TypeError("badge must be an integer")
        self[PUSH_BADGE] = badge

    @property
    def sound(self):
        return self.get(PUSH_SOUND)

    @sound.setter
    def sound(self, sound):
        self[PUSH_SOUND] = sound

    @property
    def alert(self):
        return self.get(PUSH_ALERT)

    @alert.setter
    def alert(self, alert):
        self[PUSH_ALERT] = alert


class PushPlatform(object):
    token_type = None

    def make_token(self, raw_token):
        return PushToken(self.token_type, raw_token)


class AndroidPushPlatform(PushPlatform):
    """Android devices register with their C2DM/GCM registration id."""
    token_type = PushTokenType.ANDROID


class IOSPushPlatform(PushPlatform):
    """iOS devices register with their APNs device token."""
    token_type = PushTokenType.IOS


def check_payload(payload):
    if payload is None:
        raise ValueError("payload is required")
    if not hasattr(payload, 'items'):
        raise TypeError("payload must be a mapping")
    return dict(payload)

def check_token(token):
    if not isinstance(token, PushToken):
        raise TypeError("token must be a PushToken")
    return token


class PushMixin(object):
    """Push notification operations; they are sent to the push host and
    signed with the API key."""

    def build_push_request(self, path):
        return self.builder.build(path, 'POST', subdomain=PUSH_SUBDOMAIN)

    def register_push(self, username, token, success, failure):
        check_name(username, 'username')
        check_token(token)
        check_callbacks(success, failure)

        data = {'userId': username, 'token': token.to_json()}
        return self.execute(self.build_push_request(PUSH_REGISTER_PATH),
            Operation(success, failure), body=data)

    def register_device(self, platform, username, raw_token, success,
        failure):
        return self.register_push(username, platform.make_token(raw_token),
            success, failure)

    def push(self, payload, success, failure, user_ids=None, tokens=None):
        """Send ``payload`` to either the devices of ``user_ids`` or to
        ``tokens``."""
        payload = check_payload(payload)
        if (user_ids is None) == (tokens is None):
            raise ValueError("Either user_ids or tokens is required")
        check_callbacks(success, failure)

        data = {PUSH_PAYLOAD_KEY: payload}
        if user_ids is not None:
            user_ids = [check_name(u, 'user id') for u in
                check_collection(user_ids, 'user_ids')]
            data[PUSH_USER_IDS_KEY] = user_ids
            path = PUSH_USERS_PATH
        else:
            tokens = [check_token(t) for t in
                check_collection(tokens, 'tokens')]
            data[PUSH_TOKENS_KEY] = [t.to_json() for t in tokens]
            path = PUSH_TOKENS_PATH

        return self.execute(self.build_push_request(path),
            Operation(success, failure), body=data)

    def broadcast(self, payload, success, failure):
        payload = check_payload(payload)
        check_callbacks(success, failure)

        return self.execute(self.build_push_request(PUSH_BROADCAST_PATH),
            Operation(success, failure), body={PUSH_PAYLOAD_KEY: payload})

    def get_tokens_for_users(self, user_ids, success, failure):
        user_ids = [check_name(u, 'user id') for u in
            check_collection(user_ids, 'user_ids')]
        check_callbacks(success, failure)

        return self.execute(self.build_push_request(PUSH_GET_TOKENS_PATH),
            Operation(success, failure), self.handle_object_result,
            body={PUSH_USER_IDS_KEY: user_ids})

    def remove_push_token(self, token, success, failure):
        check_token(token)
        check_callbacks(success, failure)

        return self.execute(self.build_push_request(PUSH_REMOVE_TOKEN_PATH),
            Operation(success, failure), body=token.to_json())
