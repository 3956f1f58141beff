API_SCHEME = 'https'
API_HOST = 'mob1.stackmob.com'
API_SUBDOMAIN = 'api'
PUSH_SUBDOMAIN = 'push'
API_ACCEPTS = 'application/vnd.stackmob+json; version=%d'

API_LISTAPI_PATH = 'listapi'
API_LOGIN_PATH = 'login'
API_LOGOUT_PATH = 'logout'
API_FORGOT_PASSWORD_PATH = 'forgotPassword'

API_FACEBOOK_CREATE_PATH = 'createUserWithFacebook'
API_FACEBOOK_LOGIN_PATH = 'facebookLogin'
API_FACEBOOK_LINK_PATH = 'linkUserWithFacebook'
API_FACEBOOK_INFO_PATH = 'getFacebookUserInfo'
API_FACEBOOK_POST_PATH = 'postFacebookMessage'

API_TWITTER_CREATE_PATH = 'createUserWithTwitter'
API_TWITTER_LOGIN_PATH = 'twitterLogin'
API_TWITTER_LINK_PATH = 'linkUserWithTwitter'
API_TWITTER_INFO_PATH = 'getTwitterUserInfo'
API_TWITTER_POST_PATH = 'twitterStatusUpdate'

PUSH_REGISTER_PATH = 'register_device_token_universal'
PUSH_USERS_PATH = 'push_users_universal'
PUSH_TOKENS_PATH = 'push_tokens_universal'
PUSH_BROADCAST_PATH = 'push_broadcast_universal'
PUSH_GET_TOKENS_PATH = 'get_tokens_for_users_universal'
PUSH_REMOVE_TOKEN_PATH = 'remove_token_universal'

HEADER_ACCEPT = 'Accept'
HEADER_AUTHORIZATION = 'Authorization'
HEADER_CONTENT_TYPE = 'Content-Type'
HEADER_CASCADE_DELETE = 'X-StackMob-CascadeDelete'
HEADER_SELECT = 'X-StackMob-Select'
HEADER_ORDER_BY = 'X-StackMob-OrderBy'
HEADER_RANGE = 'Range'

MIME_JSON = 'application/json'

FACEBOOK_TOKEN_PARAM = 'fb_at'
FACEBOOK_INFO_KEY = 'fb'
TWITTER_TOKEN_PARAM = 'tw_tk'
TWITTER_SECRET_PARAM = 'tw_ts'
TWITTER_STATUS_PARAM = 'tw_st'
TWITTER_INFO_KEY = 'tw'

RELATED_SUCCEEDED_KEY = 'succeeded'
SCHEMA_PROPERTIES_KEY = 'properties'
SCHEMA_IDENTITY_KEY = 'identity'
SCHEMA_REF_KEY = '$ref'

PUSH_PAYLOAD_KEY = 'kvPairs'
PUSH_USER_IDS_KEY = 'userIds'
PUSH_TOKENS_KEY = 'tokens'
PUSH_BADGE = 'badge'
PUSH_SOUND = 'sound'
PUSH_ALERT = 'alert'

PRIMITIVE_TYPES = (str, int, float, bool)

DEFAULT_USER_OBJECT_NAME = 'user'
SESSION_TIMEOUT = 30 * 60
REQUEST_TIMEOUT = None

APPLICATIONS = {}
APPLICATION_NAME = None
