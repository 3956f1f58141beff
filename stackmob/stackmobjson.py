import calendar
import datetime
import json


class JSONEncoder(json.JSONEncoder):
    """Encodes dates as StackMob timestamps (milliseconds since the epoch)
    and anything with a ``to_json()`` method as what that returns."""

    def default(self, obj):
        if isinstance(obj, datetime.datetime):
            if obj.tzinfo is not None:
                obj = obj.astimezone(datetime.timezone.utc)
            seconds = calendar.timegm(obj.timetuple())
            return seconds * 1000 + obj.microsecond // 1000
        elif isinstance(obj, datetime.date):
            return calendar.timegm(obj.timetuple()) * 1000
        elif isinstance(obj, (set, frozenset)):
            return list(obj)
        elif hasattr(obj, 'to_json'):
            return obj.to_json()

        return super(JSONEncoder, self).default(obj)


class JSONDecoder(json.JSONDecoder):
    def decode(self, s, **kwargs):
        if isinstance(s, (bytes, bytearray)):
            s = s.decode('utf-8-sig')

        # DELETE and some PUT responses have no body
        if not s.strip():
            return None

        return super(JSONDecoder, self).decode(s, **kwargs)


def load(s):
    return JSONDecoder().decode(s)

def dump(obj):
    return JSONEncoder().encode(obj)

def load_from(stream):
    return load(stream.read())

def dump_to(stream, obj):
    stream.write(dump(obj).encode('utf-8'))
