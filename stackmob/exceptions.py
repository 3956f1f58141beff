"""
Exceptions

"""

class StackMobException(Exception):
    """Base Exception class"""

    def __init__(self, *args, **kwargs):
        super(StackMobException, self).__init__(*args)
        self.code = kwargs.pop('code', None)
        self.reason = kwargs.pop('reason', None)
        self.response = kwargs.pop('response', None)


class SchemaException(StackMobException):
    """The schema does not describe the requested type or field"""
