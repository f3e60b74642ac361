class Error(Exception):
    pass


class InvalidSignatureError(Error):
    pass


class HiveReadError(Error):
    pass


class MalformedHiveError(Error):
    pass


class BadArgumentError(Error):
    pass
