"""Top level repl-sessions exceptions"""


class ReplSessionsError(Exception):
    """Base for all repl-sessions errors"""


class UserResolvableError(ReplSessionsError):
    """An error which the user can probably solve"""

    def __init__(self, msg, suggested_fix):
        super().__init__(msg)
        self.msg = msg
        self.suggested_fix = suggested_fix

    def __str__(self):
        if type(self) == UserResolvableError:
            return f"{self.msg}\n\n{self.suggested_fix}"
        else:
            return f"{self.__doc__}: {self.msg}\n\n{self.suggested_fix}"


class ConfigError(UserResolvableError):
    """Error loading configuration"""


class NoSessionError(UserResolvableError):
    """No live session"""


class NoFileError(UserResolvableError):
    """File not available"""


class StartupError(ReplSessionsError):
    """A session could not be started"""

    def __init__(self, identity, msg, output=""):
        super().__init__(msg)
        self.identity = identity
        self.msg = msg
        self.output = output

    def __str__(self):
        text = f"{self.identity}: {self.msg}"
        if self.output:
            text += f"\n\n{self.output.rstrip()}"
        return text


class NoPromptError(StartupError):
    """No prompt was seen before the handshake timed out"""


class UnknownImplementationError(StartupError):
    """No binary or prompt is known for an implementation"""


class TransportError(ReplSessionsError):
    """The session process died or its pipe broke mid-request"""


class RequestInterrupted(ReplSessionsError):
    """An outstanding request was discarded by a session reset"""
