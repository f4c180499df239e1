"""Error taxonomy shared by every component.

Each error carries a stable ``code`` so the HTTP layer and the tool protocol
can report it without inspecting the exception type.
"""


class KoroError(Exception):
    """Base class for all errors raised by the core."""

    code = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class StorageUnavailable(KoroError):
    """Memory or log I/O failed."""

    code = "storage_unavailable"


class ModelUnavailable(KoroError):
    """The upstream model call failed or timed out."""

    code = "model_unavailable"


class ParseFailure(KoroError):
    """A structured model response could not be parsed unambiguously."""

    code = "parse_failure"


class SkillNotFound(KoroError):
    """The requested skill is not in the library."""

    code = "skill_not_found"

    def __init__(self, name: str):
        super().__init__(f"Skill not found: {name}")
        self.name = name


class ActionFailed(KoroError):
    """A step of an action plan failed."""

    code = "action_failed"


class Busy(KoroError):
    """The memory lease could not be acquired in time."""

    code = "busy"


class InvalidRequest(KoroError):
    """The caller supplied a malformed argument."""

    code = "invalid_request"


class ToolNotFound(KoroError):
    """The tool protocol was asked for an unknown operation."""

    code = "tool_not_found"
