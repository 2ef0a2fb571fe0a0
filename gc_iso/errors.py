"""Errors raised while writing disc images and host trees."""


class GcIsoError(Exception):
    """Base class for layout and export failures."""


class MissingSpecialEntry(GcIsoError):
    """A required reserved file or directory is absent from the virtual tree."""

    def __init__(self, container_name: str, expected_name: str):
        self.container_name = container_name
        self.expected_name = expected_name
        super().__init__(f"The {container_name} folder contains no {expected_name}")


class IoFailure(GcIsoError):
    """An I/O operation on a sink or host path failed.

    Raised from the underlying OSError, which stays available as __cause__.
    """

    def __init__(self, path: str, operation: str):
        self.path = path
        self.operation = operation
        super().__init__(f"Couldn't {operation} \"{path}\"")
