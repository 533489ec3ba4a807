class RaydarError(Exception):
    """Base class for all Raydar domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except RaydarError`` clause can catch any domain error.
    The assignment core itself never raises these; they belong to the
    request layer around it.
    """

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(detail)


class InvalidAssignmentInputError(RaydarError):
    """Raised when a request carries leads/users the engine cannot use."""

    def __init__(self, detail: str = "Invalid assignment input"):
        super().__init__(detail)


class CronUnauthorizedError(RaydarError):
    """Raised when the cron trigger lacks the shared secret or platform header."""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(detail)


class CronRecentlyRunError(RaydarError):
    """Raised when a non-dry cron run is requested too soon after the last one."""

    def __init__(self, detail: str = "Daily cron already ran recently"):
        super().__init__(detail)
