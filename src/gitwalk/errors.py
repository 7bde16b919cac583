"""Error types raised while walking repositories and writing facts."""


class GitwalkError(Exception):
    """Base error for gitwalk."""

    pass


class WalkRootError(GitwalkError):
    """The walk root is missing or is not a directory."""

    def __init__(self, path: str, reason: str = "does not exist") -> None:
        super().__init__(f"Walk root {reason}: {path}")
        self.path = path


class RepositoryOpenError(GitwalkError):
    """A directory could not be opened as a git repository."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(message)
        self.path = path


class NotARepositoryError(RepositoryOpenError):
    """Path is not a git repository."""

    def __init__(self, path: str) -> None:
        super().__init__(path, f"Not a git repository: {path}")


class RepositoryPermissionError(RepositoryOpenError):
    """Path looks like a repository but cannot be read."""

    def __init__(self, path: str, detail: str = "") -> None:
        message = f"Permission denied opening repository: {path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(path, message)


class CorruptRepositoryError(RepositoryOpenError):
    """Path has git metadata that git refuses to open."""

    def __init__(self, path: str, detail: str = "") -> None:
        message = f"Corrupted repository: {path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(path, message)


class GitCommandError(GitwalkError):
    """A git invocation against an opened repository failed."""

    def __init__(self, args: list[str], stderr: str) -> None:
        super().__init__(f"git {' '.join(args)} failed: {stderr}")
        self.args_list = args
        self.stderr = stderr


class StoreError(GitwalkError):
    """The fact store backend failed to apply or read a fact."""

    pass


class SchemaError(StoreError):
    """A written value does not match the declared schema."""

    pass
