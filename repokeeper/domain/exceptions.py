class RepokeeperException(Exception):
    """Base exception for all repokeeper errors."""
    pass

class ConfigParseError(RepokeeperException, ValueError):
    """Raised when a configuration document is not well-formed."""
    pass

class MissingFieldError(RepokeeperException):
    """Raised when a required configuration field or section is absent."""
    def __init__(self, field: str, message: str = "Required configuration field is missing."):
        self.field = field
        super().__init__(f"{message} Field: {field}")

class ConfigFormatError(RepokeeperException, ValueError):
    """Raised when a configuration value is present but invalid."""
    pass

class IllegalStateError(RepokeeperException):
    """Raised when a configuration cannot provide a requested value."""
    pass

class StorageNotConfiguredError(IllegalStateError):
    """Raised when repository storage cannot be resolved, whatever the cause."""
    def __init__(self, message: str = "Storage is not configured"):
        super().__init__(message)

class StorageException(RepokeeperException):
    """Raised when a storage backend cannot be built or fails."""
    pass

class ArtifactNotFoundException(RepokeeperException):
    """Raised when a key is not present in storage."""
    def __init__(self, key, message: str = "Artifact not found."):
        self.key = key
        super().__init__(f"{message} Key: {key}")

class RemoteExhaustedException(ArtifactNotFoundException):
    """Raised when no proxy remote could provide the requested artifact."""
    def __init__(self, key):
        super().__init__(key, message="Artifact not found on any remote.")

class RemoteFetchException(RepokeeperException):
    """Raised when a single remote retrieval attempt fails."""
    pass

class RepositoryNotFoundException(RepokeeperException):
    """Raised when no configuration document exists for a repository."""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Repository is not configured: {name}")
