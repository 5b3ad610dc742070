"""
Error types for the spoiler pipeline.

Stage errors end up on the movie record (processing_error or a warning);
command errors are raised synchronously to the caller.
"""


class SpoilrError(Exception):
    """Base exception for all spoilr failures."""
    pass


# -- Per-movie stage failures -------------------------------------------------

class MovieStageError(SpoilrError):
    """A pipeline stage failed for one movie."""
    pass


class ValidationError(MovieStageError):
    """The source file is missing, not a regular file, or unreadable."""
    pass


class AnalysisError(MovieStageError):
    """The media probe could not read the file."""
    pass


class GenerationError(MovieStageError):
    """Screenshot or contact sheet generation failed."""
    pass


class UploadError(MovieStageError):
    """An image host rejected or failed an upload."""

    def __init__(self, host: str, reason: str):
        self.host = host
        self.reason = reason
        super().__init__(f"{host} upload failed: {reason}")


class StageCancelled(SpoilrError):
    """Raised inside a movie task once cancellation has been observed."""
    pass


# -- Command failures ---------------------------------------------------------

class UnknownIDError(SpoilrError):

    def __init__(self, movie_id: str):
        self.movie_id = movie_id
        super().__init__(f"Movie not found: {movie_id}")


class UnknownPresetError(SpoilrError):

    def __init__(self, preset_id: str):
        self.preset_id = preset_id
        super().__init__(f"Template preset not found: {preset_id}")


class BuiltinPresetError(SpoilrError):

    def __init__(self, preset_id: str):
        self.preset_id = preset_id
        super().__init__(f"Built-in preset cannot be deleted: {preset_id}")


class AlreadyProcessingError(SpoilrError):

    def __init__(self):
        super().__init__("Processing already in progress")


class NothingToProcessError(SpoilrError):

    def __init__(self):
        super().__init__("No pending movies to process")


class MovieBusyError(SpoilrError):
    """The movie is mid-flight and cannot be removed yet."""

    def __init__(self, movie_id: str, state: str):
        self.movie_id = movie_id
        self.state = state
        super().__init__(f"Movie {movie_id} is being processed ({state})")
