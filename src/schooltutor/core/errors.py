"""Error taxonomy shared by stores, services and the web layer.

Generation failures live in ``schooltutor.llm.client`` and never leave
the content generator.
"""


class TutorError(Exception):
    """Base class for tutoring engine errors."""


class StudentNotFoundError(TutorError):
    """Raised when no (active) student matches the given id."""

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(f"Student '{student_id}' not found")


class SessionNotFoundError(TutorError):
    """Raised when a tutoring session is unknown or has expired."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' not found")


class InvalidRequestError(TutorError):
    """Raised when a required field is missing or malformed."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class DuplicateStudentError(TutorError):
    """Raised when registering a student whose name is already taken."""

    def __init__(self, name: str, existing_id: str):
        self.name = name
        self.existing_id = existing_id
        super().__init__(f"Student with name '{name}' already exists")


class StoreError(TutorError):
    """Raised when the underlying persistence layer fails."""


class TopicNotFoundError(TutorError):
    """Raised when a student has no curriculum topic with the given id."""

    def __init__(self, student_id: str, topic_id: str):
        self.student_id = student_id
        self.topic_id = topic_id
        super().__init__(f"Topic '{topic_id}' not found for student '{student_id}'")
