"""
Error taxonomy shared by the services and the HTTP layer.
"""


class QuizError(Exception):
    status_code = 500
    error_type = "quiz_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QuizError):
    """User-correctable input problem; never retried automatically."""
    status_code = 400
    error_type = "validation_error"


class UnknownSubject(ValidationError):
    def __init__(self, subject: str):
        super().__init__(f"Unknown subject: {subject}")
        self.subject = subject


class NoQuizAvailable(QuizError):
    status_code = 404
    error_type = "no_quiz_available"

    def __init__(self, subject: str):
        super().__init__(f"No quiz available for {subject} today")
        self.subject = subject


class QuestionNotFound(QuizError):
    status_code = 404
    error_type = "not_found"

    def __init__(self, question_id: str):
        super().__init__(f"Question {question_id} not found")
        self.question_id = question_id


class StoreUnavailable(QuizError):
    status_code = 503
    error_type = "store_unavailable"
