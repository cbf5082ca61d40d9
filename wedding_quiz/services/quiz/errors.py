"""Error taxonomy for the quiz engine.

Services raise these; the HTTP layer turns them into
``{"success": false, "error": ...}`` responses with ``status_code``.
"""


class QuizError(Exception):
    status_code = 400
    code = 'quiz_error'
    retryable = False

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {
            'success': False,
            'error': self.message,
            'code': self.code,
            'retryable': self.retryable,
        }
        if self.details:
            payload['details'] = self.details
        return payload


class InvalidRequest(QuizError):
    status_code = 400
    code = 'invalid_request'


class Unauthorized(QuizError):
    status_code = 403
    code = 'unauthorized'


class NotFound(QuizError):
    status_code = 404
    code = 'not_found'


class InvalidTransition(QuizError):
    status_code = 409
    code = 'invalid_transition'


class ConcurrentModification(InvalidTransition):
    code = 'concurrent_modification'


class StaleSubmission(QuizError):
    status_code = 409
    code = 'question_closed'


class DuplicateSubmission(QuizError):
    status_code = 409
    code = 'already_answered'


class StoreFailure(QuizError):
    status_code = 503
    code = 'store_failure'
    retryable = True


class AnswersNotOpen(InvalidTransition):
    code = 'answers_not_open'
