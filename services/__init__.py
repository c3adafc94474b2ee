from services.session import SessionRegistry
from services.survey import SurveyEngine, SurveySession, SessionState, SessionOutcome, Transcript
from services.survey_models import Survey
from services.survey_repository import SurveyRepository, SurveyExistsError, UnknownSurveyError
from services.survey_storage import JsonSurveyStorage, StorageError

__all__ = [
    'SessionRegistry',
    'SurveyEngine',
    'SurveySession',
    'SessionState',
    'SessionOutcome',
    'Transcript',
    'Survey',
    'SurveyRepository',
    'SurveyExistsError',
    'UnknownSurveyError',
    'JsonSurveyStorage',
    'StorageError',
]
