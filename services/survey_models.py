from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class Survey:
    """A named, ordered list of questions scoped to one server.

    ``response_channel`` and ``message`` are stored as strings (empty until
    configured) to match the on-disk JSON record.
    """

    name: str
    response_channel: str = ""
    message: str = ""
    questions: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_usable(self) -> bool:
        """A survey can only be started once fully configured."""
        return bool(self.response_channel and self.message and self.questions)

    def with_channel(self, channel_id: Any) -> "Survey":
        return replace(self, response_channel=str(channel_id))

    def with_message(self, message_id: Any) -> "Survey":
        return replace(self, message=str(message_id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response_channel": self.response_channel,
            "message": self.message,
            "questions": list(self.questions),
        }

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "Survey":
        """Build a survey from its JSON record.

        Raises:
            ValueError: if the record is not an object or its questions are
                not a list of strings
        """
        if not isinstance(data, dict):
            raise ValueError(f"survey {name!r} is not an object")
        questions = data.get("questions", [])
        if not isinstance(questions, list) or not all(isinstance(q, str) for q in questions):
            raise ValueError(f"survey {name!r} has invalid questions")
        return cls(
            name=name,
            response_channel=str(data.get("response_channel", "") or ""),
            message=str(data.get("message", "") or ""),
            questions=tuple(questions),
        )


# Mapping of survey name to survey, one per server
SurveySet = Dict[str, Survey]


def survey_set_from_dict(data: Dict[str, Any]) -> SurveySet:
    if not isinstance(data, dict):
        raise ValueError("survey data must be an object")
    return {name: Survey.from_dict(name, record) for name, record in data.items()}


def survey_set_to_dict(surveys: SurveySet) -> Dict[str, Any]:
    return {name: survey.to_dict() for name, survey in surveys.items()}
