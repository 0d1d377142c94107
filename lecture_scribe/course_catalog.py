"""Persisted list of course names that transcripts are filed under."""

import json
import logging
from pathlib import Path
from typing import List

from .errors import ErrorCategory, InvalidOperationError, RecordNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_COURSES = [
    "印度佛教史",
    "知識圖譜導論",
    "佛教數位典藏與佛學研究",
    "教育實踐與生命反應",
    "禪修專題",
    "初期大乘佛教的起源與開展",
]


class CourseCatalog:
    """Course names stored as a JSON array; falls back to DEFAULT_COURSES."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._courses = self._load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def courses(self) -> List[str]:
        return list(self._courses)

    @property
    def default_course(self) -> str:
        return self._courses[0]

    def __contains__(self, name: object) -> bool:
        return name in self._courses

    def add(self, name: str) -> List[str]:
        name = name.strip()
        if not name:
            raise InvalidOperationError(
                "Course name cannot be empty",
                category=ErrorCategory.USER_INPUT
            )
        if name in self._courses:
            raise InvalidOperationError(
                f"Course already exists: {name}",
                category=ErrorCategory.USER_INPUT
            )
        self._courses.append(name)
        self._save()
        logger.info(f"Added course '{name}'")
        return self.courses

    def remove(self, name: str) -> List[str]:
        if name not in self._courses:
            raise RecordNotFoundError(name, operation="remove_course",
                                      user_message=f"Course '{name}' does not exist.")
        if len(self._courses) == 1:
            raise InvalidOperationError(
                "Cannot remove the last course",
                user_message="At least one course must remain."
            )
        self._courses.remove(name)
        self._save()
        logger.info(f"Removed course '{name}'")
        return self.courses

    def _load(self) -> List[str]:
        if not self._path.exists():
            return list(DEFAULT_COURSES)

        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not read course list {self._path}, using defaults: {e}")
            return list(DEFAULT_COURSES)

        if not isinstance(payload, list):
            logger.warning(f"Course list {self._path} is not a JSON array, using defaults")
            return list(DEFAULT_COURSES)

        courses = [str(c).strip() for c in payload if str(c).strip()]
        return courses or list(DEFAULT_COURSES)

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._courses, ensure_ascii=False, indent=2), encoding="utf-8")
