"""
Content loader for theme JSON files and their normalization into a ContentBundle.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ContentLoadError
from .models import (
    AnswerItem,
    AnswerPool,
    ContentBundle,
    Level,
    MODE_ALIASES,
    ModeSettings,
    Question,
    QuestionSet,
    ThemeMessages,
)


class ContentLoader:
    """Loads theme folders and normalizes their JSON into ContentBundle objects."""

    # Each theme file may use the plain or the "-v2" name
    CONFIG_FILES = ("config.json", "config-v2.json")
    QUESTION_FILES = ("questions.json", "questions-v2.json")
    THEME_FILES = ("theme.json", "theme-v2.json")

    def __init__(self, themes_directory: str = "./themes/"):
        """
        Initialize ContentLoader with the themes directory path.

        Args:
            themes_directory: Path to directory containing one folder per theme
        """
        self.themes_directory = Path(themes_directory)
        self.loaded_themes: Dict[str, ContentBundle] = {}
        self.logger = logging.getLogger(__name__)

    def list_themes(self) -> List[str]:
        """
        List theme folders that contain both a config and a questions file.

        Returns:
            Sorted list of theme ids
        """
        if not self.themes_directory.is_dir():
            self.logger.warning(f"Themes directory not found: {self.themes_directory}")
            return []

        themes = []
        for candidate in self.themes_directory.iterdir():
            if not candidate.is_dir():
                continue
            if self._find_file(candidate, self.CONFIG_FILES) and self._find_file(candidate, self.QUESTION_FILES):
                themes.append(candidate.name)
        return sorted(themes)

    def load_content(self, theme_id: str, reload: bool = False) -> ContentBundle:
        """
        Load and normalize a theme.

        Args:
            theme_id: Name of the theme folder
            reload: Read the files again even if the theme is cached

        Returns:
            Normalized ContentBundle

        Raises:
            ContentLoadError: If files are missing, unreadable or structurally invalid
        """
        if not reload and theme_id in self.loaded_themes:
            return self.loaded_themes[theme_id]

        theme_dir = self.themes_directory / theme_id
        if not theme_dir.is_dir():
            raise ContentLoadError(theme_id, f"theme directory not found: {theme_dir}")

        config_path = self._find_file(theme_dir, self.CONFIG_FILES)
        questions_path = self._find_file(theme_dir, self.QUESTION_FILES)
        if config_path is None:
            raise ContentLoadError(theme_id, "missing config.json")
        if questions_path is None:
            raise ContentLoadError(theme_id, "missing questions.json")

        config = self._load_single_file(theme_id, config_path)
        questions = self._load_single_file(theme_id, questions_path)
        theme_path = self._find_file(theme_dir, self.THEME_FILES)
        theme = self._load_single_file(theme_id, theme_path) if theme_path else {}

        self.validate_theme_structure(theme_id, config, questions, theme)
        bundle = self.normalize(theme_id, config, questions, theme)

        self.loaded_themes[theme_id] = bundle
        self.logger.info(
            f"Loaded theme '{theme_id}': {len(bundle.levels)} levels, "
            f"{len(bundle.question_sets)} question sets, {len(bundle.answer_pools)} answer pools"
        )
        return bundle

    def _find_file(self, directory: Path, names: Tuple[str, ...]) -> Optional[Path]:
        for name in names:
            path = directory / name
            if path.is_file():
                return path
        return None

    def _load_single_file(self, theme_id: str, file_path: Path) -> Dict[str, Any]:
        """
        Load and parse a single JSON file.

        Args:
            theme_id: Theme being loaded, for error messages
            file_path: Path to the JSON file

        Returns:
            Parsed JSON object

        Raises:
            ContentLoadError: If the file cannot be read or parsed
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {file_path}: {e}")
            raise ContentLoadError(theme_id, f"invalid JSON in {file_path.name}: {e}") from e
        except OSError as e:
            self.logger.error(f"Failed to read theme file {file_path}: {e}")
            raise ContentLoadError(theme_id, f"cannot read {file_path.name}: {e}") from e

        if not isinstance(data, dict):
            raise ContentLoadError(theme_id, f"{file_path.name} must contain a JSON object")
        return data

    def validate_theme_structure(
        self,
        theme_id: str,
        config: Dict[str, Any],
        questions: Dict[str, Any],
        theme: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Check the keys every theme must provide.

        Expected structure:
        config:    {"modes": {...}, "levels": [{"id", "questionSet"}, ...]}
        questions: {"answerPools": {...}, "questionSets": {...}}
        theme:     optional, any object

        Raises:
            ContentLoadError: On the first structural problem found
        """
        if theme is not None and not isinstance(theme, dict):
            raise ContentLoadError(theme_id, "theme data must be an object")

        if not isinstance(config.get("modes"), dict):
            raise ContentLoadError(theme_id, "config is missing 'modes'")

        levels = config.get("levels")
        if not isinstance(levels, list) or not levels:
            raise ContentLoadError(theme_id, "config is missing 'levels'")

        for i, level in enumerate(levels):
            if not isinstance(level, dict) or "id" not in level:
                raise ContentLoadError(theme_id, f"level {i} must be an object with an 'id'")

        if not isinstance(questions.get("answerPools"), dict):
            raise ContentLoadError(theme_id, "questions file is missing 'answerPools'")

        if not isinstance(questions.get("questionSets"), dict):
            raise ContentLoadError(theme_id, "questions file is missing 'questionSets'")

        for pool_id, pool in questions["answerPools"].items():
            if not isinstance(pool, dict):
                raise ContentLoadError(theme_id, f"answer pool '{pool_id}' must be an object")

        for set_id, question_set in questions["questionSets"].items():
            if not isinstance(question_set, (dict, list)):
                raise ContentLoadError(theme_id, f"question set '{set_id}' must be an object or array")

    def normalize(
        self,
        theme_id: str,
        config: Dict[str, Any],
        questions: Dict[str, Any],
        theme: Optional[Dict[str, Any]] = None
    ) -> ContentBundle:
        """
        Normalize raw theme JSON into a ContentBundle.

        Args:
            theme_id: Theme name
            config: Parsed config file (levels and modes)
            questions: Parsed questions file (answer pools and question sets)
            theme: Parsed theme file (messages and metadata), optional

        Returns:
            ContentBundle with indexed answer pools
        """
        theme = theme or {}
        meta = theme.get("meta") or theme.get("metadata") or {}

        return ContentBundle(
            theme_id=theme_id,
            name=meta.get("name", theme_id),
            levels=self._parse_levels(config.get("levels", [])),
            modes=self._parse_modes(config.get("modes", {})),
            question_sets=self._parse_question_sets(questions.get("questionSets", {})),
            answer_pools=self._parse_answer_pools(questions.get("answerPools", {})),
            messages=self._parse_messages(theme.get("messages") or {}),
        )

    def _parse_levels(self, raw_levels: List[Dict[str, Any]]) -> Dict[str, Level]:
        levels = {}
        for raw in raw_levels:
            target = raw.get("targetScore")
            level = Level(
                id=str(raw["id"]),
                question_set_id=str(raw.get("questionSet") or raw.get("questionSetId") or ""),
                name=raw.get("name", str(raw["id"])),
                target_score=int(target) if target is not None else None,
            )
            levels[level.id] = level
        return levels

    def _parse_modes(self, raw_modes: Dict[str, Any]) -> Dict[str, ModeSettings]:
        modes = {}
        for mode_id, raw in raw_modes.items():
            raw = raw or {}
            max_questions = raw.get("maxQuestions")
            settings = ModeSettings(
                time_limit=int(raw.get("timeLimit") or 30),
                first_bonus=int(raw.get("firstBonus") or 2),
                second_bonus=int(raw.get("secondBonus") or 1),
                target_score=int(raw.get("targetScore") or 0),
                max_questions=int(max_questions) if max_questions else None,
            )
            canonical = MODE_ALIASES.get(mode_id)
            if canonical is not None:
                self.logger.warning(f"Mode '{mode_id}' is deprecated, use '{canonical.value}'")
                modes.setdefault(canonical.value, settings)
            else:
                modes[mode_id] = settings
        return modes

    def _parse_answer_pools(self, raw_pools: Dict[str, Any]) -> Dict[str, AnswerPool]:
        pools = {}
        for pool_id, raw in raw_pools.items():
            content_type = raw.get("type", "text")
            category = raw.get("category", "default")
            items = tuple(
                AnswerItem(
                    id=str(item["id"]),
                    content=item.get("content") or item.get("text") or item.get("value") or "",
                    content_type=raw.get("type") or item.get("type") or "text",
                    category=category,
                )
                for item in raw.get("items", [])
                if isinstance(item, dict) and "id" in item
            )
            pools[pool_id] = AnswerPool(
                id=pool_id,
                name=raw.get("name", pool_id),
                category=category,
                content_type=content_type,
                items=items,
            )
        return pools

    def _parse_question_sets(self, raw_sets: Dict[str, Any]) -> Dict[str, QuestionSet]:
        sets = {}
        for set_id, raw in raw_sets.items():
            if isinstance(raw, list):
                raw_questions, set_pool_ids, name = raw, [], set_id
            else:
                raw_questions = raw.get("questions") or []
                set_pool_ids = raw.get("answerPoolIds") or []
                name = raw.get("name", set_id)

            questions = []
            for idx, raw_q in enumerate(raw_questions):
                if not isinstance(raw_q, dict):
                    self.logger.warning(f"Skipping malformed question {idx} in set '{set_id}'")
                    continue
                nested = raw_q.get("question") if isinstance(raw_q.get("question"), dict) else {}
                questions.append(Question(
                    id=str(raw_q.get("id") or f"{set_id}_{idx + 1}"),
                    content_type=raw_q.get("type") or nested.get("type") or "text",
                    content=raw_q.get("content") or nested.get("value") or nested.get("content") or "",
                    correct_answer_id=str(
                        raw_q.get("correctAnswer") or raw_q.get("correctAnswerId") or raw_q.get("aKey") or ""
                    ),
                    answer_pool_ids=tuple(raw_q.get("answerPoolIds") or ()),
                ))

            sets[set_id] = QuestionSet(
                id=set_id,
                name=name,
                answer_pool_ids=tuple(set_pool_ids),
                questions=tuple(questions),
            )
        return sets

    def _parse_messages(self, raw: Dict[str, Any]) -> ThemeMessages:
        defaults = ThemeMessages()
        warning = raw.get("warning") or {}
        combo = raw.get("combo") or {}
        penalty = raw.get("penalty") or {}

        def message_list(key: str, fallback: Tuple[str, ...]) -> Tuple[str, ...]:
            value = raw.get(key)
            if isinstance(value, str):
                return (value,)
            if isinstance(value, list) and value:
                return tuple(str(v) for v in value)
            return fallback

        return ThemeMessages(
            warning_time=int(warning.get("triggerTime") or defaults.warning_time),
            warning_text=warning.get("text", defaults.warning_text),
            combo_threshold=int(combo.get("minCount") or defaults.combo_threshold),
            combo_text=combo.get("text", defaults.combo_text),
            penalty_threshold=int(penalty.get("threshold") or defaults.penalty_threshold),
            penalty_deduction=int(penalty.get("scoreDeduction") or defaults.penalty_deduction),
            penalty_text=penalty.get("text", defaults.penalty_text),
            win=message_list("win", defaults.win),
            lose=message_list("lose", defaults.lose),
            draw=message_list("draw", defaults.draw),
        )
