import logging

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class SuspiciousInputError(ValueError):
    pass


class InputValidator:
    """
    Screens free text from users before it is stored or forwarded to the AI assistant.

    Every check is objective: field length, share of control characters, number of
    markdown section headers and code fences, and runs of punctuation.
    """

    MAX_LENGTHS = {
        "query": 1000,
        "pc_config": 3000,
        "post_title": 150,
        "post_content": 5000,
        "comment": 2000,
        "build_name": 100,
        "student_name": 100,
        "build_description": 2000,
        "component_name": 200,
    }
    DEFAULT_MAX_LENGTH = 2000

    # Fields whose text is embedded in AI prompts
    PROMPT_FIELDS = frozenset({"query", "pc_config"})

    MAX_MARKDOWN_HEADERS = 3
    MAX_CODE_FENCES = 2
    MAX_CONTROL_CHAR_PERCENTAGE = 5
    MAX_CONSECUTIVE_SPECIAL_CHARS = 10

    @classmethod
    def validate_component_query(cls, query: str) -> None:
        """:raises SuspiciousInputError: if the query fails a check"""
        cls.validate_field(query, "query")

    @classmethod
    def validate_config_analysis(cls, pc_config: str) -> None:
        """:raises SuspiciousInputError: if the configuration text fails a check"""
        cls.validate_field(pc_config, "pc_config")

    @classmethod
    def validate_post(cls, title: str, content: str) -> None:
        cls.validate_field(title, "post_title")
        cls.validate_field(content, "post_content")

    @classmethod
    def validate_comment(cls, text: str) -> None:
        cls.validate_field(text, "comment")

    @classmethod
    def validate_build(
        cls,
        build_name: str,
        student_name: str,
        description: str,
        component_names: list[str],
    ) -> None:
        cls.validate_field(build_name, "build_name")
        cls.validate_field(student_name, "student_name")
        cls.validate_field(description, "build_description")
        for name in component_names:
            cls.validate_field(name, "component_name")

    @classmethod
    def validate_field(cls, text: str, field_name: str) -> None:
        """
        Runs every check against one field.

        :param text: the user's text
        :param field_name: key into MAX_LENGTHS; unknown names use DEFAULT_MAX_LENGTH
        :raises SuspiciousInputError: on the first failing check
        """
        if not isinstance(text, str):
            raise SuspiciousInputError(f"{field_name} must be a string")

        max_length = cls.MAX_LENGTHS.get(field_name, cls.DEFAULT_MAX_LENGTH)
        if len(text) > max_length:
            _LOGGER.warning(f"Length violation: {field_name} is {len(text)} chars (max {max_length})")
            raise SuspiciousInputError(f"{field_name} exceeds maximum length of {max_length} characters")

        # Required-ness is the request model's job
        if not text:
            return

        cls._check_control_characters(text, field_name)
        cls._check_markdown_structure(text, field_name)
        cls._check_special_character_runs(text, field_name)

    @classmethod
    def _check_control_characters(cls, text: str, field_name: str) -> None:
        control_chars = sum(1 for c in text if ord(c) < 32 and c not in "\n\r\t")
        if control_chars == 0:
            return
        control_percentage = (control_chars / len(text)) * 100
        if control_percentage > cls.MAX_CONTROL_CHAR_PERCENTAGE:
            _LOGGER.warning(f"Excessive control characters in {field_name}: {control_percentage:.1f}%")
            raise SuspiciousInputError(f"{field_name} contains too many control characters")

    @classmethod
    def _check_markdown_structure(cls, text: str, field_name: str) -> None:
        header_count = text.count("###")
        if header_count > cls.MAX_MARKDOWN_HEADERS:
            _LOGGER.warning(f"Excessive headers in {field_name}: {header_count} (max {cls.MAX_MARKDOWN_HEADERS})")
            raise SuspiciousInputError(f"{field_name} contains too many section headers")

        if field_name in cls.PROMPT_FIELDS:
            fence_count = text.count("```")
            if fence_count > cls.MAX_CODE_FENCES:
                _LOGGER.warning(f"Excessive code fences in {field_name}: {fence_count} (max {cls.MAX_CODE_FENCES})")
                raise SuspiciousInputError(f"{field_name} contains too many code block markers")

    @classmethod
    def _check_special_character_runs(cls, text: str, field_name: str) -> None:
        longest_run = 0
        current_run = 0
        for char in text:
            if char.isalnum() or char.isspace():
                current_run = 0
                continue
            current_run += 1
            longest_run = max(longest_run, current_run)

        if longest_run > cls.MAX_CONSECUTIVE_SPECIAL_CHARS:
            _LOGGER.warning(f"Excessive consecutive special chars in {field_name}: {longest_run}")
            raise SuspiciousInputError(f"{field_name} contains unusual character sequences")

    @staticmethod
    def truncate_for_logging(text: str, max_length: int = 100) -> str:
        return text if len(text) <= max_length else text[:max_length] + "..."
