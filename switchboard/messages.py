# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

_MESSAGES = {
    "ru": {
        "dialog.welcome_text": "Привет! Чем могу помочь?",
        "dialog.help_text": "Скажите команду, и я постараюсь её выполнить.",
        "dialog.callback_error": "Произошла ошибка. Попробуйте ещё раз.",
        "dialog.not_understood": "Извините, я вас не поняла.",
        "console.prompt": "> ",
        "console.result": "[{command}] {text}",
        "console.no_match": "[-] нет совпадений",
    },
    "en": {
        "dialog.welcome_text": "Hello! How can I help?",
        "dialog.help_text": "Say a command and I will try to run it.",
        "dialog.callback_error": "An error occurred. Please try again.",
        "dialog.not_understood": "Sorry, I did not understand.",
        "console.prompt": "> ",
        "console.result": "[{command}] {text}",
        "console.no_match": "[-] no match",
    },
}

# Built-in reserved intent synonyms, matched as normalized substrings
_WELCOME_TRIGGERS = {
    "ru": ("привет", "здравст"),
    "en": ("good morning", "greetings"),
}

_HELP_TRIGGERS = {
    "ru": ("помощ", "что ты умеешь"),
    "en": ("help", "what can you do"),
}

_CONFIRM_PATTERNS = {
    "ru": (
        r"(?:^|\s)да(?:\s|$)",
        r"(?:^|\s)конечно(?:\s|$)",
        r"(?:^|\s)соглас\S+(?:\s|$)",
        r"(?:^|\s)подтвер\S+(?:\s|$)",
    ),
    "en": (
        r"(?:^|\s)yes(?:\s|$)",
        r"(?:^|\s)sure(?:\s|$)",
        r"(?:^|\s)of course(?:\s|$)",
        r"(?:^|\s)confirm\S*(?:\s|$)",
    ),
}

_REJECT_PATTERNS = {
    "ru": (
        r"(?:^|\s)нет(?:\s|$)",
        r"(?:^|\s)неа(?:\s|$)",
        r"(?:^|\s)не(?:\s|$)",
    ),
    "en": (
        r"(?:^|\s)no(?:\s|$)",
        r"(?:^|\s)nope(?:\s|$)",
        r"(?:^|\s)not(?:\s|$)",
    ),
}

_locale = "ru"


def _normalize_locale(locale: str | None) -> str:
    if not locale:
        return "ru"
    lowered = locale.lower()
    if lowered.startswith("en"):
        return "en"

    return "ru"


def set_locale(locale: str | None) -> None:
    global _locale
    _locale = _normalize_locale(locale)


def get_locale() -> str:
    return _locale


def msg(message_key: str, **kwargs) -> str:
    template = _MESSAGES.get(_locale, _MESSAGES["ru"]).get(message_key)
    if template is None:
        template = _MESSAGES["ru"].get(message_key, message_key)
    if kwargs:
        return template.format(**kwargs)

    return template


def welcome_triggers() -> tuple[str, ...]:
    return _WELCOME_TRIGGERS[get_locale()]


def help_triggers() -> tuple[str, ...]:
    return _HELP_TRIGGERS[get_locale()]


def confirm_patterns() -> tuple[str, ...]:
    return _CONFIRM_PATTERNS[get_locale()]


def reject_patterns() -> tuple[str, ...]:
    return _REJECT_PATTERNS[get_locale()]
