# backend/trials/core/config.py

import os

PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


class Settings:
    def __init__(self):
        self.PROJECT_NAME = "Moto Trial Scoring"
        self.DATABASE_URL = os.environ.get("TRIALS_DATABASE_URL", "sqlite:///./trials.db")
        # Путь к папке с шаблонами Jinja
        self.TEMPLATE_DIR = os.environ.get(
            "TRIALS_TEMPLATE_DIR", os.path.join(PACKAGE_DIR, "templates")
        )
        self.LOG_LEVEL = os.environ.get("TRIALS_LOG_LEVEL", "INFO").upper()

        # сколько штрафных очков даёт DNF в сумме (0 = не входит в сумму)
        self.DNF_PENALTY = _env_int("TRIALS_DNF_PENALTY", 0)

        # при пустой БД создаём стандартные секции и классы
        self.SEED_CATALOG = os.environ.get("TRIALS_SEED_CATALOG", "1") not in ("0", "false", "no")

        # общий секрет для экранов судьи и менеджера; пусто = доступ открыт
        self.JUDGE_PIN = os.environ.get("JUDGE_PIN") or None
        self.MANAGER_PIN = os.environ.get("MANAGER_PIN") or None

        self.SHEET_WEBHOOK_URL = os.environ.get("TRIALS_SHEET_WEBHOOK_URL") or None


# создаём единственный экземпляр настроек
_settings = Settings()


def get_settings() -> Settings:
    return _settings
