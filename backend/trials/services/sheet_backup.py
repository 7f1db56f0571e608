# backend/trials/services/sheet_backup.py
"""
Бэкап каждой новой/исправленной попытки в Google-таблицу через вебхук
Apps Script (TRIALS_SHEET_WEBHOOK_URL). Не настроено: молча пропускаем.
"""

import logging

import requests

from .notifier import LedgerEvent, CREATED, CORRECTED

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 10


def sheet_row(attempt: dict) -> dict:
    return {
        "competitor_number": attempt.get("competitor_number"),
        "competitor_name": attempt.get("competitor_name"),
        "section_name": attempt.get("section_name"),
        "lap": attempt.get("lap"),
        "points": attempt.get("points"),
        "is_dnf": bool(attempt.get("is_dnf")),
        "created_at": attempt.get("created_at"),
        "updated_at": attempt.get("updated_at"),
    }


def make_sheet_backup_listener(webhook_url: str | None, session: requests.Session | None = None):
    http = session or requests.Session()

    def sheet_backup_listener(event: LedgerEvent) -> None:
        if not webhook_url:
            return
        if event.kind not in (CREATED, CORRECTED) or not event.attempt:
            return

        try:
            resp = http.post(webhook_url, json=sheet_row(event.attempt), timeout=TIMEOUT_SECONDS)
        except requests.RequestException as e:
            logger.error("Failed to send score to sheet: %s", e)
            return

        if not resp.ok:
            logger.error("Sheet webhook error %s: %s", resp.status_code, resp.text[:200])
            return
        logger.debug("Score #%s sent to sheet", event.attempt.get("id"))

    return sheet_backup_listener
