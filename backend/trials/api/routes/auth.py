# backend/trials/api/routes/auth.py

import secrets

from fastapi import APIRouter, Depends, Header, HTTPException

from ...core.config import Settings, get_settings
from ..schemas import PinIn

router = APIRouter(prefix="/api/auth", tags=["auth"])

ROLES = ("judge", "manager")


def _expected_pin(settings: Settings, role: str) -> str | None:
    if role == "judge":
        return settings.JUDGE_PIN
    if role == "manager":
        return settings.MANAGER_PIN
    raise HTTPException(status_code=400, detail=f"Unknown role '{role}'")


def pin_matches(settings: Settings, role: str, pin: str | None) -> bool:
    expected = _expected_pin(settings, role)
    # PIN не задан: экран открыт
    if not expected:
        return True
    if not pin:
        return False
    return secrets.compare_digest(pin.encode(), expected.encode())


def require_pin(role: str):
    """Зависимость FastAPI: общий PIN в заголовке X-Trial-Pin."""

    def check(
        x_trial_pin: str | None = Header(default=None),
        settings: Settings = Depends(get_settings),
    ) -> str:
        if not pin_matches(settings, role, x_trial_pin):
            raise HTTPException(status_code=401, detail="Invalid PIN")
        return role

    return check


require_judge = require_pin("judge")
require_manager = require_pin("manager")


@router.post("/verify")
def verify_pin(body: PinIn, settings: Settings = Depends(get_settings)):
    if body.role not in ROLES:
        raise HTTPException(status_code=400, detail="PIN and role required")
    if pin_matches(settings, body.role, body.pin):
        return {"valid": True}
    raise HTTPException(status_code=401, detail="Invalid PIN")


@router.get("/required")
def pin_required(settings: Settings = Depends(get_settings)):
    return {
        "judge": bool(settings.JUDGE_PIN),
        "manager": bool(settings.MANAGER_PIN),
    }
