"""
Inspection Setting Routes

Endpoints for managing inspection policies.
"""

import logging

from fastapi import APIRouter, Depends, status

from ..dependencies import get_orchestrator, get_settings_store
from ..schemas import GateResponse, SettingCreate, SettingResponse, SettingUpdate
from ..services.orchestrator import SubmissionOrchestrator
from ..services.settings_store import SettingsStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/inspection-settings", tags=["inspection-settings"])


@router.get("", response_model=list[SettingResponse])
async def list_settings(store: SettingsStore = Depends(get_settings_store)) -> list[SettingResponse]:
    """List all policies, default first."""
    return [SettingResponse.model_validate(s) for s in await store.list_all()]


@router.get("/current", response_model=GateResponse)
async def current_setting(
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> GateResponse:
    """The policy deciding right now, with the gate's verdict."""
    decision = await orchestrator.gate_status()
    policy = decision.policy
    return GateResponse(
        allowed=decision.allowed,
        message=decision.message,
        setting_id=policy.id if policy else None,
        setting_name=policy.setting_name if policy else None,
        window=policy.window_label if policy else None,
        next_date=decision.next_date,
        days_until=decision.days_until,
    )


@router.get("/{setting_id}", response_model=SettingResponse)
async def get_setting(
    setting_id: int,
    store: SettingsStore = Depends(get_settings_store),
) -> SettingResponse:
    return SettingResponse.model_validate(await store.get(setting_id))


@router.post("", response_model=SettingResponse, status_code=status.HTTP_201_CREATED)
async def create_setting(
    data: SettingCreate,
    store: SettingsStore = Depends(get_settings_store),
) -> SettingResponse:
    """
    Create a policy.

    Marking it default demotes the current default.
    """
    setting = await store.create(data.model_dump(exclude_none=True), created_by="ADMIN")
    return SettingResponse.model_validate(setting)


@router.put("/{setting_id}", response_model=SettingResponse)
async def update_setting(
    setting_id: int,
    data: SettingUpdate,
    store: SettingsStore = Depends(get_settings_store),
) -> SettingResponse:
    setting = await store.update(setting_id, data.model_dump(exclude_unset=True))
    return SettingResponse.model_validate(setting)


@router.delete("/{setting_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_setting(
    setting_id: int,
    store: SettingsStore = Depends(get_settings_store),
) -> None:
    """Delete a policy. The default policy cannot be deleted."""
    await store.delete(setting_id)


@router.post("/{setting_id}/toggle", response_model=SettingResponse)
async def toggle_setting(
    setting_id: int,
    store: SettingsStore = Depends(get_settings_store),
) -> SettingResponse:
    return SettingResponse.model_validate(await store.toggle_enabled(setting_id))
