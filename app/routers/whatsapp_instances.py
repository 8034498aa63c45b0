from __future__ import annotations

from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.instance_lifecycle import InstanceLifecycleController
from app.whatsapp.service import get_gateway_client, get_gateway_settings

router = APIRouter(prefix="/api/whatsapp/instances", tags=["whatsapp-instances"])


class ConnectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bot_id: Optional[Union[str, int]] = Field(default=None, alias="botId")


class DisconnectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    instance_name: Optional[str] = Field(default=None, alias="instanceName")


def get_lifecycle_controller(db: Session = Depends(get_db)) -> InstanceLifecycleController:
    return InstanceLifecycleController(
        db,
        gateway=get_gateway_client(),
        settings=get_gateway_settings(),
    )


@router.post("/connect")
def connect_instance(
    payload: ConnectRequest,
    controller: InstanceLifecycleController = Depends(get_lifecycle_controller),
):
    bot_id = str(payload.bot_id) if payload.bot_id is not None else None
    return controller.connect(bot_id)


@router.post("/disconnect")
def disconnect_instance(
    payload: DisconnectRequest,
    controller: InstanceLifecycleController = Depends(get_lifecycle_controller),
):
    return controller.disconnect(payload.instance_name)


@router.get("/{instance_name}")
def get_instance_status(
    instance_name: str,
    controller: InstanceLifecycleController = Depends(get_lifecycle_controller),
):
    result = controller.get_status(instance_name)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Instância não encontrada")
    return result
