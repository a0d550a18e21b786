from fastapi import APIRouter, Body, Depends
from typing import Optional

from app.core.schemas import ItemEnvelope, ListEnvelope, item, items
from app.core.security.dependencies import get_current_user
from app.modules.logistics.schemas import (
    TransferClaim,
    TransferRequestCreate,
    TransferResponse
)
from app.modules.logistics.transfers import TransferWorkflow
from app.modules.logistics.utils import list_params
from app.store.base import get_store

router = APIRouter(
    prefix="/transfers",
    tags=["Transfers"]
)


def get_workflow(store = Depends(get_store)) -> TransferWorkflow:
    return TransferWorkflow(store)


@router.get("", response_model=ListEnvelope[TransferResponse])
def list_transfers(
    status: Optional[str] = None,
    params: dict = Depends(list_params),
    user = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow)
):
    records, total, page, page_size = workflow.list_transfers(user, params, status)
    return items(records, total, page, page_size)


@router.post("/requests", response_model=ItemEnvelope[TransferResponse], status_code=201)
def create_transfer_request(
    payload: TransferRequestCreate,
    user = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow)
):
    return item(workflow.create_request(payload.model_dump(), user))


@router.get("/open", response_model=ListEnvelope[TransferResponse])
def list_open_transfers(
    params: dict = Depends(list_params),
    user = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow)
):
    """
    Approved requests any supplying base may claim.
    """
    records, total, page, page_size = workflow.list_open(user, params)
    return items(records, total, page, page_size)


@router.get("/{transfer_id}", response_model=ItemEnvelope[TransferResponse])
def get_transfer(
    transfer_id: str,
    user = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow)
):
    return item(workflow.get_transfer(transfer_id, user))


@router.put("/{transfer_id}/approve", response_model=ItemEnvelope[TransferResponse])
def approve_transfer(
    transfer_id: str,
    user = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow)
):
    return item(workflow.approve(transfer_id, user))


@router.put("/{transfer_id}/claim", response_model=ItemEnvelope[TransferResponse])
def claim_transfer(
    transfer_id: str,
    payload: Optional[TransferClaim] = Body(None),
    user = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow)
):
    supplier_base = payload.supplier_base if payload else None
    return item(workflow.claim(transfer_id, user, supplier_base))


@router.put("/{transfer_id}/send", response_model=ItemEnvelope[TransferResponse])
def send_transfer(
    transfer_id: str,
    user = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow)
):
    """
    Ship a claimed transfer: debits the supplier base.
    """
    return item(workflow.send(transfer_id, user))


@router.put("/{transfer_id}/receive", response_model=ItemEnvelope[TransferResponse])
def receive_transfer(
    transfer_id: str,
    user = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow)
):
    """
    Confirm arrival: credits the requesting base.
    """
    return item(workflow.receive(transfer_id, user))


@router.delete("/{transfer_id}", response_model=ItemEnvelope[TransferResponse])
def delete_transfer(
    transfer_id: str,
    user = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow)
):
    return item(workflow.delete(transfer_id, user))
