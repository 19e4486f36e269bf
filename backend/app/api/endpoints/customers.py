from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_lifecycle
from app.schemas.customer import CustomerCreate, CustomerResponse, CustomerUpdate
from app.services.lifecycle import LifecycleManager


router = APIRouter()


@router.post("/customers", response_model=CustomerResponse, status_code=201)
async def create_customer(payload: CustomerCreate, manager: LifecycleManager = Depends(get_lifecycle)):
    return manager.register_customer(payload)


@router.get("/customers", response_model=list[CustomerResponse])
async def list_customers(manager: LifecycleManager = Depends(get_lifecycle)):
    return manager.store.list_customers()


@router.get("/customers/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: str, manager: LifecycleManager = Depends(get_lifecycle)):
    return manager.get_customer(customer_id)


@router.patch("/customers/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: str,
    payload: CustomerUpdate,
    manager: LifecycleManager = Depends(get_lifecycle),
):
    return manager.update_customer(customer_id, payload)
