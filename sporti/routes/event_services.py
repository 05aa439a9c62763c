from fastapi import APIRouter, Depends, status
from typing import Dict, List, Optional
from datetime import datetime

from sporti.config.database import Collections
from sporti.database.db_operations import DBOperations, to_object_id
from sporti.dependencies import get_db_ops
from sporti.models.resource import ServiceCreate, ServiceResponse, ServiceType, ServiceUpdate, Site
from sporti.services.availability import CREATE_BLOCKING, available_resources
from sporti.services.occupancy import EMPTY_OCCUPANCY
from sporti.utils.auth import require_admin
from sporti.utils.exceptions import ConflictError, NotFoundError, ValidationError
from sporti.utils.helpers import serialize_doc, serialize_docs, to_utc_naive

router = APIRouter(prefix="/services", tags=["Services"])


@router.post("/", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(
    service: ServiceCreate,
    current_user: Dict = Depends(require_admin),
    ops: DBOperations = Depends(get_db_ops),
):
    service_dict = service.model_dump(mode="json")
    service_dict["is_blocked"] = False
    service_dict.update(EMPTY_OCCUPANCY)
    created = await ops.create(Collections.SERVICES, service_dict)
    return serialize_doc(created)


@router.get("/", response_model=List[ServiceResponse])
async def get_services(
    site: Optional[Site] = None,
    service_type: Optional[ServiceType] = None,
    ops: DBOperations = Depends(get_db_ops),
):
    filter_query = {}
    if site:
        filter_query["site"] = site
    if service_type:
        filter_query["service_type"] = service_type
    services = await ops.get_all(Collections.SERVICES, filter_query, limit=1000)
    return serialize_docs(services)


@router.get("/available", response_model=List[ServiceResponse])
async def get_available_services(
    check_in: datetime,
    check_out: datetime,
    site: Optional[Site] = None,
    service_type: Optional[ServiceType] = None,
    ops: DBOperations = Depends(get_db_ops),
):
    check_in, check_out = to_utc_naive(check_in), to_utc_naive(check_out)
    if check_in >= check_out:
        raise ValidationError("check_in must be before check_out")
    services = await available_resources(
        ops, "service", check_in, check_out, CREATE_BLOCKING, site=site, category=service_type
    )
    return serialize_docs(services)


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(service_id: str, ops: DBOperations = Depends(get_db_ops)):
    service = await ops.get_by_id(Collections.SERVICES, service_id)
    if not service:
        raise NotFoundError("Service", service_id)
    return serialize_doc(service)


@router.put("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: str,
    service_update: ServiceUpdate,
    current_user: Dict = Depends(require_admin),
    ops: DBOperations = Depends(get_db_ops),
):
    update_data = service_update.model_dump(mode="json", exclude_unset=True)
    if not update_data:
        raise ValidationError("No fields to update")
    updated = await ops.update(Collections.SERVICES, service_id, update_data)
    if not updated:
        raise NotFoundError("Service", service_id)
    return serialize_doc(updated)


@router.put("/{service_id}/availability", response_model=ServiceResponse)
async def toggle_service_availability(
    service_id: str,
    current_user: Dict = Depends(require_admin),
    ops: DBOperations = Depends(get_db_ops),
):
    """Take a service out of (or back into) the bookable pool"""
    service = await ops.get_by_id(Collections.SERVICES, service_id)
    if not service:
        raise NotFoundError("Service", service_id)
    updated = await ops.update(Collections.SERVICES, service_id, {"is_blocked": not service.get("is_blocked", False)})
    return serialize_doc(updated)


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(
    service_id: str,
    current_user: Dict = Depends(require_admin),
    ops: DBOperations = Depends(get_db_ops),
):
    object_id = to_object_id(service_id)
    if object_id is None:
        raise NotFoundError("Service", service_id)
    if await ops.count(Collections.BOOKINGS, {"resource_id": str(object_id)}):
        raise ConflictError("Service is referenced by bookings and cannot be deleted; block it instead")
    deleted = await ops.delete(Collections.SERVICES, service_id)
    if not deleted:
        raise NotFoundError("Service", service_id)
