from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from motorcover.api.deps import get_caller
from motorcover.api.responses import dump, ok, paged
from motorcover.db.models import VehicleType
from motorcover.db.session import get_db
from motorcover.schemas.lifecycle import PremiumOut
from motorcover.schemas.vehicles import VehicleCreate, VehicleOut, VehicleUpdate
from motorcover.services import vehicles as svc
from motorcover.services.access import Caller, acting_customer, customer_scope, ensure_owner


router = APIRouter(prefix="/api/vehicles", tags=["vehicles"])


def _owned_vehicle(db: Session, vehicle_id: int, caller: Caller):
    obj = svc.get_vehicle(db, vehicle_id)
    ensure_owner(caller, obj.customer_id)
    return obj


@router.post("", status_code=201)
def api_register_vehicle(data: VehicleCreate, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    customer_id = acting_customer(caller, data.customer_id)
    obj = svc.register_vehicle(db, customer_id, data)
    return ok("Vehicle registered", dump(VehicleOut, obj))


@router.get("")
def api_list_vehicles(
    customer_id: Optional[int] = None,
    vehicle_type: Optional[VehicleType] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    if caller.is_customer:
        customer_id = customer_scope(caller)
    result = svc.list_vehicles(
        db, customer_id=customer_id, vehicle_type=vehicle_type, search=search, page=page, limit=limit
    )
    return paged(result, VehicleOut)


@router.get("/stats")
def api_vehicle_stats(db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    customer_id = customer_scope(caller) if caller.is_customer else None
    return ok("Vehicle statistics", svc.vehicle_stats(db, customer_id=customer_id))


@router.get("/{vehicle_id}")
def api_get_vehicle(vehicle_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    obj = _owned_vehicle(db, vehicle_id, caller)
    data = dump(VehicleOut, obj)
    data["active_premiums"] = [dump(PremiumOut, p) for p in svc.active_premiums(db, vehicle_id)]
    return ok("Vehicle fetched", data)


@router.put("/{vehicle_id}")
def api_update_vehicle(
    vehicle_id: int,
    data: VehicleUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    _owned_vehicle(db, vehicle_id, caller)
    return ok("Vehicle updated", dump(VehicleOut, svc.update_vehicle(db, vehicle_id, data)))


@router.delete("/{vehicle_id}")
def api_delete_vehicle(vehicle_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    _owned_vehicle(db, vehicle_id, caller)
    svc.delete_vehicle(db, vehicle_id)
    return ok("Vehicle deleted")
